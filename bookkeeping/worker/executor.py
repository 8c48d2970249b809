"""Retry policy and in-process retrying executor.

The policy is shared by both harnesses: Celery task options are derived from
it, and ``RetryingExecutor`` applies it to a job inside the current process.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Callable, List, Optional

from bookkeeping.config import settings
from bookkeeping.core.errors import DeliveryInProgress

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget of a delivery job."""

    max_attempts: int = 3
    attempt_timeout: float = 300
    backoff_seconds: float = 60

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.attempt_timeout <= 0:
            raise ValueError("attempt_timeout must be positive")

    @property
    def max_retries(self) -> int:
        return self.max_attempts - 1

    @classmethod
    def from_settings(cls, config=settings) -> "RetryPolicy":
        return cls(
            max_attempts=config.report_delivery_max_attempts,
            attempt_timeout=config.report_delivery_timeout,
            backoff_seconds=config.report_delivery_backoff,
        )


class RetryingExecutor:
    """Runs a job's attempts sequentially under a RetryPolicy.

    The job must provide ``run(payload, attempt, cancelled)``,
    ``record_timeout(payload, attempt, timeout)`` and
    ``finalize_failure(payload, exc)``. An attempt that outlives
    ``attempt_timeout`` is abandoned (its thread cannot be killed) and counted
    as failed. Before the next attempt starts, the executor waits up to
    ``abandon_grace`` seconds (default: one attempt timeout) for abandoned
    attempts to finish, so they release the per-report lock. A
    DeliveryInProgress raised while an abandoned attempt is still running is
    not counted against the budget once.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        sleep: Callable[[float], None] = time.sleep,
        abandon_grace: Optional[float] = None,
    ):
        self.policy = policy
        self.sleep = sleep
        self.abandon_grace = policy.attempt_timeout if abandon_grace is None else abandon_grace

    def execute(self, job, payload):
        last_error = None
        abandoned: List[Future] = []
        attempt = 1
        deferred = False
        while True:
            try:
                return self._run_attempt(job, payload, attempt, abandoned)
            except DeliveryInProgress as e:
                if abandoned and not deferred:
                    # Our own abandoned attempt still holds the lock
                    deferred = True
                    logger.warning(
                        f"Attempt {attempt}/{self.policy.max_attempts} waits for an abandoned attempt",
                        extra={"attempts": attempt, "error": str(e)},
                    )
                    self._await_abandoned(abandoned)
                    continue
                last_error = e
            except Exception as e:
                last_error = e

            if attempt >= self.policy.max_attempts:
                break
            logger.warning(
                f"Attempt {attempt}/{self.policy.max_attempts} failed, retrying",
                extra={"attempts": attempt, "error": str(last_error)},
            )
            if self.policy.backoff_seconds:
                self.sleep(self.policy.backoff_seconds)
            self._await_abandoned(abandoned)
            attempt += 1
            deferred = False

        job.finalize_failure(payload, last_error)
        raise last_error

    def _await_abandoned(self, abandoned: List[Future]) -> None:
        if not abandoned:
            return
        _, pending = wait(abandoned, timeout=self.abandon_grace)
        if pending:
            logger.warning(
                f"{len(pending)} abandoned delivery attempt(s) still running",
                extra={"abandon_grace": self.abandon_grace},
            )
        abandoned[:] = list(pending)

    def _run_attempt(self, job, payload, attempt: int, abandoned: List[Future]):
        cancelled = threading.Event()
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="delivery-attempt")
        try:
            future = pool.submit(job.run, payload, attempt, cancelled)
            try:
                return future.result(timeout=self.policy.attempt_timeout)
            except FutureTimeoutError:
                cancelled.set()
                abandoned.append(future)
                raise job.record_timeout(payload, attempt, self.policy.attempt_timeout)
        finally:
            # Never block on an abandoned attempt here
            pool.shutdown(wait=False)

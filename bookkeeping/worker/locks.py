"""Per-report execution locks.

At most one delivery attempt per report may run at a time. Workers share a
Redis lock; in-process execution uses a local lock table.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

import redis

from bookkeeping.config import settings
from bookkeeping.core.errors import DeliveryInProgress

logger = logging.getLogger(__name__)

LOCK_KEY_TEMPLATE = "monthly-report-delivery:{report_id}"


class RedisReportLock:
    """Non-blocking Redis lock keyed by report id."""

    def __init__(self, client: Optional[redis.Redis] = None, timeout: int = settings.report_lock_timeout):
        self.client = client or redis.Redis.from_url(settings.redis_url)
        self.timeout = timeout

    @contextmanager
    def __call__(self, report_id: int) -> Iterator[None]:
        lock = self.client.lock(LOCK_KEY_TEMPLATE.format(report_id=report_id), timeout=self.timeout)
        if not lock.acquire(blocking=False):
            raise DeliveryInProgress(f"Delivery of report {report_id} is already running")
        try:
            yield
        finally:
            try:
                lock.release()
            except redis.exceptions.LockError:
                # Lock expired while the attempt was running
                logger.warning(f"Delivery lock for report {report_id} expired before release")


class LocalReportLock:
    """Process-local lock table keyed by report id."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.Lock] = {}

    @contextmanager
    def __call__(self, report_id: int) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(report_id, threading.Lock())
        if not lock.acquire(blocking=False):
            raise DeliveryInProgress(f"Delivery of report {report_id} is already running")
        try:
            yield
        finally:
            lock.release()

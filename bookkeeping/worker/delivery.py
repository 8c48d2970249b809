"""Monthly report delivery job.

One call to ``run`` is one delivery attempt. Retries, backoff and the attempt
timeout belong to the harness (Celery task or ``RetryingExecutor``); the job
records each outcome on the report and re-raises every fault so the harness
can count it.
"""

import enum
import logging
import threading
from contextlib import nullcontext
from datetime import datetime
from typing import Any, Callable, Optional, Tuple, Type

from bookkeeping.core.errors import DeliveryTimeout, TransportFault
from bookkeeping.models.report import EmailStatus
from bookkeeping.worker.payloads import MonthlyReportDeliveryPayload

logger = logging.getLogger(__name__)


class DeliveryOutcome(str, enum.Enum):
    """Result of a delivery attempt that did not fail."""

    SENT = "sent"
    SKIPPED = "skipped"


class MonthlyReportDeliveryJob:
    """Sends a monthly report via the email service and reconciles its status.

    ``repository`` provides ``get(report_id)`` and ``update(report_id, fields)``,
    ``email_service`` provides ``generate_and_send_monthly_report(report) -> bool``.
    ``lock`` is a callable returning a context manager per report id; it raises
    DeliveryInProgress when another attempt for the report is running.
    ``timeout_signals`` are exception types the harness raises inside the
    attempt when the execution budget runs out.
    """

    def __init__(
        self,
        repository,
        email_service,
        lock: Optional[Callable[[int], Any]] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        timeout_signals: Tuple[Type[BaseException], ...] = (),
    ):
        self.repository = repository
        self.email_service = email_service
        self.lock = lock
        self.clock = clock
        self.timeout_signals = timeout_signals

    def run(self, payload, attempt: int = 1, cancelled: Optional[threading.Event] = None) -> DeliveryOutcome:
        """Execute one delivery attempt for the report in ``payload``.

        ``cancelled`` is set by a harness that abandoned the attempt after its
        timeout; the outcome of such an attempt is not written to the report.
        """
        payload = MonthlyReportDeliveryPayload.parse(payload)

        # The status check must see writes of attempts that held the lock before us
        with self._locked(payload.report_id):
            report = self.repository.get(payload.report_id)
            if report.email_status == EmailStatus.SENT:
                logger.info(
                    f"Monthly report {report.id} already sent, skipping",
                    extra={"report_id": report.id, "sent_at": report.sent_at},
                )
                return DeliveryOutcome.SKIPPED

            return self._attempt(report, attempt, cancelled)

    def _locked(self, report_id: int):
        if self.lock is None:
            return nullcontext()
        return self.lock(report_id)

    def _attempt(self, report, attempt: int, cancelled: Optional[threading.Event]) -> DeliveryOutcome:
        logger.info(
            "Starting monthly report email job",
            extra={"report_id": report.id, "period": report.period_description, "attempts": attempt},
        )

        try:
            success = self.email_service.generate_and_send_monthly_report(report)
            if not success:
                raise TransportFault("Email service returned false")
        except Exception as e:
            if cancelled is not None and cancelled.is_set():
                logger.warning(
                    "Cancelled monthly report attempt failed late, result discarded",
                    extra={"report_id": report.id, "error": str(e), "attempts": attempt},
                )
                raise
            if self.timeout_signals and isinstance(e, self.timeout_signals):
                fault = DeliveryTimeout(f"Delivery of report {report.id} exceeded its time limit")
                self._record_failure(report.id, fault, attempt)
                raise fault from e
            self._record_failure(report.id, e, attempt)
            raise

        if cancelled is not None and cancelled.is_set():
            logger.warning(
                "Cancelled monthly report attempt finished late, email may have been delivered",
                extra={"report_id": report.id, "attempts": attempt},
            )
            return DeliveryOutcome.SENT

        self.repository.update(report.id, {"sent_at": self.clock(), "email_status": EmailStatus.SENT})
        logger.info("Monthly report email sent successfully", extra={"report_id": report.id})
        return DeliveryOutcome.SENT

    def _record_failure(self, report_id: int, exc: BaseException, attempt: int) -> None:
        self.repository.update(report_id, {"email_status": EmailStatus.FAILED})
        logger.error(
            "Monthly report email job failed",
            extra={"report_id": report_id, "error": str(exc), "attempts": attempt},
        )

    def record_timeout(self, payload, attempt: int, timeout: float) -> DeliveryTimeout:
        """Failure path for an attempt cancelled by the harness from outside."""
        payload = MonthlyReportDeliveryPayload.parse(payload)
        fault = DeliveryTimeout(f"Delivery of report {payload.report_id} exceeded {timeout}s")
        self._record_failure(payload.report_id, fault, attempt)
        return fault

    def finalize_failure(self, payload, exc: Optional[BaseException] = None) -> None:
        """Terminal failure hook, run once the harness has no attempts left.

        Marks the report failed. Safe to call repeatedly. A report that was
        sent in the meantime keeps its status.
        """
        payload = MonthlyReportDeliveryPayload.parse(payload)
        report = self.repository.get(payload.report_id)
        if report.email_status == EmailStatus.SENT:
            logger.warning(
                "Monthly report delivery exhausted but report is already sent",
                extra={"report_id": report.id},
            )
            return

        self.repository.update(report.id, {"email_status": EmailStatus.FAILED})
        logger.error(
            "Monthly report email job permanently failed",
            extra={"report_id": report.id, "error": str(exc) if exc else None},
        )

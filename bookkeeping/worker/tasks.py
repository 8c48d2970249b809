"""Celery tasks for monthly report delivery."""

import logging
from typing import List

from celery import Task
from celery.exceptions import SoftTimeLimitExceeded

from bookkeeping.core.email import EmailService
from bookkeeping.core.errors import InvalidInput, ReportNotFound
from bookkeeping.core.repository import SqlReportRepository
from bookkeeping.models.report import EmailStatus
from bookkeeping.worker.celery_app import celery_app
from bookkeeping.worker.delivery import MonthlyReportDeliveryJob
from bookkeeping.worker.executor import RetryPolicy
from bookkeeping.worker.locks import RedisReportLock
from bookkeeping.worker.payloads import MonthlyReportDeliveryPayload

logger = logging.getLogger(__name__)

DELIVERY_POLICY = RetryPolicy.from_settings()

# Hard limit after the soft one, so the failure path has time to run
HARD_TIME_LIMIT_GRACE = 30

# Retrying cannot change the outcome of these
NON_RETRYABLE = (ReportNotFound,)


def build_delivery_job() -> MonthlyReportDeliveryJob:
    """Wire the delivery job with its production collaborators."""
    return MonthlyReportDeliveryJob(
        repository=SqlReportRepository(),
        email_service=EmailService(),
        lock=RedisReportLock(timeout=int(DELIVERY_POLICY.attempt_timeout) + HARD_TIME_LIMIT_GRACE),
        timeout_signals=(SoftTimeLimitExceeded,),
    )


class MonthlyReportDeliveryTask(Task):
    """Task base carrying the terminal failure hook."""

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        """Called by Celery once the task has failed for good (retries exhausted)."""
        if isinstance(exc, NON_RETRYABLE):
            logger.error(f"Monthly report delivery {task_id} failed: {exc}", extra={"task_id": task_id})
            return

        raw_payload = args[0] if args else kwargs.get("payload")
        try:
            payload = MonthlyReportDeliveryPayload.parse(raw_payload)
        except InvalidInput as e:
            logger.error(f"Monthly report delivery {task_id} has an invalid payload: {e}", extra={"task_id": task_id})
            return

        build_delivery_job().finalize_failure(payload, exc)


@celery_app.task(
    bind=True,
    base=MonthlyReportDeliveryTask,
    max_retries=DELIVERY_POLICY.max_retries,
    soft_time_limit=DELIVERY_POLICY.attempt_timeout,
    time_limit=DELIVERY_POLICY.attempt_timeout + HARD_TIME_LIMIT_GRACE,
)
def send_monthly_report(self, payload: dict):
    """Deliver one monthly report to the accountant (one attempt per execution)."""
    job = build_delivery_job()
    attempt = self.request.retries + 1
    try:
        outcome = job.run(payload, attempt=attempt)
    except NON_RETRYABLE:
        raise
    except Exception as e:
        raise self.retry(exc=e, countdown=DELIVERY_POLICY.backoff_seconds)
    return outcome.value


def enqueue_monthly_report(report_id: int):
    """Queue delivery of a report. Only the report id crosses the queue."""
    payload = MonthlyReportDeliveryPayload(report_id=report_id)
    result = send_monthly_report.delay(payload.to_message())
    logger.info(f"Queued monthly report {report_id} for delivery", extra={"report_id": report_id})
    return result


@celery_app.task
def dispatch_pending_reports() -> List[int]:
    """Queue every pending report. Sent reports are never queued again."""
    repository = SqlReportRepository()
    reports = repository.list_by_status(EmailStatus.PENDING, limit=100)
    if not reports:
        logger.info("No pending monthly reports")
        return []

    queued = []
    for report in reports:
        enqueue_monthly_report(report.id)
        queued.append(report.id)

    logger.info(f"Queued {len(queued)} monthly reports for delivery")
    return queued

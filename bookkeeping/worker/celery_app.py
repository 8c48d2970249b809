"""Celery application configuration."""

import logging

from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging as celery_setup_logging

from bookkeeping.config import settings
from bookkeeping.core.logging import setup_logging

logger = logging.getLogger(__name__)

celery_app = Celery(
    "bookkeeping",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.timezone,
    enable_utc=True,
    task_track_started=True,
    # A report is acknowledged only after its attempt finished
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    imports=("bookkeeping.worker.tasks",),
)

# Parse schedule time (HH:MM format)
try:
    run_hour, run_minute = map(int, settings.report_schedule_time.split(":"))
except ValueError:
    run_hour, run_minute = 9, 0

# Celery Beat schedule, in celery_app.conf.timezone (Europe/Prague by default)
celery_app.conf.beat_schedule = {
    "monthly-report-delivery": {
        "task": "bookkeeping.worker.tasks.dispatch_pending_reports",
        "schedule": crontab(day_of_month=settings.report_schedule_day, hour=run_hour, minute=run_minute),
    },
}


@celery_setup_logging.connect
def configure_worker_logging(**kwargs):
    setup_logging()


# Import tasks to register them
from bookkeeping.worker import tasks  # noqa: E402, F401

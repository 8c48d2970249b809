"""Monthly report persistence."""

import logging
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from bookkeeping.core.errors import ReportNotFound
from bookkeeping.models.report import EmailStatus, MonthlyReport

logger = logging.getLogger(__name__)

WRITABLE_FIELDS = {"email_status", "sent_at", "generated_at", "zip_path"}


class SqlReportRepository:
    """Reads and updates monthly reports, one session per call."""

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        if session_factory is None:
            from bookkeeping.database import SessionLocal

            session_factory = SessionLocal
        self.session_factory = session_factory

    def get(self, report_id: int) -> MonthlyReport:
        """Load a detached report. Raises ReportNotFound."""
        db = self.session_factory()
        try:
            report = db.query(MonthlyReport).filter(MonthlyReport.id == report_id).first()
            if not report:
                raise ReportNotFound(f"Monthly report {report_id} not found")
            db.expunge(report)
            return report
        finally:
            db.close()

    def update(self, report_id: int, fields: Dict[str, Any]) -> None:
        """Write ``fields`` to the report in a single transaction."""
        unknown = set(fields) - WRITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not writable: {', '.join(sorted(unknown))}")

        db = self.session_factory()
        try:
            updated = (
                db.query(MonthlyReport)
                .filter(MonthlyReport.id == report_id)
                .update(fields, synchronize_session=False)
            )
            if not updated:
                raise ReportNotFound(f"Monthly report {report_id} not found")
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def create(self, period_start, period_end, zip_path: str, generated_at=None) -> MonthlyReport:
        """Register an already generated report as pending."""
        db = self.session_factory()
        try:
            report = MonthlyReport(
                period_start=period_start,
                period_end=period_end,
                zip_path=zip_path,
                email_status=EmailStatus.PENDING,
            )
            if generated_at is not None:
                report.generated_at = generated_at
            db.add(report)
            db.commit()
            db.refresh(report)
            db.expunge(report)
            logger.info(f"Registered monthly report {report.id}", extra={"report_id": report.id})
            return report
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def find_by_period(self, period_start, period_end) -> Optional[MonthlyReport]:
        db = self.session_factory()
        try:
            report = (
                db.query(MonthlyReport)
                .filter(
                    MonthlyReport.period_start == period_start,
                    MonthlyReport.period_end == period_end,
                )
                .first()
            )
            if report:
                db.expunge(report)
            return report
        finally:
            db.close()

    def list_by_status(self, status: Optional[EmailStatus] = None, limit: int = 50) -> List[MonthlyReport]:
        db = self.session_factory()
        try:
            query = db.query(MonthlyReport)
            if status is not None:
                query = query.filter(MonthlyReport.email_status == status)
            reports = query.order_by(MonthlyReport.period_start.desc()).limit(limit).all()
            for report in reports:
                db.expunge(report)
            return reports
        finally:
            db.close()

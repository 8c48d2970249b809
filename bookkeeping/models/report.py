"""Monthly report model."""

from datetime import datetime
import enum

from sqlalchemy import Column, Integer, String, Date, DateTime, Enum, Index

from bookkeeping.database import Base


class EmailStatus(str, enum.Enum):
    """Email delivery status of a monthly report."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class MonthlyReport(Base):
    """Monthly report model - accountant report for one accounting period.

    The zip archive is produced by the report generator before delivery; the
    delivery job only writes ``email_status`` and ``sent_at``.
    """

    __tablename__ = "monthly_reports"

    id = Column(Integer, primary_key=True, index=True)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    generated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    sent_at = Column(DateTime, nullable=True)
    email_status = Column(
        Enum(EmailStatus, values_callable=lambda e: [m.value for m in e], name="email_status"),
        nullable=False,
        default=EmailStatus.PENDING,
    )
    zip_path = Column(String(1024))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_monthly_reports_period", "period_start", "period_end", unique=True),
    )

    @property
    def period_description(self) -> str:
        return f"{self.period_start} to {self.period_end}"

    def __repr__(self) -> str:
        return (
            f"<MonthlyReport(id={self.id}, period={self.period_start}..{self.period_end}, "
            f"email_status='{self.email_status}')>"
        )

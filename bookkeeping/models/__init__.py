"""Database models."""

from bookkeeping.models.report import EmailStatus, MonthlyReport

__all__ = [
    "EmailStatus",
    "MonthlyReport",
]

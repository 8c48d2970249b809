"""Shared fixtures."""

import threading
from datetime import date, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from bookkeeping.core.errors import ReportNotFound
from bookkeeping.core.repository import SqlReportRepository
from bookkeeping.database import Base
from bookkeeping.models.report import EmailStatus, MonthlyReport


class InMemoryReportRepository:
    """Repository double that records every update."""

    def __init__(self, *reports):
        self.reports = {r.id: r for r in reports}
        self.updates = []

    def get(self, report_id):
        if report_id not in self.reports:
            raise ReportNotFound(f"Monthly report {report_id} not found")
        return self.reports[report_id]

    def update(self, report_id, fields):
        self.updates.append((report_id, dict(fields)))
        report = self.get(report_id)
        for key, value in fields.items():
            setattr(report, key, value)


class FakeEmailService:
    """Email service double returning (or raising) queued results.

    The last result repeats once the queue is down to one entry. A
    ``threading.Event`` result blocks until the event is set, then fails.
    """

    def __init__(self, *results):
        self.results = list(results) or [True]
        self.calls = []

    def generate_and_send_monthly_report(self, report):
        self.calls.append(report.id)
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, threading.Event):
            result.wait(timeout=5)
            raise RuntimeError("blocked send released")
        if isinstance(result, BaseException):
            raise result
        return result


def make_report(**overrides) -> MonthlyReport:
    fields = dict(
        id=1,
        period_start=date(2024, 1, 1),
        period_end=date(2024, 1, 31),
        generated_at=datetime(2024, 2, 1, 9, 0),
        sent_at=None,
        email_status=EmailStatus.PENDING,
        zip_path="/tmp/monthly_report_2024-01-01_to_2024-01-31.zip",
    )
    fields.update(overrides)
    return MonthlyReport(**fields)


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def sql_repository(session_factory):
    return SqlReportRepository(session_factory)


@pytest.fixture
def zip_file(tmp_path):
    path = tmp_path / "monthly_report_2024-01-01_to_2024-01-31.zip"
    # Empty zip archive (end of central directory record only)
    path.write_bytes(b"PK\x05\x06" + b"\x00" * 18)
    return str(path)


@pytest.fixture
def report():
    return make_report()


@pytest.fixture
def repository(report):
    return InMemoryReportRepository(report)

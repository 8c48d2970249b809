"""Tests for monthly report persistence."""

from datetime import date, datetime

import pytest

from bookkeeping.core.errors import ReportNotFound
from bookkeeping.models.report import EmailStatus


def test_create_and_get(sql_repository):
    """Test a registered report starts pending."""
    created = sql_repository.create(date(2024, 6, 14), date(2024, 7, 14), "/srv/reports/june.zip")

    report = sql_repository.get(created.id)
    assert report.email_status == EmailStatus.PENDING
    assert report.sent_at is None
    assert report.generated_at is not None
    assert report.zip_path == "/srv/reports/june.zip"
    assert report.period_description == "2024-06-14 to 2024-07-14"


def test_update_status_fields(sql_repository):
    """Test status and sent_at are written together."""
    created = sql_repository.create(date(2024, 6, 14), date(2024, 7, 14), "/srv/reports/june.zip")
    sent_at = datetime(2024, 7, 15, 9, 1)

    sql_repository.update(created.id, {"sent_at": sent_at, "email_status": EmailStatus.SENT})

    report = sql_repository.get(created.id)
    assert report.email_status == EmailStatus.SENT
    assert report.sent_at == sent_at


def test_update_rejects_unknown_fields(sql_repository):
    """Test only delivery fields can be written."""
    created = sql_repository.create(date(2024, 6, 14), date(2024, 7, 14), "/srv/reports/june.zip")

    with pytest.raises(ValueError):
        sql_repository.update(created.id, {"period_start": date(2020, 1, 1)})


def test_missing_report(sql_repository):
    """Test unknown ids raise ReportNotFound."""
    with pytest.raises(ReportNotFound):
        sql_repository.get(99)
    with pytest.raises(ReportNotFound):
        sql_repository.update(99, {"email_status": EmailStatus.FAILED})


def test_find_by_period_and_list_by_status(sql_repository):
    """Test period lookup and status listing."""
    june = sql_repository.create(date(2024, 6, 14), date(2024, 7, 14), "/srv/reports/june.zip")
    july = sql_repository.create(date(2024, 7, 14), date(2024, 8, 14), "/srv/reports/july.zip")
    sql_repository.update(june.id, {"email_status": EmailStatus.SENT, "sent_at": datetime(2024, 7, 15, 9, 0)})

    assert sql_repository.find_by_period(date(2024, 7, 14), date(2024, 8, 14)).id == july.id
    assert sql_repository.find_by_period(date(2024, 1, 1), date(2024, 1, 31)) is None
    assert [r.id for r in sql_repository.list_by_status(EmailStatus.PENDING)] == [july.id]
    assert [r.id for r in sql_repository.list_by_status()] == [july.id, june.id]

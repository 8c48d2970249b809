"""Tests for email sending."""

import asyncio
import logging
from datetime import datetime

import aiosmtplib
import pytest

from bookkeeping.config import Settings
from bookkeeping.core import email as email_module
from bookkeeping.core.composer import compose_monthly_report_message
from bookkeeping.core.email import EmailService, build_mime_message, send_email
from bookkeeping.core.errors import InvalidInput, TransportFault
from conftest import make_report


def make_settings(**overrides):
    values = dict(
        ACCOUNTANT_EMAIL="ucetni@example.cz",
        FROM_EMAIL="system@example.cz",
        SMTP_HOST="smtp.example.cz",
        SMTP_USER="user",
        SMTP_PASS="secret",
        MAIL_LOG_FALLBACK=False,
    )
    values.update(overrides)
    return Settings(**values)


class RecordingTransport:
    def __init__(self):
        self.messages = []

    async def __call__(self, message, config):
        self.messages.append(message)


def test_build_mime_message(zip_file):
    """Test the MIME message carries both bodies and the zip attachment."""
    message = compose_monthly_report_message(make_report(), zip_file)

    mime = build_mime_message(message, "system@example.cz", "ucetni@example.cz", "system@example.cz")

    assert mime["To"] == "ucetni@example.cz"
    assert mime["From"] == "system@example.cz"
    content_types = [part.get_content_type() for part in mime.walk()]
    assert content_types == [
        "multipart/mixed",
        "multipart/alternative",
        "text/plain",
        "text/html",
        "application/zip",
    ]
    attachment = list(mime.walk())[-1]
    assert attachment.get_filename() == "mesicni_prehled_2024_01.zip"
    assert attachment.get_payload(decode=True) == b"PK\x05\x06" + b"\x00" * 18


def test_build_mime_message_missing_attachment(tmp_path):
    """Test an unreadable attachment is invalid input."""
    message = compose_monthly_report_message(make_report(), str(tmp_path / "missing.zip"))

    with pytest.raises(InvalidInput):
        build_mime_message(message, "a@example.cz", "b@example.cz", "a@example.cz")


def test_generate_and_send_monthly_report(zip_file):
    """Test the report is sent to the accountant."""
    transport = RecordingTransport()
    service = EmailService(make_settings(), transport=transport)

    assert service.generate_and_send_monthly_report(make_report(zip_path=zip_file)) is True

    assert len(transport.messages) == 1
    assert transport.messages[0]["To"] == "ucetni@example.cz"
    assert transport.messages[0]["Subject"] == "Měsíční přehled účetnictví 01.01.2024 - 31.01.2024"


def test_accountant_email_required(zip_file):
    """Test delivery without a configured accountant fails before sending."""
    transport = RecordingTransport()
    service = EmailService(make_settings(ACCOUNTANT_EMAIL=""), transport=transport)

    with pytest.raises(InvalidInput, match="ACCOUNTANT_EMAIL"):
        service.generate_and_send_monthly_report(make_report(zip_path=zip_file))
    assert transport.messages == []


@pytest.mark.parametrize("zip_path", [None, "/nonexistent/monthly_report.zip"])
def test_attachment_must_exist(zip_path):
    """Test a missing archive fails before sending."""
    transport = RecordingTransport()
    service = EmailService(make_settings(), transport=transport)

    with pytest.raises(InvalidInput):
        service.generate_and_send_monthly_report(make_report(zip_path=zip_path))
    assert transport.messages == []


def test_unconfigured_smtp_without_fallback(zip_file):
    """Test missing SMTP credentials fail delivery."""
    transport = RecordingTransport()
    service = EmailService(make_settings(SMTP_USER="", SMTP_PASS=""), transport=transport)

    with pytest.raises(TransportFault):
        service.generate_and_send_monthly_report(make_report(zip_path=zip_file))
    assert transport.messages == []


def test_unconfigured_smtp_logs_with_fallback(zip_file, caplog):
    """Test the log fallback reports success without sending."""
    caplog.set_level(logging.INFO)
    transport = RecordingTransport()
    service = EmailService(
        make_settings(SMTP_USER="", SMTP_PASS="", MAIL_LOG_FALLBACK=True),
        transport=transport,
    )

    assert service.generate_and_send_monthly_report(make_report(zip_path=zip_file)) is True
    assert transport.messages == []
    logged = [r for r in caplog.records if r.getMessage().startswith("Email to ucetni@example.cz")]
    assert len(logged) == 1
    assert logged[0].attachment == "mesicni_prehled_2024_01.zip"


def test_transport_fault_propagates(zip_file):
    """Test transport errors reach the caller."""

    async def failing_transport(message, config):
        raise TransportFault("SMTP delivery failed")

    service = EmailService(make_settings(), transport=failing_transport)

    with pytest.raises(TransportFault):
        service.generate_and_send_monthly_report(make_report(zip_path=zip_file))


def test_send_email_wraps_smtp_errors(monkeypatch, zip_file):
    """Test aiosmtplib errors become transport faults."""
    calls = []

    async def fake_send(message, **kwargs):
        calls.append(kwargs)
        raise aiosmtplib.SMTPConnectError("Connection refused")

    monkeypatch.setattr(email_module.aiosmtplib, "send", fake_send)
    message = compose_monthly_report_message(make_report(), zip_file)
    mime = build_mime_message(message, "a@example.cz", "b@example.cz", "a@example.cz")

    with pytest.raises(TransportFault, match="b@example.cz"):
        asyncio.run(send_email(mime, make_settings()))

    assert calls[0]["hostname"] == "smtp.example.cz"
    assert calls[0]["username"] == "user"
    assert calls[0]["start_tls"] is True


def test_send_test_email():
    """Test the test email goes to the accountant with a timestamped subject."""
    transport = RecordingTransport()
    service = EmailService(make_settings(), transport=transport)

    assert service.send_test_email(now=datetime(2024, 2, 15, 9, 0, 5)) is True

    assert len(transport.messages) == 1
    mime = transport.messages[0]
    assert mime["To"] == "ucetni@example.cz"
    assert str(mime["Subject"]) == "Testovací e-mail - 2024-02-15 09:00:05"


def test_send_test_email_log_fallback():
    """Test the test email is only logged without SMTP credentials."""
    transport = RecordingTransport()
    service = EmailService(
        make_settings(SMTP_USER="", SMTP_PASS="", MAIL_LOG_FALLBACK=True),
        transport=transport,
    )

    assert service.send_test_email() is False
    assert transport.messages == []

"""Email utilities."""

import asyncio
import logging
import os
from datetime import datetime
from email.header import Header
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid
from typing import Awaitable, Callable, Optional

import aiosmtplib

from bookkeeping.config import Settings, settings
from bookkeeping.core.composer import (
    MonthlyReportMessage,
    compose_monthly_report_message,
    render_monthly_report_html,
    render_monthly_report_text,
)
from bookkeeping.core.errors import InvalidInput, TransportFault

logger = logging.getLogger(__name__)

Transport = Callable[[MIMEMultipart, Settings], Awaitable[None]]

TEST_EMAIL_BODY = "Toto je testovací e-mail z účetního systému."


async def send_email(message: MIMEMultipart, config: Settings = settings) -> None:
    """Send email via SMTP."""
    try:
        await aiosmtplib.send(
            message,
            hostname=config.smtp_host,
            port=config.smtp_port,
            username=config.smtp_user,
            password=config.smtp_pass,
            use_tls=config.smtp_use_tls,
            start_tls=config.smtp_start_tls,
            timeout=config.smtp_timeout,
        )
    except (aiosmtplib.SMTPException, OSError) as e:
        raise TransportFault(f"SMTP delivery to {message['To']} failed: {e}") from e
    logger.info(f"Email sent to {message['To']}", extra={"subject": message["Subject"]})


def build_mime_message(
    message: MonthlyReportMessage,
    sender: str,
    recipient: str,
    support_email: str,
) -> MIMEMultipart:
    """Build the MIME email (HTML + text alternative + attachments) for ``message``.

    Attachment files are read here; a missing or unreadable file raises InvalidInput.
    """
    mime = MIMEMultipart("mixed")
    mime["From"] = sender
    mime["To"] = recipient
    mime["Subject"] = Header(message.subject, "utf-8")
    mime["Date"] = formatdate(localtime=False)
    mime["Message-ID"] = make_msgid()

    body = MIMEMultipart("alternative")
    body.attach(MIMEText(render_monthly_report_text(message), "plain", "utf-8"))
    body.attach(MIMEText(render_monthly_report_html(message, support_email), "html", "utf-8"))
    mime.attach(body)

    for attachment in message.attachments:
        try:
            with open(attachment.path, "rb") as f:
                content = f.read()
        except OSError as e:
            raise InvalidInput(f"Attachment {attachment.path} is not readable: {e}") from e
        _, _, subtype = attachment.mime_type.partition("/")
        part = MIMEApplication(content, _subtype=subtype or "octet-stream")
        part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
        mime.attach(part)

    return mime


class EmailService:
    """Sends generated monthly reports to the accountant."""

    def __init__(self, config: Settings = settings, transport: Optional[Transport] = None):
        self.config = config
        self.transport = transport or send_email

    def validate_configuration(self) -> None:
        if not self.config.accountant_email:
            raise InvalidInput("ACCOUNTANT_EMAIL environment variable is not configured")
        if not self.config.smtp_configured and not self.config.mail_log_fallback:
            logger.warning(
                "SMTP credentials are not configured, delivery will fail",
                extra={"smtp_host": self.config.smtp_host},
            )

    def generate_and_send_monthly_report(self, report) -> bool:
        """Compose the monthly report email for ``report`` and send it.

        Returns True once the message is handed over to SMTP (or logged, with
        MAIL_LOG_FALLBACK). Raises InvalidInput for configuration or attachment
        problems and TransportFault when sending fails.
        """
        self.validate_configuration()

        zip_path = report.zip_path
        if not zip_path:
            raise InvalidInput(f"Report {report.id} has no zip archive")
        if not os.path.isfile(zip_path) or not os.access(zip_path, os.R_OK):
            raise InvalidInput(f"Report archive {zip_path} does not exist or is not readable")

        message = compose_monthly_report_message(report, zip_path)
        mime = build_mime_message(
            message,
            sender=self.config.from_email,
            recipient=self.config.accountant_email,
            support_email=self.config.from_email,
        )

        if self._deliver(
            mime,
            message.subject,
            extra={
                "report_id": report.id,
                "attachment": message.attachments[0].filename,
                "zip_size": os.path.getsize(zip_path),
            },
        ):
            logger.info(
                "Monthly report email sent",
                extra={"report_id": report.id, "recipient": self.config.accountant_email},
            )
        return True

    def send_test_email(self, now: Optional[datetime] = None) -> bool:
        """Send a plain test email to the accountant.

        Returns True when it went through SMTP, False when it was only logged.
        """
        self.validate_configuration()
        now = now or datetime.now()
        subject = f"Testovací e-mail - {now:%Y-%m-%d %H:%M:%S}"

        mime = MIMEMultipart()
        mime["From"] = self.config.from_email
        mime["To"] = self.config.accountant_email
        mime["Subject"] = Header(subject, "utf-8")
        mime["Date"] = formatdate(localtime=False)
        mime["Message-ID"] = make_msgid()
        mime.attach(MIMEText(TEST_EMAIL_BODY, "plain", "utf-8"))

        return self._deliver(mime, subject, extra={"test": True})

    def _deliver(self, mime: MIMEMultipart, subject: str, extra: dict) -> bool:
        if not self.config.smtp_configured:
            if not self.config.mail_log_fallback:
                raise TransportFault("SMTP not configured")
            logger.warning("SMTP not configured, logging email instead")
            logger.info(f"Email to {mime['To']}: {subject}", extra=extra)
            return False

        asyncio.run(self.transport(mime, self.config))
        return True

"""Monthly report email composition.

Builds the message descriptor (subject, template context, attachment) for a
monthly accountant report. Pure: no I/O, and dates are formatted from numeric
fields only so the output never depends on the system locale.
"""

from dataclasses import dataclass, field
from typing import Dict, Tuple

from jinja2 import Environment, StrictUndefined

from bookkeeping.core.errors import InvalidInput

ZIP_MIME_TYPE = "application/zip"
SUBJECT_TEMPLATE = "Měsíční přehled účetnictví {period_start} - {period_end}"
ATTACHMENT_NAME_TEMPLATE = "mesicni_prehled_{period}.zip"


@dataclass(frozen=True)
class Attachment:
    """File attached to an outgoing message."""

    path: str
    filename: str
    mime_type: str


@dataclass(frozen=True)
class MonthlyReportMessage:
    """Outgoing monthly report email, before transport."""

    subject: str
    template: str
    context: Tuple[Tuple[str, str], ...]
    attachments: Tuple[Attachment, ...] = field(default_factory=tuple)

    @property
    def context_dict(self) -> Dict[str, str]:
        return dict(self.context)


def _format_date(value) -> str:
    return f"{value.day:02d}.{value.month:02d}.{value.year:04d}"


def _format_datetime(value) -> str:
    return f"{_format_date(value)} {value.hour:02d}:{value.minute:02d}"


def attachment_filename(period_start) -> str:
    """Attachment name for the period, e.g. ``mesicni_prehled_2024_01.zip``."""
    return ATTACHMENT_NAME_TEMPLATE.format(period=f"{period_start.year:04d}_{period_start.month:02d}")


def compose_monthly_report_message(report, zip_path: str) -> MonthlyReportMessage:
    """Compose the monthly report email for ``report`` with ``zip_path`` attached.

    Raises InvalidInput if the period dates or ``generated_at`` are unset, or
    the attachment path is empty.
    """
    missing = [
        name
        for name in ("period_start", "period_end", "generated_at")
        if getattr(report, name, None) is None
    ]
    if missing:
        raise InvalidInput(f"Report is missing required fields: {', '.join(missing)}")
    if not zip_path or not str(zip_path).strip():
        raise InvalidInput("Attachment path is empty")

    period_start = _format_date(report.period_start)
    period_end = _format_date(report.period_end)
    generated_at = _format_datetime(report.generated_at)

    return MonthlyReportMessage(
        subject=SUBJECT_TEMPLATE.format(period_start=period_start, period_end=period_end),
        template="monthly_report",
        context=(
            ("period_start", period_start),
            ("period_end", period_end),
            ("generated_at", generated_at),
        ),
        attachments=(
            Attachment(
                path=str(zip_path),
                filename=attachment_filename(report.period_start),
                mime_type=ZIP_MIME_TYPE,
            ),
        ),
    )


MONTHLY_REPORT_TEMPLATE = """<!DOCTYPE html>
<html lang="cs">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Měsíční přehled účetnictví</title>
    <style>
        body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px; }
        .header { background-color: #f8f9fa; padding: 20px; border-radius: 8px; margin-bottom: 20px; text-align: center; }
        .content { padding: 20px 0; }
        .period-info { background-color: #e9ecef; padding: 15px; border-radius: 5px; margin: 20px 0; }
        .footer { margin-top: 30px; padding-top: 20px; border-top: 1px solid #dee2e6; font-size: 14px; color: #6c757d; }
        .highlight { background-color: #fff3cd; border: 1px solid #ffeeba; padding: 10px; border-radius: 5px; margin: 15px 0; }
    </style>
</head>
<body>
    <div class="header">
        <h1>Měsíční přehled účetnictví</h1>
        <p>Automaticky generovaný přehled pro účetní zpracování</p>
    </div>

    <div class="content">
        <p>Dobrý den,</p>
        <p>zasíláme Vám měsíční přehled účetnictví pro následující období:</p>

        <div class="period-info">
            <strong>Účetní období:</strong> {{ period_start }} - {{ period_end }}<br>
            <strong>Vygenerováno:</strong> {{ generated_at }}
        </div>

        <div class="highlight">
            <strong>Příloha obsahuje:</strong>
            <ul>
                <li><strong>vydaje.csv</strong> - Kompletní seznam všech výdajů včetně DPH</li>
                <li><strong>faktury.csv</strong> - Kompletní seznam všech vystavených faktur</li>
                <li><strong>faktury_pdf/</strong> - PDF kopie všech faktur pro archivaci</li>
                <li><strong>uctenky_pdf/</strong> - PDF kopie všech účtenek a dokladů</li>
                <li><strong>prehled.txt</strong> - Popis obsahu archivu</li>
            </ul>
        </div>

        <p>Všechny údaje jsou ve formátu vhodném pro přímé zpracování v účetním software.
           CSV soubory používají českou lokalizaci (čárka jako oddělovač desetinných míst,
           mezera jako oddělovač tisíců).</p>

        <p><strong>Důležité informace:</strong></p>
        <ul>
            <li>DPH sazby: 21% (standardní), 12% (snížená), 0% (osvobozeno)</li>
            <li>Všechny částky jsou v českých korunách (CZK)</li>
        </ul>

        <p>V případě jakýchkoliv dotazů nebo problémů nás prosím kontaktujte.</p>

        <p>S pozdravem,<br>
        <strong>Účetní systém</strong></p>
    </div>

    <div class="footer">
        <hr>
        <p><small>
            Tento email byl automaticky vygenerován systémem pro správu účetnictví.<br>
            Generováno: {{ generated_at }}<br>
            Pro technickou podporu kontaktujte: {{ support_email }}
        </small></p>
    </div>
</body>
</html>
"""

MONTHLY_REPORT_TEXT_TEMPLATE = """Měsíční přehled účetnictví

Účetní období: {{ period_start }} - {{ period_end }}
Vygenerováno: {{ generated_at }}

Přehled je v příloze ({{ attachment }}).
"""

_env = Environment(autoescape=True, undefined=StrictUndefined)
_html_template = _env.from_string(MONTHLY_REPORT_TEMPLATE)
_text_template = Environment(undefined=StrictUndefined).from_string(MONTHLY_REPORT_TEXT_TEMPLATE)


def render_monthly_report_html(message: MonthlyReportMessage, support_email: str) -> str:
    """Render the HTML body of ``message``."""
    return _html_template.render(support_email=support_email, **message.context_dict)


def render_monthly_report_text(message: MonthlyReportMessage) -> str:
    """Render the plain-text alternative of ``message``."""
    attachment = message.attachments[0].filename if message.attachments else ""
    return _text_template.render(attachment=attachment, **message.context_dict)

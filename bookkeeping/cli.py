"""CLI utilities."""

from datetime import date, datetime

import click

from bookkeeping.core.email import EmailService
from bookkeeping.core.errors import InvalidInput, ReportDeliveryError
from bookkeeping.core.logging import setup_logging
from bookkeeping.core.periods import default_report_period
from bookkeeping.core.repository import SqlReportRepository
from bookkeeping.models.report import EmailStatus
from bookkeeping.worker.delivery import MonthlyReportDeliveryJob
from bookkeeping.worker.executor import RetryingExecutor, RetryPolicy
from bookkeeping.worker.locks import RedisReportLock
from bookkeeping.worker.payloads import MonthlyReportDeliveryPayload


@click.group()
def cli():
    """Bookkeeping monthly report CLI."""
    setup_logging()


@cli.command()
@click.option("--period-start", default=None, help="Period start (YYYY-MM-DD)")
@click.option("--period-end", default=None, help="Period end (YYYY-MM-DD)")
@click.option("--zip-path", required=True, type=click.Path(exists=True, dir_okay=False), help="Generated report archive")
@click.option("--auto-send", is_flag=True, help="Queue the report for delivery to the accountant")
@click.option("--regenerate", is_flag=True, help="Reset an existing report for the period to pending")
def register_report(period_start: str, period_end: str, zip_path: str, auto_send: bool, regenerate: bool):
    """Register a generated report archive for delivery."""
    if bool(period_start) != bool(period_end):
        raise click.UsageError("--period-start and --period-end must be given together")
    if period_start:
        start, end = date.fromisoformat(period_start), date.fromisoformat(period_end)
    else:
        start, end = default_report_period()
    if start > end:
        raise click.UsageError("Period start must not be after period end")

    repository = SqlReportRepository()
    report = repository.find_by_period(start, end)
    if report:
        click.echo(f"Report for {start} to {end} already exists")
        if not regenerate:
            click.echo("Use --regenerate to reset it for delivery.")
            raise SystemExit(1)
        repository.update(
            report.id,
            {
                "generated_at": datetime.utcnow(),
                "email_status": EmailStatus.PENDING,
                "sent_at": None,
                "zip_path": zip_path,
            },
        )
        click.echo(f"Report {report.id} regenerated")
    else:
        report = repository.create(start, end, zip_path)
        click.echo(f"Report {report.id} registered for {start} to {end}")

    if auto_send:
        from bookkeeping.worker.tasks import enqueue_monthly_report

        enqueue_monthly_report(report.id)
        click.echo("Report will be sent to the accountant shortly.")


@cli.command()
@click.argument("report_id", type=int)
def send_report(report_id: int):
    """Queue a report for delivery."""
    from bookkeeping.worker.tasks import enqueue_monthly_report

    enqueue_monthly_report(report_id)
    click.echo("Delivery queued. Check worker logs for progress.")


@cli.command()
@click.argument("report_id", type=int)
def send_report_now(report_id: int):
    """Deliver a report in this process, with retries."""
    executor = RetryingExecutor(RetryPolicy.from_settings())
    policy = executor.policy
    # The lock outlives an abandoned attempt until the executor stops waiting for it
    lock_timeout = int(policy.attempt_timeout + policy.backoff_seconds + executor.abandon_grace)
    job = MonthlyReportDeliveryJob(
        repository=SqlReportRepository(),
        email_service=EmailService(),
        lock=RedisReportLock(timeout=lock_timeout),
    )
    try:
        outcome = executor.execute(job, MonthlyReportDeliveryPayload(report_id=report_id))
    except Exception as e:
        click.echo(f"Delivery of report {report_id} failed: {e}", err=True)
        raise SystemExit(1)
    click.echo(f"Report {report_id}: {outcome.value}")


@cli.command()
@click.option("--dry-run", is_flag=True, help="Only check the configuration, send nothing")
def test_email(dry_run: bool):
    """Check the mail configuration and send a test email to the accountant."""
    service = EmailService()
    config = service.config
    click.echo(f"SMTP server: {config.smtp_host}:{config.smtp_port}")
    click.echo(f"Accountant email: {config.accountant_email or '-'}")

    try:
        service.validate_configuration()
    except InvalidInput as e:
        click.echo(str(e), err=True)
        raise SystemExit(1)
    if not config.smtp_configured:
        fallback = "logged instead" if config.mail_log_fallback else "not delivered"
        click.echo(f"SMTP credentials are not configured, emails will be {fallback}")

    if dry_run:
        click.echo("Configuration test completed (dry run)")
        return

    try:
        delivered = service.send_test_email()
    except ReportDeliveryError as e:
        click.echo(f"Failed to send test email: {e}", err=True)
        raise SystemExit(1)
    click.echo("Test email sent" if delivered else "Test email logged")


@cli.command()
@click.option("--limit", default=20, show_default=True)
def list_reports(limit: int):
    """List monthly reports."""
    for report in SqlReportRepository().list_by_status(limit=limit):
        sent_at = report.sent_at.isoformat(timespec="minutes") if report.sent_at else "-"
        click.echo(
            f"{report.id:>5}  {report.period_start} - {report.period_end}  "
            f"{report.email_status.value:<8} {sent_at}"
        )


if __name__ == "__main__":
    cli()

"""Tests for accounting periods."""

from datetime import date

from bookkeeping.core.periods import default_report_period


def test_period_on_the_15th():
    """Test the run on the 15th covers the previous 14th to this 14th."""
    assert default_report_period(date(2024, 7, 15)) == (date(2024, 6, 14), date(2024, 7, 14))


def test_period_before_the_15th():
    """Test an early run covers the period that ended last month."""
    assert default_report_period(date(2024, 7, 3)) == (date(2024, 5, 14), date(2024, 6, 14))


def test_period_across_year_boundary():
    """Test January and February runs reach into the previous year."""
    assert default_report_period(date(2025, 1, 20)) == (date(2024, 12, 14), date(2025, 1, 14))
    assert default_report_period(date(2025, 1, 10)) == (date(2024, 11, 14), date(2024, 12, 14))

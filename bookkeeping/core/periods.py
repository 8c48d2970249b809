"""Accounting period helpers."""

from datetime import date
from typing import Optional, Tuple

PERIOD_BOUNDARY_DAY = 14


def _shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def default_report_period(today: Optional[date] = None) -> Tuple[date, date]:
    """Get the just-completed accounting period (14th of one month to the 14th of the next).

    Reports are generated on the 15th. Before the 15th the period that ended
    last month is returned.
    """
    today = today or date.today()
    offset = 0 if today.day > PERIOD_BOUNDARY_DAY else -1
    end_year, end_month = _shift_month(today.year, today.month, offset)
    start_year, start_month = _shift_month(end_year, end_month, -1)
    return (
        date(start_year, start_month, PERIOD_BOUNDARY_DAY),
        date(end_year, end_month, PERIOD_BOUNDARY_DAY),
    )

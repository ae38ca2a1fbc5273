"""Date arithmetic for timeline navigation. All dates are ISO `YYYY-MM-DD`."""
from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def shift_weeks(anchor: date, weeks: int) -> date:
    return anchor + timedelta(days=7 * weeks)


def shift_months(anchor: date, months: int) -> date:
    """
    Move by whole calendar months.

    The day is clamped to the last day of the target month, so Jan 31 + 1
    month is Feb 28/29 rather than spilling into March.
    """
    month_index = anchor.year * 12 + (anchor.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(anchor.day, last_day))

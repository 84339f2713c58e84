from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo


def shift_months(month_start: date, offset: int) -> date:
    # Normalize any input date to month start for stable month arithmetic.
    absolute_index = (month_start.year * 12 + (month_start.month - 1)) + offset
    next_year, month_zero_based = divmod(absolute_index, 12)
    return date(next_year, month_zero_based + 1, 1)


def today_in(tz_name: str, *, now: datetime | None = None) -> date:
    """Calendar date in `tz_name`; must match the DB session TimeZone."""
    current = now or datetime.now(timezone.utc)
    return current.astimezone(ZoneInfo(tz_name)).date()


def current_month_window(today: date | None = None, *, tz_name: str = "UTC") -> tuple[date, date]:
    """Build [month_start, next_month_start) around `today`."""
    current = today or today_in(tz_name)
    month_start = date(current.year, current.month, 1)
    return month_start, shift_months(month_start, 1)

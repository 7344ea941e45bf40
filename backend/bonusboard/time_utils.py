from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone
from typing import Optional

# Stores operate on Brasilia time; day boundaries never follow the host timezone.
STORE_TZ = timezone(timedelta(hours=-3))


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def local_now() -> datetime:
    """'Now' at the stores (fixed UTC-3, tz-aware)."""
    return datetime.now(STORE_TZ)


def local_today() -> date:
    return local_now().date()


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a 'YYYY-MM-DD' calendar date.

    - None / "" -> None
    - a longer ISO timestamp is truncated to its date part
    """
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    return date.fromisoformat(s[:10])


def to_iso_date(d: Optional[date]) -> Optional[str]:
    if d is None:
        return None
    return d.isoformat()


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def inclusive_days(start: date, end: date) -> int:
    """Number of calendar days in [start, end], both ends counted."""
    return (end - start).days + 1


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def month_bounds(day: date) -> tuple[date, date]:
    first = day.replace(day=1)
    last = day.replace(day=days_in_month(day.year, day.month))
    return first, last


def monday_week_bounds(day: date) -> tuple[date, date]:
    """Monday..Sunday week containing `day`."""
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=6)


def previous_sunday_week(day: date) -> tuple[date, date]:
    """
    The last fully closed Sunday..Saturday week before `day`.

    Bonuses are paid on Mondays for that week.
    """
    # weekday(): Monday=0 .. Sunday=6
    days_since_sunday = (day.weekday() + 1) % 7
    this_sunday = day - timedelta(days=days_since_sunday)
    start = this_sunday - timedelta(days=7)
    return start, start + timedelta(days=6)


def payment_monday(day: date) -> date:
    """Monday on which the previous week's bonuses are paid."""
    if day.weekday() == 6:
        return day + timedelta(days=1)
    return day - timedelta(days=day.weekday())

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """
    Parse "YYYY-MM-DD" (or the date part of an ISO datetime).

    - None / "" -> None
    - raises ValueError on malformed input
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    return date.fromisoformat(s[:10])


def local_midnight_utc(day: date, tz_name: str) -> datetime:
    """Start of `day` in zone `tz_name`, expressed as a UTC-naive datetime."""
    local = datetime.combine(day, time.min).replace(tzinfo=ZoneInfo(tz_name))
    return local.astimezone(timezone.utc).replace(tzinfo=None)


def period_start_utc(period: str, tz_name: str, now: Optional[datetime] = None) -> datetime:
    """
    Calendar start of the named period containing `now`.

    period: today | week | month | year. Weeks start on Monday.
    `now` is UTC-naive (defaults to utcnow()); the result is UTC-naive.
    """
    now = now or utcnow()
    local_today = now.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(tz_name)).date()

    if period == "today":
        start = local_today
    elif period == "week":
        start = local_today - timedelta(days=local_today.weekday())
    elif period == "month":
        start = local_today.replace(day=1)
    elif period == "year":
        start = local_today.replace(month=1, day=1)
    else:
        raise ValueError(f"Unknown period: {period}")

    return local_midnight_utc(start, tz_name)


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

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


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


def truncate_to_millis(dt: datetime) -> datetime:
    return dt.replace(microsecond=(dt.microsecond // 1000) * 1000)


def epoch_millis(dt: datetime) -> int:
    """Milliseconds since the epoch for a UTC-naive datetime (exact, no float math)."""
    return calendar.timegm(dt.timetuple()) * 1000 + dt.microsecond // 1000


def parse_business_datetime(value, *, now: Optional[datetime] = None) -> datetime:
    """
    Normalize a business date/time supplied by a client.

    A bare date ("2025-03-01" or a date object) takes its time-of-day from the
    server clock so that two batches entered on the same day stay distinct.
    The result is UTC-naive and truncated to milliseconds.
    """
    now = now or utcnow()

    if value is None:
        return truncate_to_millis(now)

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return truncate_to_millis(value)

    if isinstance(value, date):
        return truncate_to_millis(datetime.combine(value, now.time()))

    if isinstance(value, str):
        s = value.strip()
        if len(s) == 10:
            d = date.fromisoformat(s)
            return truncate_to_millis(datetime.combine(d, now.time()))
        dt = parse_iso_datetime(s)
        if dt is None:
            raise ValueError("invalid date")
        return truncate_to_millis(dt)

    raise ValueError("invalid date")


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Inclusive [start, end] datetimes covering one calendar day."""
    return datetime.combine(day, time.min), datetime.combine(day, time.max)

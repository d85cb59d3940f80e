from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context

DEFAULT_BUSINESS_TIMEZONE = "Asia/Tokyo"


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.utcnow()


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


# =============================================================================
# BUSINESS CALENDAR
# =============================================================================
#
# Sale timestamps are stored UTC-naive like every other datetime. Business
# days (purchase dates, closing dates, trend buckets, job dates) are local
# calendar dates in BUSINESS_TIMEZONE.

def business_tz() -> ZoneInfo:
    name = DEFAULT_BUSINESS_TIMEZONE
    if has_app_context():
        name = current_app.config.get("BUSINESS_TIMEZONE", DEFAULT_BUSINESS_TIMEZONE)
    return ZoneInfo(name)


def local_today() -> date:
    return datetime.now(business_tz()).date()


def local_yesterday() -> date:
    return local_today() - timedelta(days=1)


def local_date_of(dt: datetime) -> date:
    """Business date of a UTC-naive timestamp."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(business_tz()).date()


def local_day_start_utc(d: date) -> datetime:
    """UTC-naive instant at which business day `d` starts."""
    local_start = datetime.combine(d, time.min, tzinfo=business_tz())
    return local_start.astimezone(timezone.utc).replace(tzinfo=None)


_DATE_PATTERNS = (
    re.compile(r"^(\d{4})[/-](\d{1,2})[/-](\d{1,2})$"),
    re.compile(r"^(\d{4})(\d{2})(\d{2})$"),
)

_MONTH_PATTERNS = (
    re.compile(r"^(\d{4})[/-](\d{1,2})$"),
    re.compile(r"^(\d{4})(\d{2})$"),
)


def parse_business_date(value) -> date:
    """
    Accepts a date, "yyyy/MM/dd", "yyyy-MM-dd" or "yyyyMMdd".

    Raises ValueError on anything else.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError("invalid date")
    s = value.strip()
    for pattern in _DATE_PATTERNS:
        m = pattern.match(s)
        if m:
            return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    raise ValueError(f"invalid date: {value!r}")


def parse_month(value) -> date:
    """
    Accepts "YYYY-MM", "YYYY/MM", "YYYYMM" or a date; returns the first day
    of that month.
    """
    if isinstance(value, date):
        return value.replace(day=1)
    if not isinstance(value, str):
        raise ValueError("invalid month")
    s = value.strip()
    for pattern in _MONTH_PATTERNS:
        m = pattern.match(s)
        if m:
            return date(int(m.group(1)), int(m.group(2)), 1)
    raise ValueError(f"invalid month: {value!r}")


def add_months(d: date, months: int) -> date:
    """First day of the month `months` away from `d`'s month."""
    index = d.year * 12 + (d.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def months_spanned(start: date, end: date) -> int:
    """Inclusive count of calendar months from `start` to `end`."""
    return (end.year * 12 + end.month) - (start.year * 12 + start.month) + 1


def month_label(d: date) -> str:
    return d.strftime("%Y%m")


def day_key(d: date) -> str:
    return d.strftime("%Y/%m/%d")

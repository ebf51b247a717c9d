"""Timestamp utilities for UTC handling and registry date parsing.

This module provides utilities for working with timestamps and calendar dates:
- Getting current UTC time
- Converting timezone-naive to timezone-aware UTC
- Parsing the date encodings found in company registries
- Calendar arithmetic used by recency rules
"""

import calendar
import re
from datetime import date, datetime, timezone
from typing import Optional, Union

# DD/MM/YYYY, as printed on French registry pages
_LOCALIZED_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Current UTC time with timezone info
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure a datetime is timezone-aware and in UTC.

    If the datetime is timezone-naive, it's treated as UTC.
    If the datetime has a different timezone, it's converted to UTC.

    Args:
        dt: Datetime to convert (can be None)

    Returns:
        Timezone-aware datetime in UTC, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def parse_iso_datetime(iso_string: str) -> Optional[datetime]:
    """Parse an ISO 8601 datetime string to UTC datetime.

    Supports:
    - 2025-11-04T12:00:00Z
    - 2025-11-04T12:00:00+00:00
    - 2025-11-04T12:00:00
    - 2025-11-04

    Args:
        iso_string: ISO 8601 formatted datetime string

    Returns:
        Timezone-aware datetime in UTC, or None if parsing fails
    """
    if not iso_string or not iso_string.strip():
        return None

    cleaned = iso_string.strip()
    if cleaned.endswith("Z"):
        cleaned = cleaned[:-1] + "+00:00"

    try:
        return ensure_utc(datetime.fromisoformat(cleaned))
    except ValueError:
        try:
            return ensure_utc(datetime.strptime(iso_string.strip(), "%Y-%m-%d"))
        except ValueError:
            return None


def parse_registry_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """Parse a company creation date from any supported registry encoding.

    Accepts ISO dates (``2025-11-04``, with or without a time part) and the
    localized ``DD/MM/YYYY`` form. ``date`` and ``datetime`` values pass
    through.

    Args:
        value: Raw date value from an upstream record

    Returns:
        Calendar date, or None if the value is absent or unparseable
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    match = _LOCALIZED_DATE.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            return None

    parsed = parse_iso_datetime(text)
    return parsed.date() if parsed else None


def subtract_months(day: date, months: int) -> date:
    """Step back a number of calendar months, clamping to the month's last day.

    Example:
        >>> subtract_months(date(2025, 5, 31), 3)
        datetime.date(2025, 2, 28)
    """
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def format_date(day: date) -> str:
    """Format a date as ISO ``YYYY-MM-DD`` with no time part."""
    return day.isoformat()

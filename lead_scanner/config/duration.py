"""Scan interval parsing for scheduled mode."""

import re

# Seconds per unit, shared by both accepted notations
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}

_ISO_PATTERN = re.compile(
    r"^P(?:(?P<d>\d+)D)?(?:T(?:(?P<h>\d+)H)?(?:(?P<m>\d+)M)?(?:(?P<s>\d+)S)?)?$"
)
_COMPACT_TOKEN = re.compile(r"(\d+)([smhd])")

MIN_SCAN_INTERVAL = 3600
MAX_SCAN_INTERVAL = 7 * 86400


class DurationParseError(ValueError):
    """Raised when a duration string cannot be parsed."""


def parse_duration(duration_str: str) -> int:
    """
    Parse a scan interval to seconds.

    Accepts the compact form (``"24h"``, ``"1d12h"``, ``"90m"``) and ISO-8601
    durations (``"P1D"``, ``"PT6H"``).

    Raises:
        DurationParseError: If the string is empty, malformed or zero

    Examples:
        >>> parse_duration("24h")
        86400
        >>> parse_duration("PT6H")
        21600
    """
    text = re.sub(r"\s+", "", duration_str or "").lower()
    if not text:
        raise DurationParseError("Duration string cannot be empty")

    if text.startswith("p"):
        total = _parse_iso(text.upper(), duration_str)
    else:
        total = _parse_compact(text, duration_str)

    if total == 0:
        raise DurationParseError(f"Duration cannot be zero: '{duration_str}'")
    return total


def _parse_iso(text: str, original: str) -> int:
    match = _ISO_PATTERN.match(text)
    if not match or text in ("P", "PT"):
        raise DurationParseError(
            f"Invalid ISO-8601 duration: '{original}'. Expected e.g. 'P1D' or 'PT6H'"
        )
    parts = match.groupdict()
    return sum(int(parts[unit] or 0) * _UNIT_SECONDS[unit] for unit in _UNIT_SECONDS)


def _parse_compact(text: str, original: str) -> int:
    tokens = _COMPACT_TOKEN.findall(text)
    if not tokens or "".join(num + unit for num, unit in tokens) != text:
        raise DurationParseError(
            f"Invalid duration: '{original}'. "
            "Use digits with units s, m, h, d (e.g. '24h', '1d12h')"
        )
    return sum(int(num) * _UNIT_SECONDS[unit] for num, unit in tokens)


def validate_duration_range(
    duration_seconds: int,
    min_seconds: int = MIN_SCAN_INTERVAL,
    max_seconds: int = MAX_SCAN_INTERVAL,
) -> None:
    """
    Check that an interval lies within the allowed scheduling window.

    Raises:
        DurationParseError: If the interval is outside [min_seconds, max_seconds]
    """
    if duration_seconds < min_seconds:
        raise DurationParseError(
            f"Scan interval too short: {humanize_seconds(duration_seconds)}. "
            f"Minimum is {humanize_seconds(min_seconds)}."
        )
    if duration_seconds > max_seconds:
        raise DurationParseError(
            f"Scan interval too long: {humanize_seconds(duration_seconds)}. "
            f"Maximum is {humanize_seconds(max_seconds)}."
        )


def humanize_seconds(seconds: int) -> str:
    """Render seconds with the largest whole unit, e.g. ``"2 days"``."""
    for label, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if seconds >= size:
            count = seconds // size
            return f"{count} {label}{'s' if count != 1 else ''}"
    return f"{seconds} second{'s' if seconds != 1 else ''}"

"""Utility functions for time handling and registry date parsing."""

from .timestamps import (
    ensure_utc,
    format_date,
    parse_iso_datetime,
    parse_registry_date,
    subtract_months,
    utc_now,
)

__all__ = [
    "utc_now",
    "ensure_utc",
    "parse_iso_datetime",
    "parse_registry_date",
    "subtract_months",
    "format_date",
]

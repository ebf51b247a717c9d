"""Additional validation utilities for configuration."""

import warnings
from typing import Any, Dict, List

MIN_SAFE_PARTITION_DELAY = 0.1
LARGE_MAX_PAGES = 100


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """
    Check raw configuration for legal but risky settings.

    Args:
        config_dict: Raw configuration dictionary

    Returns:
        List of warning messages
    """
    warning_messages = []

    for source in config_dict.get("sources") or []:
        if isinstance(source, dict) and not source.get("enabled", True):
            name = source.get("name", "Unknown")
            warning_messages.append(f"Source '{name}' is disabled and will be skipped")

    advanced = config_dict.get("advanced") or {}
    if isinstance(advanced, dict):
        delay = advanced.get("partition_delay_seconds")
        if isinstance(delay, (int, float)) and 0 <= delay < MIN_SAFE_PARTITION_DELAY:
            warning_messages.append(
                f"Very small partition_delay_seconds ({delay}) may trigger upstream rate limits"
            )

        max_pages = advanced.get("max_pages")
        if isinstance(max_pages, int) and max_pages > LARGE_MAX_PAGES:
            warning_messages.append(
                f"Large max_pages ({max_pages}) makes each partition slow to scan"
            )

    partitions = config_dict.get("partitions")
    if isinstance(partitions, list):
        odd = [str(p) for p in partitions if not str(p).strip().isalnum()]
        if odd:
            warning_messages.append(
                f"Partitions that do not look like department codes: {', '.join(odd)}"
            )

    return warning_messages


def emit_warnings(warning_messages: List[str]) -> None:
    """Emit warning messages using Python's warnings module."""
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)

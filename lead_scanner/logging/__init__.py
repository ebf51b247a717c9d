"""Structured logging for the lead scanner.

Every module obtains its logger through ``get_logger(__name__, component=...)``
so that records carry a ``component`` field next to the per-call ``event``
field and whatever run context (run_id, partition, source) is active.
"""

import logging
from typing import Optional


class ComponentLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges the component field with per-call extra fields."""

    def process(self, msg, kwargs):
        """Merge adapter extra with call extra; the call's fields win."""
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str, component: Optional[str] = None):
    """Get a logger with an optional default component field.

    Args:
        name: Logger name (typically __name__)
        component: Optional component identifier injected into all records

    Returns:
        Logger or ComponentLoggerAdapter instance

    Example:
        >>> logger = get_logger(__name__, component="probe")
        >>> logger.info("Website reachable", extra={"event": "probe.reachable"})
    """
    logger = logging.getLogger(name)

    if component:
        return ComponentLoggerAdapter(logger, {"component": component})

    return logger

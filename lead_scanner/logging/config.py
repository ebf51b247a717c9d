"""Logging configuration for the company lead scanner.

Records leave through one stderr handler, rendered either as JSON lines or
as ``key=value`` text. Both renderings lead with the scan scope (run_id,
partition, source), then the emitting component and event, then the
remaining fields in name order, so lines from one partition read alike.
"""

import json
import logging
import sys
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Literal, Tuple

from .context import SCOPE_FIELDS, get_log_context

LogFormat = Literal["json", "key-value"]

SERVICE_NAME = "company-lead-scanner"

LEADING_FIELDS = SCOPE_FIELDS + ("component", "event")

# LogRecord attributes that are plumbing rather than structured fields
_RECORD_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "message", "pathname", "process",
    "processName", "relativeCreated", "thread", "threadName", "asctime",
    "exc_info", "exc_text", "stack_info", "taskName",
})


def ordered_fields(record: logging.LogRecord, skip=frozenset()) -> List[Tuple[str, Any]]:
    """Structured fields of a record: leading fields first, the rest sorted."""
    fields = {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and key not in skip and not key.startswith("_")
    }
    leading = [(key, fields.pop(key)) for key in LEADING_FIELDS if key in fields]
    return leading + sorted(fields.items())


class ContextualFilter(logging.Filter):
    """Stamp records with the service metadata and the active scan scope.

    Fields passed explicitly through ``extra`` win over scope fields.
    """

    def __init__(self, service: str = SERVICE_NAME, environment: str = "local"):
        super().__init__()
        self.service = service
        self.environment = environment

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self.service
        record.environment = self.environment

        for key, value in get_log_context().items():
            if not hasattr(record, key):
                setattr(record, key, value)

        return True


def _json_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (str, int, float, bool, list, dict, type(None))):
        return value
    return str(value)


class JSONFormatter(logging.Formatter):
    """One JSON object per line; ``timestamp``, ``level``, ``logger``, ``message`` first."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "timestamp": self._format_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_obj.update((key, _json_value(value)) for key, value in ordered_fields(record))

        if record.exc_info:
            log_obj["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, ensure_ascii=False)

    @staticmethod
    def _format_timestamp(created: float) -> str:
        """ISO-8601 UTC, millisecond precision, 'Z' suffix."""
        dt = datetime.fromtimestamp(created, tz=timezone.utc)
        return dt.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


class KeyValueFormatter(logging.Formatter):
    """``timestamp [level] logger: message run_id=... partition=... key=value``

    Service metadata is left out; it is constant for a process.
    """

    _SKIP = frozenset({"service", "environment"})

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        pairs = " ".join(
            f"{key}={self._format_value(value)}"
            for key, value in ordered_fields(record, self._SKIP)
        )
        return f"{base} {pairs}" if pairs else base

    @staticmethod
    def _format_value(value: Any) -> str:
        if isinstance(value, bool):
            return str(value).lower()
        if value is None:
            return "null"
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, (list, tuple)):
            return ",".join(str(item) for item in value)
        if isinstance(value, str) and (" " in value or "=" in value or "," in value):
            return f'"{value}"'
        return str(value)


def build_handler(format_type: LogFormat, environment: str) -> logging.Handler:
    """Stderr handler with the chosen rendering and the scope filter attached.

    stderr keeps stdout free for the CLI summary.
    """
    handler = logging.StreamHandler(sys.stderr)
    if format_type == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            KeyValueFormatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    handler.addFilter(ContextualFilter(service=SERVICE_NAME, environment=environment))
    return handler


def configure_logging(
    level: str = "INFO",
    format_type: LogFormat = "key-value",
    environment: str = "local",
) -> None:
    """
    Route all records through a single handler on the root logger.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: 'json' for JSON lines or 'key-value' for human-readable output
        environment: Deployment label stamped on every record

    Raises:
        ValueError: If level or format_type is invalid
    """
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")

    if format_type not in ("json", "key-value"):
        raise ValueError(f"Invalid log format: {format_type}. Must be 'json' or 'key-value'")

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()
    root_logger.addHandler(build_handler(format_type, environment))

    # urllib3 retry and connection chatter would bury the scan events at DEBUG
    logging.getLogger("urllib3").setLevel(max(numeric_level, logging.WARNING))

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={
            "event": "logging.configured",
            "component": "logging",
            "log_level": level.upper(),
            "log_format": format_type,
        },
    )

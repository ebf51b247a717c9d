"""Scan-scoped fields for structured logging.

A scan stamps every record it emits with where it is in the run: the run id,
then the partition and source being fetched. Those fields live in a
ContextVar, so concurrent runs and their worker threads never see each
other's scope.
"""

from contextlib import contextmanager
from contextvars import ContextVar, Token, copy_context
from functools import partial
from typing import Any, Callable, Dict, Iterator

# Fields that locate a record inside a scan, outermost first
SCOPE_FIELDS = ("run_id", "partition", "source")

LogContextVar: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the fields currently in scope."""
    return LogContextVar.get().copy()


def push_log_context(**fields) -> Token:
    """Layer fields over the current scope; None values are not recorded.

    Returns:
        Token for pop_log_context()

    Example:
        >>> token = push_log_context(run_id="abc123", partition="44")
        >>> pop_log_context(token)
    """
    layer = {key: value for key, value in fields.items() if value is not None}
    return LogContextVar.set({**LogContextVar.get(), **layer})


def pop_log_context(token: Token) -> None:
    LogContextVar.reset(token)


def clear_log_context() -> None:
    LogContextVar.set({})


@contextmanager
def log_context(**fields) -> Iterator[Dict[str, Any]]:
    """Scope fields to a block; the previous scope is restored on exit.

    Example:
        >>> with log_context(run_id="abc123"):
        ...     with log_context(partition="49", source="registry_search"):
        ...         logger.info("Fetching partition")  # carries all three fields
    """
    token = push_log_context(**fields)
    try:
        yield get_log_context()
    finally:
        pop_log_context(token)


def in_current_context(func: Callable[..., Any]) -> Callable[..., Any]:
    """Bind ``func`` to a snapshot of the caller's scope.

    Pool workers start with an empty scope; submit the returned callable so
    the probe and detail-page records keep their run and partition fields.
    Take one snapshot per submitted task.
    """
    return partial(copy_context().run, func)

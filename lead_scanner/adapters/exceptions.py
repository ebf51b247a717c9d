"""Custom exceptions for source adapters."""

from typing import Optional


class AdapterError(Exception):
    """Base exception for all adapter errors.

    Catching this exception catches any adapter failure that the pipeline
    handles at partition level (log, count, continue with the next partition).
    """


class AdapterHTTPError(AdapterError):
    """HTTP request failed or returned a 4xx/5xx status.

    ``status_code`` is 0 when no response was received (connection refused,
    DNS failure, reset).
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        url: str,
        retry_after: Optional[float] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url
        self.retry_after = retry_after

    @property
    def is_transient(self) -> bool:
        """Connection failures, rate limiting and server errors may succeed later."""
        return self.status_code == 0 or self.status_code == 429 or self.status_code >= 500


class AdapterTimeoutError(AdapterError):
    """HTTP request timed out."""

    def __init__(self, message: str, url: str) -> None:
        super().__init__(message)
        self.url = url

    @property
    def is_transient(self) -> bool:
        return True


class AdapterResponseError(AdapterError):
    """Response parsing or validation failed.

    The adapter received a response but could not use it (invalid JSON,
    unexpected top-level shape).
    """


class AdapterConfigurationError(AdapterError):
    """Invalid adapter configuration (unknown source type, bad timeout)."""

"""Base adapter class with shared functionality for all source adapters.

This module provides the abstract base class every source adapter implements,
along with the shared HTTP plumbing: one session per adapter, explicit
timeouts, User-Agent rotation, retry with back-off and cancellation.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence

import requests

from lead_scanner.config.models import DEFAULT_USER_AGENTS, RetryPolicy
from lead_scanner.domain.models import RawRecord
from lead_scanner.logging import get_logger

from .exceptions import (
    AdapterConfigurationError,
    AdapterHTTPError,
    AdapterResponseError,
    AdapterTimeoutError,
)

logger = get_logger(__name__, component="adapter")

# Upper bound for a server-provided Retry-After
MAX_RETRY_AFTER_SECONDS = 60.0


@dataclass
class PartitionPage:
    """One page of raw records for a partition.

    Attributes:
        records: Source-shaped records, in upstream order
        next_cursor: Cursor of the following page, or None when the partition is exhausted
    """

    records: List[RawRecord] = field(default_factory=list)
    next_cursor: Optional[int] = None


class BaseAdapter(ABC):
    """Base class for all source adapters.

    Subclasses implement ``fetch_partition``; ``iter_partition`` drives the
    pagination. The adapter owns a ``requests.Session`` and must be closed
    (``close()`` or ``with`` block) when the partition loop ends.

    Attributes:
        timeout: HTTP request timeout in seconds
        retry_policy: Retry schedule for transient failures
        cancel_event: Run-wide cancellation flag
    """

    ADAPTER_NAME = "base"
    # Normalizer field map used for this adapter's records
    SOURCE_KIND = "canonical"

    first_cursor: Optional[int] = 1

    def __init__(
        self,
        timeout: int = 30,
        user_agents: Optional[Sequence[str]] = None,
        retry_policy: Optional[RetryPolicy] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        """Initialize adapter with configuration.

        Args:
            timeout: HTTP request timeout in seconds (range 5-300)
            user_agents: User-Agent pool, rotated round-robin across requests
            retry_policy: Retry schedule (defaults to 3 attempts, 1s, x2)
            cancel_event: Event that, once set, stops paging and retry waits

        Raises:
            AdapterConfigurationError: If timeout is outside the valid range or the
                User-Agent pool is empty
        """
        if not 5 <= timeout <= 300:
            raise AdapterConfigurationError(
                f"Timeout must be between 5 and 300 seconds, got: {timeout}"
            )

        agents = [agent.strip() for agent in (user_agents or DEFAULT_USER_AGENTS) if agent.strip()]
        if not agents:
            raise AdapterConfigurationError("user_agents cannot be empty")

        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.cancel_event = cancel_event or threading.Event()

        self._user_agents = agents
        self._agent_index = 0
        self._agent_lock = threading.Lock()

        # Values masked out of log lines and error messages
        self._secrets: List[str] = []

        self._session = requests.Session()
        self._session.headers.update({"Accept-Language": "fr-FR,fr;q=0.9,en;q=0.8"})

    @abstractmethod
    def fetch_partition(self, partition_key: str, cursor: Optional[int]) -> PartitionPage:
        """Fetch one page of raw records for a partition.

        Args:
            partition_key: Department code (e.g. "44")
            cursor: Page cursor; ``first_cursor`` for the first call

        Returns:
            PartitionPage with the records and the next cursor (None when done)

        Raises:
            AdapterError: On HTTP, timeout or response-shape failures. Its subclasses
            indicate specific error types:
            - AdapterHTTPError: HTTP 4xx/5xx errors or connection failures
            - AdapterResponseError: Response parsing/validation failed
            - AdapterTimeoutError: Request timed out
        """

    def iter_partition(self, partition_key: str) -> Iterator[PartitionPage]:
        """Yield pages from ``first_cursor`` until exhausted or cancelled."""
        cursor = self.first_cursor
        while cursor is not None and not self.cancelled:
            page = self.fetch_partition(partition_key, cursor)
            yield page
            cursor = page.next_cursor

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def close(self) -> None:
        """Release the HTTP session."""
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def next_user_agent(self) -> str:
        """Return the next User-Agent of the pool (round-robin, thread-safe)."""
        with self._agent_lock:
            agent = self._user_agents[self._agent_index % len(self._user_agents)]
            self._agent_index += 1
        return agent

    def _make_request(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """GET a JSON document, retrying transient failures.

        Returns:
            Parsed JSON response (dict or list)

        Raises:
            AdapterHTTPError: On 4xx/5xx status or connection failure after retries
            AdapterTimeoutError: On request timeout after retries
            AdapterResponseError: On invalid JSON
        """
        response = self._request_with_retry(url, params=params, headers=headers)

        try:
            return response.json()
        except ValueError as e:
            logger.error(
                f"Failed to parse JSON response from {url}",
                extra={
                    "event": "adapter.fetch.error",
                    "error_type": "JSONDecodeError",
                    "url": url,
                },
            )
            raise AdapterResponseError(f"Failed to parse JSON response from {url}: {e}") from e

    def _fetch_html(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> str:
        """GET an HTML page, retrying transient failures, and return its text."""
        response = self._request_with_retry(
            url,
            params=params,
            headers={"Accept": "text/html,application/xhtml+xml"},
        )
        return response.text

    def _request_with_retry(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        attempt = 1
        while True:
            try:
                return self._send(url, params=params, headers=headers)
            except (AdapterHTTPError, AdapterTimeoutError) as e:
                if not e.is_transient or attempt >= self.retry_policy.max_attempts:
                    raise

                delay = self.retry_policy.delay_for(attempt)
                retry_after = getattr(e, "retry_after", None)
                if retry_after is not None:
                    delay = max(delay, min(retry_after, MAX_RETRY_AFTER_SECONDS))

                logger.warning(
                    f"Retrying {url} in {delay:.1f}s",
                    extra={
                        "event": "adapter.fetch.retry",
                        "url": url,
                        "attempt": attempt,
                        "max_attempts": self.retry_policy.max_attempts,
                        "delay_seconds": delay,
                        "error_type": type(e).__name__,
                    },
                )

                # wait() returns True as soon as the run is cancelled
                if self.cancel_event.wait(delay):
                    raise
                attempt += 1

    def _send(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        """Perform a single GET and map failures onto adapter exceptions."""
        request_headers = {"User-Agent": self.next_user_agent()}
        if headers:
            request_headers.update(headers)

        logger.debug(
            f"HTTP GET request to {url}",
            extra={
                "event": "adapter.fetch.request",
                "url": url,
                "timeout": self.timeout,
            },
        )

        try:
            response = self._session.request(
                method="GET",
                url=url,
                headers=request_headers,
                params=params,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            logger.warning(
                f"Request to {url} timed out after {self.timeout} seconds",
                extra={
                    "event": "adapter.fetch.retryable_error",
                    "error_type": "Timeout",
                    "url": url,
                    "timeout": self.timeout,
                },
            )
            raise AdapterTimeoutError(
                f"Request to {url} timed out after {self.timeout} seconds",
                url=url,
            ) from e
        except requests.exceptions.RequestException as e:
            reason = self._redact(str(e))
            logger.warning(
                f"Request to {url} failed: {reason}",
                extra={
                    "event": "adapter.fetch.retryable_error",
                    "error_type": type(e).__name__,
                    "url": url,
                },
            )
            raise AdapterHTTPError(
                f"Request to {url} failed: {reason}",
                status_code=0,
                url=url,
            ) from None

        if response.status_code >= 400:
            error = AdapterHTTPError(
                f"HTTP {response.status_code}: {response.reason}",
                status_code=response.status_code,
                url=url,
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
            )
            logger.log(
                logging.WARNING if error.is_transient else logging.ERROR,
                f"HTTP {response.status_code} error from {url}",
                extra={
                    "event": (
                        "adapter.fetch.retryable_error" if error.is_transient
                        else "adapter.fetch.error"
                    ),
                    "status_code": response.status_code,
                    "url": url,
                    "retry_after_seconds": error.retry_after,
                },
            )
            raise error

        logger.debug(
            "HTTP request succeeded",
            extra={
                "event": "adapter.fetch.succeeded",
                "status_code": response.status_code,
                "url": url,
            },
        )
        return response

    def _redact(self, text: str) -> str:
        for secret in self._secrets:
            if secret:
                text = text.replace(secret, "***")
        return text


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Read a Retry-After header given in seconds; HTTP-date values are ignored."""
    if not value:
        return None
    try:
        return max(0.0, float(value.strip()))
    except ValueError:
        return None

"""Website liveness probe.

A claimed website counts as live when a HEAD request (redirects followed)
ends on a 2xx or 3xx status within the timeout. Servers that reject HEAD get
one streamed GET instead; https failures are retried once over plain http.
"""

import re
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Iterable, Optional

import requests

from lead_scanner.config.models import DEFAULT_USER_AGENTS
from lead_scanner.logging import get_logger
from lead_scanner.logging.context import in_current_context

logger = get_logger(__name__, component="probe")

RequestFunc = Callable[..., requests.Response]

# Statuses meaning "this server does not implement HEAD"
HEAD_UNSUPPORTED = frozenset({405, 501})

# Absolute URL: RFC 3986 scheme followed by "//"
_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


class LivenessProbe:
    """Checks whether website URLs answer.

    ``probe`` never raises: every failure, including unexpected ones from the
    HTTP layer, is reported as "not reachable".

    Attributes:
        timeout: Per-request timeout in seconds
        user_agent: User-Agent header sent with probes
        fallback_to_http: Retry over http when the https attempt fails
        max_workers: Pool size used by probe_many
    """

    def __init__(
        self,
        timeout: float = 8.0,
        user_agent: str = DEFAULT_USER_AGENTS[0],
        fallback_to_http: bool = True,
        max_workers: int = 8,
        request_func: Optional[RequestFunc] = None,
    ):
        """Initialize the probe.

        Args:
            timeout: Per-request timeout in seconds
            user_agent: User-Agent header value
            fallback_to_http: Retry an https failure once over http
            max_workers: Concurrent probes in probe_many
            request_func: HTTP callable with the ``requests.request`` signature
                (injectable for tests)
        """
        self.timeout = timeout
        self.user_agent = user_agent
        self.fallback_to_http = fallback_to_http
        self.max_workers = max_workers
        self.request_func = request_func or requests.request

    def probe(self, url: Optional[str]) -> bool:
        """Return True if the website answers with a 2xx/3xx status."""
        if not isinstance(url, str) or not url.strip():
            return False

        target = url.strip()
        if not _SCHEME.match(target):
            target = f"https://{target}"

        if self._attempt(target):
            return True

        if self.fallback_to_http and target.lower().startswith("https://"):
            fallback = "http://" + target[len("https://"):]
            logger.debug(
                "Retrying website over http",
                extra={"event": "probe.fallback", "url": fallback},
            )
            return self._attempt(fallback)

        return False

    def probe_many(
        self,
        urls: Iterable[str],
        cancel_event: Optional[threading.Event] = None,
    ) -> Dict[str, bool]:
        """Probe several URLs concurrently.

        Each distinct URL is probed once. Results are gathered in the calling
        thread. Once ``cancel_event`` is set, pending probes are cancelled and
        the URLs they covered are missing from the result.
        """
        unique = list(dict.fromkeys(url for url in urls if url and url.strip()))
        results: Dict[str, bool] = {}
        if not unique:
            return results

        cancel_event = cancel_event or threading.Event()

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(unique))) as pool:
            futures = {
                pool.submit(in_current_context(self.probe), url): url
                for url in unique
            }
            for future in as_completed(futures):
                if cancel_event.is_set():
                    for pending in futures:
                        pending.cancel()
                    break
                results[futures[future]] = future.result()

        logger.info(
            "Probed websites",
            extra={
                "event": "probe.batch.completed",
                "requested": len(unique),
                "probed": len(results),
                "reachable": sum(results.values()),
            },
        )
        return results

    def _attempt(self, url: str) -> bool:
        try:
            response = self._request("HEAD", url)
            status = response.status_code
            if status in HEAD_UNSUPPORTED:
                response = self._request("GET", url, stream=True)
                try:
                    status = response.status_code
                finally:
                    response.close()
        # Any failure of the HTTP layer means "not reachable"
        except Exception as e:
            logger.debug(
                "Website unreachable",
                extra={
                    "event": "probe.unreachable",
                    "url": url,
                    "error_type": type(e).__name__,
                },
            )
            return False

        reachable = 200 <= status < 400
        logger.debug(
            "Website probed",
            extra={
                "event": "probe.reachable" if reachable else "probe.bad_status",
                "url": url,
                "status_code": status,
            },
        )
        return reachable

    def _request(self, method: str, url: str, stream: bool = False) -> requests.Response:
        return self.request_func(
            method,
            url,
            headers={"User-Agent": self.user_agent},
            timeout=self.timeout,
            allow_redirects=True,
            stream=stream,
        )

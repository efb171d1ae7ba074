"""HTTP GET with retries for flaky news feeds."""

import logging
import time
from typing import Callable, Dict, Optional

import requests

logger = logging.getLogger(__name__)

USER_AGENT = "club-digest/0.1"
RETRY_STATUSES = (429, 500, 502, 503, 504)
MAX_BACKOFF = 8.0


class RetryableHTTPClient:
    """GET with exponential backoff on throttling, server errors and network errors.

    Args:
        max_retries: Total attempts per request (default: 3)
        timeout: Request timeout in seconds (default: 20)
        session: Optional ``requests.Session`` (or compatible object)
        sleep: Called with the wait in seconds between attempts
    """

    def __init__(
        self,
        max_retries: int = 3,
        timeout: float = 20.0,
        *,
        user_agent: str = USER_AGENT,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.max_retries = max(1, int(max_retries))
        self.timeout = timeout
        self.user_agent = user_agent
        self.session = session or requests.Session()
        self._sleep = sleep

    def get(self, url: str, headers: Optional[Dict[str, str]] = None, timeout: Optional[float] = None) -> requests.Response:
        """Return the response for *url*, retrying transient failures.

        Raises:
            requests.HTTPError: Non-retryable status, or a retryable one on the last attempt
            requests.RequestException: Network errors after the last attempt
        """
        merged = {"User-Agent": self.user_agent}
        merged.update(headers or {})
        timeout = timeout or self.timeout

        for attempt in range(self.max_retries - 1):
            try:
                resp = self.session.get(url, headers=merged, timeout=timeout)
            except requests.RequestException as exc:
                wait = min(MAX_BACKOFF, 2.0 ** attempt)
                logger.warning(f"GET {url} failed ({exc}); retrying in {wait:.0f}s")
                self._sleep(wait)
                continue

            if resp.status_code in RETRY_STATUSES:
                wait = self._backoff(resp, attempt)
                logger.warning(f"GET {url} returned {resp.status_code}; retrying in {wait:.0f}s")
                self._sleep(wait)
                continue

            resp.raise_for_status()
            return resp

        # last attempt: no more retries
        resp = self.session.get(url, headers=merged, timeout=timeout)
        resp.raise_for_status()
        return resp

    @staticmethod
    def _backoff(response: requests.Response, attempt: int) -> float:
        """Honour Retry-After when present, else 1s, 2s, 4s... capped."""
        retry_after = (getattr(response, "headers", None) or {}).get("Retry-After")
        if retry_after:
            try:
                return min(MAX_BACKOFF, max(float(retry_after), 1.0))
            except (TypeError, ValueError):
                pass
        return min(MAX_BACKOFF, 2.0 ** attempt)

    def close(self) -> None:
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

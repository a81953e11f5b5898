"""
HTTP client utilities for rollkeeper.

This module provides a small synchronous HTTP client with bounded
timeouts and retry/backoff logic. It is used to probe whether the
unstable channel's mirror is reachable without touching APT's own state.
"""

from __future__ import annotations

import time
import random
from typing import Any, Optional

import httpx

from rollkeeper.utils.logger import get_logger
from rollkeeper.__version__ import __version__
from rollkeeper.exceptions import BackendError
from rollkeeper.constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_PROBE_TIMEOUT,
    UNSTABLE_CHANNEL,
    USER_AGENT_TEMPLATE,
)

logger = get_logger("http")


class HTTPClient:
    """Synchronous HTTP client with retries and a hard timeout.

    Args:
        timeout: Per-request timeout in seconds.
        max_retries: Maximum number of retry attempts after the first try.
        verify_ssl: Whether to verify SSL certificates.
        user_agent: Custom User-Agent header value.

    Example:
        >>> with HTTPClient(timeout=5) as client:
        ...     client.is_reachable("https://deb.debian.org/debian/dists/unstable/Release")
        True
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        verify_ssl: bool = True,
        user_agent: Optional[str] = None,
    ) -> None:
        self.timeout = timeout
        self.max_retries = max_retries
        self.verify_ssl = verify_ssl
        self.user_agent = user_agent or USER_AGENT_TEMPLATE.format(version=__version__)

        self._client: Optional[httpx.Client] = None

    def __enter__(self) -> "HTTPClient":
        self._ensure_client()
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()

    def _ensure_client(self) -> httpx.Client:
        """Initialize the underlying httpx client if needed."""
        if self._client is None:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.timeout),
                verify=self.verify_ssl,
                follow_redirects=True,
                headers={"User-Agent": self.user_agent},
            )
        return self._client

    def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def _request_with_retry(self, method: str, url: str) -> httpx.Response:
        """Execute an HTTP request with retry and backoff logic."""
        client = self._ensure_client()
        clean_url = url.strip().strip("\"'")
        last_exc: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                response = client.request(method, clean_url)

                if 400 <= response.status_code < 500:
                    raise BackendError(
                        f"HTTP {response.status_code} for {clean_url}",
                        command=f"{method} {clean_url}",
                        returncode=response.status_code,
                    )

                response.raise_for_status()
                return response

            except httpx.TimeoutException as exc:
                last_exc = exc
                logger.warning(
                    "Request timeout (%d/%d): %s",
                    attempt + 1,
                    self.max_retries + 1,
                    clean_url,
                )

            except httpx.HTTPStatusError as exc:
                last_exc = exc
                logger.warning(
                    "HTTP %d error (%d/%d): %s",
                    exc.response.status_code,
                    attempt + 1,
                    self.max_retries + 1,
                    clean_url,
                )

            except httpx.TransportError as exc:
                last_exc = exc
                logger.warning(
                    "Network error (%d/%d): %s",
                    attempt + 1,
                    self.max_retries + 1,
                    exc,
                )

            if attempt < self.max_retries:
                delay = (2**attempt) * 0.5 + random.uniform(0.0, 0.3)
                logger.debug("Retrying in %.2fs", delay)
                time.sleep(delay)

        raise BackendError(
            f"Request failed after {self.max_retries + 1} attempts: {clean_url}",
            command=f"{method} {clean_url}",
        ) from last_exc

    def head(self, url: str) -> httpx.Response:
        """Perform a HEAD request with retry logic."""
        return self._request_with_retry("HEAD", url)

    def get(self, url: str) -> httpx.Response:
        """Perform a GET request with retry logic."""
        return self._request_with_retry("GET", url)

    def is_reachable(self, url: str) -> bool:
        """Return ``True`` if *url* answers a HEAD (or, failing that, GET) request.

        Some mirrors reject HEAD with 405; those are retried once with GET.
        Never raises for network failures.
        """
        try:
            self.head(url)
            return True
        except BackendError as exc:
            if exc.returncode == 405:
                try:
                    self.get(url)
                    return True
                except BackendError as get_exc:
                    logger.info("Probe of %s failed: %s", url, get_exc)
                    return False
            logger.info("Probe of %s failed: %s", url, exc)
            return False


def release_url(mirror: str, channel: str = UNSTABLE_CHANNEL) -> str:
    """Return the ``Release`` file URL of *channel* on *mirror*."""
    return f"{mirror.rstrip('/')}/dists/{channel}/Release"


def probe_channel(
    mirror: str,
    *,
    channel: str = UNSTABLE_CHANNEL,
    timeout: float = DEFAULT_PROBE_TIMEOUT,
) -> bool:
    """Check, within *timeout* seconds per attempt, that *channel* is served by *mirror*."""
    url = release_url(mirror, channel)
    logger.debug("Probing %s (timeout %ss)", url, timeout)
    with HTTPClient(timeout=timeout, max_retries=0) as client:
        return client.is_reachable(url)

"""Async HTTP fetcher for ICS calendar feeds."""

import asyncio
import logging
import random
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from ..core.http_client import get_headers_with_correlation_id

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 30.0
JITTER_MIN_FACTOR = 0.1
JITTER_MAX_FACTOR = 0.3


class ICSFetchError(Exception):
    """Base exception for ICS fetch errors."""


class ICSAuthError(ICSFetchError):
    """Authentication error during ICS fetch."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ICSNetworkError(ICSFetchError):
    """Network error during ICS fetch."""


class ICSTimeoutError(ICSFetchError):
    """Timeout error during ICS fetch."""


def normalize_feed_url(url: str) -> str:
    """Rewrite ``webcal://`` subscription links to ``https://``."""
    stripped = url.strip()
    if stripped.lower().startswith("webcal://"):
        return "https://" + stripped[len("webcal://"):]
    return stripped


class ICSFetcher:
    """Downloads ICS content over HTTP(S) with retry and backoff."""

    def __init__(self, settings: Any, client: httpx.AsyncClient) -> None:
        """Initialize ICS fetcher.

        Args:
            settings: Object exposing request_timeout, max_retries and
                retry_backoff_factor
            client: HTTP client used for every request
        """
        self.settings = settings
        self.client = client

    def _validate_url(self, url: str) -> None:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https"):
            raise ICSFetchError(f"Unsupported URL scheme: {parsed.scheme!r}")
        if not parsed.hostname:
            raise ICSFetchError("URL missing hostname")

    def _calculate_backoff(self, attempt: int, backoff_factor: float) -> float:
        """Exponential backoff with jitter, capped at MAX_BACKOFF_SECONDS."""
        base_backoff = min(backoff_factor**attempt, MAX_BACKOFF_SECONDS)
        jitter = random.uniform(JITTER_MIN_FACTOR, JITTER_MAX_FACTOR) * base_backoff  # nosec B311
        return base_backoff + jitter

    async def fetch_ics(self, url: str) -> str:
        """Download ICS content from ``url``.

        Args:
            url: http(s) or webcal URL of the feed

        Returns:
            The ICS text

        Raises:
            ICSAuthError: HTTP 401/403
            ICSTimeoutError: Request timed out after all retries
            ICSNetworkError: Connection failed after all retries
            ICSFetchError: Any other failure, including empty content
        """
        target = normalize_feed_url(url)
        self._validate_url(target)

        try:
            response = await self._get_with_retry(target)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status in (401, 403):
                raise ICSAuthError(f"Access denied (HTTP {status})", status) from e
            raise ICSFetchError(f"HTTP {status}: {e.response.reason_phrase}") from e
        except httpx.TimeoutException as e:
            raise ICSTimeoutError(f"Timeout fetching {target}") from e
        except httpx.NetworkError as e:
            raise ICSNetworkError(f"Network error: {e}") from e
        except httpx.HTTPError as e:
            raise ICSFetchError(f"Unexpected HTTP error: {e}") from e

        content = response.text
        if not content or not content.strip():
            raise ICSFetchError("Empty content received")

        content_type = response.headers.get("content-type", "").lower()
        if content_type and not any(ct in content_type for ct in ("text/calendar", "text/plain")):
            logger.warning("Unexpected content type %s from %s", content_type, target)
        if "BEGIN:VCALENDAR" not in content:
            logger.warning("Content from %s does not appear to be valid ICS format", target)

        logger.debug("Fetched ICS from %s (%d bytes)", target, len(content))
        return content

    async def _get_with_retry(self, url: str) -> httpx.Response:
        """GET with retries on timeouts and network errors.

        HTTP status errors are never retried.
        """
        max_retries = int(getattr(self.settings, "max_retries", 2))
        backoff_factor = float(getattr(self.settings, "retry_backoff_factor", 1.5))
        timeout = float(getattr(self.settings, "request_timeout", 30))

        attempt = 0
        while True:
            try:
                response = await self.client.get(
                    url, headers=get_headers_with_correlation_id(), timeout=timeout
                )
                response.raise_for_status()
                return response
            except (httpx.TimeoutException, httpx.NetworkError) as e:
                if attempt >= max_retries:
                    logger.warning("All %d attempts failed for %s", attempt + 1, url)
                    raise
                backoff_time = self._calculate_backoff(attempt, backoff_factor)
                logger.warning(
                    "Request failed (attempt %d/%d), retrying in %.1fs: %s",
                    attempt + 1,
                    max_retries + 1,
                    backoff_time,
                    e,
                )
                await asyncio.sleep(backoff_time)
                attempt += 1

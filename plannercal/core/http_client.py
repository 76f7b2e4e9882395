"""Shared HTTP client manager for feed fetching.

One pooled ``httpx.AsyncClient`` per client id is reused across requests so
that concurrent feed fetches share connections. Clients are closed on
application shutdown via ``close_all_clients``.
"""

import asyncio
import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

_shared_clients: dict[str, httpx.AsyncClient] = {}
_client_lock = asyncio.Lock()

DEFAULT_LIMITS = httpx.Limits(
    max_connections=10,
    max_keepalive_connections=5,
)

DEFAULT_TIMEOUT = httpx.Timeout(
    connect=10.0,
    read=30.0,
    write=10.0,
    pool=30.0,
)

# Some hosted calendars (Office365) refuse obviously automated clients
DEFAULT_HEADERS: dict[str, str] = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "text/calendar, text/plain, application/octet-stream, */*",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
}


def get_headers_with_correlation_id() -> dict[str, str]:
    """Default headers plus the current request's correlation id, if any."""
    headers = DEFAULT_HEADERS.copy()

    from ..api.middleware.correlation_id import get_request_id

    request_id = get_request_id()
    if request_id != "no-request-id":
        headers["X-Request-ID"] = request_id
    return headers


async def get_shared_client(
    client_id: str = "default",
    limits: Optional[httpx.Limits] = None,
    timeout: Optional[httpx.Timeout] = None,
) -> httpx.AsyncClient:
    """Get or create a shared HTTP client with connection pooling.

    Args:
        client_id: Identifier for the client (allows multiple clients if needed)
        limits: Custom connection limits
        timeout: Custom timeout configuration

    Returns:
        Shared httpx.AsyncClient
    """
    async with _client_lock:
        client = _shared_clients.get(client_id)
        if client is None or client.is_closed:
            effective_limits = limits or DEFAULT_LIMITS
            logger.debug(
                "Creating shared HTTP client '%s' with limits: max_connections=%d, max_keepalive=%d",
                client_id,
                effective_limits.max_connections,
                effective_limits.max_keepalive_connections,
            )
            client = httpx.AsyncClient(
                limits=effective_limits,
                timeout=timeout or DEFAULT_TIMEOUT,
                follow_redirects=True,
                verify=True,
                headers=DEFAULT_HEADERS,
            )
            _shared_clients[client_id] = client
            logger.info("Created shared HTTP client '%s'", client_id)

        return client


async def close_all_clients() -> None:
    """Close all shared HTTP clients.

    Called during application shutdown.
    """
    async with _client_lock:
        for client_id, client in _shared_clients.items():
            try:
                if not client.is_closed:
                    await client.aclose()
                    logger.debug("Closed shared HTTP client '%s'", client_id)
            except Exception as e:
                logger.warning("Error closing shared HTTP client '%s': %s", client_id, e)

        _shared_clients.clear()
        logger.info("All shared HTTP clients closed")

"""aiohttp server wiring for plannercal."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import Any

import httpx

from ..calendar.feed_loader import FeedLoader, ICSFeedLoader
from ..calendar.fetcher import ICSFetcher
from ..core.http_client import close_all_clients, get_shared_client
from ..core.planner_logging import configure_logging
from ..core.timezone_utils import now_utc, resolve_timezone
from ..domain.aggregator import CalendarAggregator
from ..domain.feed_store import FeedStore

logger = logging.getLogger(__name__)

FEED_CLIENT_ID = "calendar-feeds"


async def make_app(
    config: Any,
    feed_store: FeedStore | None = None,
    feed_loader: FeedLoader | None = None,
) -> Any:
    """Create the aiohttp application with every route registered.

    Args:
        config: PlannerCalConfig (or any object with the same attributes)
        feed_store: Feed store to serve; built from ``config.feeds_path`` if omitted
        feed_loader: Feed loader to aggregate with; an HTTP loader on the
            shared client is built if omitted

    Raises:
        InvalidTimezoneError: If ``config.timezone`` is not a known zone
    """
    from aiohttp import web

    from .middleware import correlation_id_middleware
    from .routes import register_api_routes, register_feed_routes

    tz = resolve_timezone(config.timezone)

    if feed_store is None:
        feed_store = FeedStore(config.feeds_path)

    if feed_loader is None:
        client = await get_shared_client(
            FEED_CLIENT_ID, timeout=httpx.Timeout(config.request_timeout)
        )
        feed_loader = ICSFeedLoader(ICSFetcher(config, client), tz)

    aggregator = CalendarAggregator(feed_loader, tz)

    app = web.Application(middlewares=[correlation_id_middleware])

    register_api_routes(
        app=app,
        aggregator=aggregator,
        feed_store=feed_store,
        timezone_name=config.timezone,
        time_provider=now_utc,
    )
    register_feed_routes(app=app, feed_store=feed_store)

    async def _close_clients(_app: Any) -> None:
        await close_all_clients()

    app.on_cleanup.append(_close_clients)
    logger.debug("Web application created (timezone=%s)", config.timezone)
    return app


async def _serve(config: Any, external_stop_event: asyncio.Event | None = None) -> None:
    """Run the server until signalled to stop.

    Args:
        config: PlannerCalConfig
        external_stop_event: Optional event to signal shutdown. If provided,
            signal handlers are not registered (caller owns signal handling).
    """
    from aiohttp import web

    app = await make_app(config)
    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, host=config.host, port=int(config.port))
    try:
        await site.start()
    except OSError:
        logger.exception("Failed to start server on %s:%d", config.host, config.port)
        await runner.cleanup()
        raise

    logger.info("Server started on http://%s:%d", config.host, config.port)

    stop_event = external_stop_event or asyncio.Event()
    if external_stop_event is None:
        loop = asyncio.get_running_loop()

        def _on_signal() -> None:
            logger.info("Shutdown signal received")
            stop_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, _on_signal)
    else:
        logger.debug("Using external stop event - skipping signal handler registration")

    await stop_event.wait()
    logger.info("Stop event received, shutting down")

    await runner.cleanup()
    logger.info("Server shutdown complete")


def start_server(config: Any) -> None:
    """Configure logging, then run the HTTP server until SIGINT/SIGTERM.

    This function blocks the calling thread.
    """
    configure_logging(debug_mode=config.debug, level_name=config.log_level)
    logger.info("Logging configuration applied: debug_mode=%s", config.debug)

    try:
        asyncio.run(_serve(config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")

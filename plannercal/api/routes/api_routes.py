"""Main API routes for plannercal."""

from __future__ import annotations

import datetime
import logging
from typing import Any, Callable

from ...core.exceptions import InvalidRangeError

logger = logging.getLogger(__name__)


def register_api_routes(
    app: Any,
    aggregator: Any,
    feed_store: Any,
    timezone_name: str,
    time_provider: Callable[[], datetime.datetime],
) -> None:
    """Register the calendar-events and health routes.

    Args:
        app: aiohttp web application
        aggregator: CalendarAggregator used to list occurrences
        feed_store: FeedStore supplying the enabled feeds
        timezone_name: IANA name of the target timezone, reported by health
        time_provider: Callable returning the current UTC time
    """
    from aiohttp import web

    async def health_check(_request: Any) -> Any:
        """Health check endpoint for monitoring."""
        now = time_provider()
        health_data = {
            "status": "ok",
            "server_time_iso": now.isoformat(),
            "timezone": timezone_name,
            "feed_count": len(feed_store.list_feeds()),
        }
        return web.json_response(health_data, status=200)

    async def calendar_events(request: Any) -> Any:
        """List occurrences of every enabled feed between ``from`` and ``to``."""
        range_from = request.query.get("from")
        range_to = request.query.get("to")

        if not range_from or not range_to:
            return web.json_response({"error": "from and to params required"}, status=400)

        try:
            occurrences = await aggregator.list_occurrences(
                range_from, range_to, feed_store.list_enabled()
            )
        except InvalidRangeError as exc:
            logger.debug("Rejected calendar-events range: %s", exc)
            return web.json_response({"error": "from and to params required"}, status=400)
        except Exception:
            logger.exception("Calendar events error")
            return web.json_response({"error": "Failed to fetch calendar events"}, status=500)

        logger.debug(
            "/api/calendar-events %s..%s returned %d occurrences",
            range_from,
            range_to,
            len(occurrences),
        )
        return web.json_response([occ.to_api_dict() for occ in occurrences], status=200)

    app.router.add_get("/api/health", health_check)
    app.router.add_get("/api/calendar-events", calendar_events)

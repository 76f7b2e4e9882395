"""Calendar feed management routes."""

from __future__ import annotations

import logging
from typing import Any

from ...core.exceptions import FeedNotFoundError, FeedValidationError

logger = logging.getLogger(__name__)


def register_feed_routes(app: Any, feed_store: Any) -> None:
    """Register CRUD routes for configured calendar feeds.

    Args:
        app: aiohttp web application
        feed_store: FeedStore holding the feeds
    """
    from aiohttp import web

    def _not_found() -> Any:
        return web.json_response({"error": "Feed not found"}, status=404)

    async def _read_json_object(request: Any) -> dict[str, Any] | None:
        try:
            data = await request.json()
        except ValueError:
            return None
        return data if isinstance(data, dict) else None

    async def list_feeds(_request: Any) -> Any:
        feeds = feed_store.list_feeds()
        return web.json_response([feed.to_api_dict() for feed in feeds], status=200)

    async def create_feed(request: Any) -> Any:
        data = await _read_json_object(request)
        if data is None:
            return web.json_response({"error": "invalid json"}, status=400)

        try:
            feed = feed_store.create(data.get("name"), data.get("url"), data.get("color"))
        except FeedValidationError as exc:
            return web.json_response({"error": str(exc)}, status=400)
        except OSError:
            logger.exception("Failed to save calendar feed")
            return web.json_response({"error": "Failed to save calendar feed"}, status=500)

        return web.json_response(feed.to_api_dict(), status=201)

    async def update_feed(request: Any) -> Any:
        feed_id = request.match_info["feed_id"]
        data = await _read_json_object(request)
        if data is None:
            return web.json_response({"error": "invalid json"}, status=400)

        try:
            feed = feed_store.update(feed_id, data)
        except FeedNotFoundError:
            return _not_found()
        except FeedValidationError as exc:
            return web.json_response({"error": str(exc)}, status=400)
        except OSError:
            logger.exception("Failed to save calendar feed %s", feed_id)
            return web.json_response({"error": "Failed to save calendar feed"}, status=500)

        return web.json_response(feed.to_api_dict(), status=200)

    async def delete_feed(request: Any) -> Any:
        feed_id = request.match_info["feed_id"]
        try:
            feed_store.delete(feed_id)
        except FeedNotFoundError:
            return _not_found()
        except OSError:
            logger.exception("Failed to delete calendar feed %s", feed_id)
            return web.json_response({"error": "Failed to delete calendar feed"}, status=500)

        return web.json_response({"ok": True}, status=200)

    app.router.add_get("/api/calendar-feeds", list_feeds)
    app.router.add_post("/api/calendar-feeds", create_feed)
    app.router.add_put("/api/calendar-feeds/{feed_id}", update_feed)
    app.router.add_delete("/api/calendar-feeds/{feed_id}", delete_feed)

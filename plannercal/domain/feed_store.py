"""JSON-backed store of configured calendar feeds with atomic writes."""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from ..calendar.models import DEFAULT_FEED_COLOR, CalendarFeedSource
from ..core.exceptions import FeedNotFoundError, FeedValidationError

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = ("name", "url", "color", "enabled")


class FeedStore:
    """Persistent list of calendar feeds.

    The on-disk format is a JSON array of feed objects. A store created
    without a path keeps feeds in memory only.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path).expanduser() if path else None
        self._lock = threading.Lock()
        self._feeds: dict[str, CalendarFeedSource] = {}

        if self._path is not None:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
            except OSError:
                logger.debug("Could not ensure directory for feed store: %s", self._path.parent)
            self.load()

    def load(self) -> None:
        """Load feeds from disk, skipping malformed entries."""
        with self._lock:
            if self._path is None or not self._path.exists():
                logger.debug("Feed store file not found; starting empty: %s", self._path)
                self._feeds = {}
                return

            try:
                with self._path.open("r", encoding="utf-8") as fh:
                    data = json.load(fh)
                if not isinstance(data, list):
                    raise ValueError("feed store JSON root must be an array")  # noqa: TRY004
            except (OSError, ValueError) as exc:
                logger.warning("Failed to read feed store %s: %s", self._path, exc)
                self._feeds = {}
                return

            feeds: dict[str, CalendarFeedSource] = {}
            for entry in data:
                try:
                    feed = CalendarFeedSource.model_validate(entry)
                except ValidationError as exc:
                    logger.warning("Skipping malformed feed entry %r: %s", entry, exc)
                    continue
                feeds[feed.id] = feed

            self._feeds = feeds
            logger.debug("Loaded feed store %s (%d feeds)", self._path, len(feeds))

    def _persist(self) -> None:
        """Write all feeds to disk atomically. Called with lock held."""
        if self._path is None:
            return

        data = [feed.model_dump(mode="json", by_alias=True) for feed in self._sorted()]
        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", dir=self._path.parent, delete=False, encoding="utf-8"
            ) as tf:
                tmp_path = Path(tf.name)
                json.dump(data, tf, ensure_ascii=False, indent=2)
                tf.flush()
                os.fsync(tf.fileno())
            tmp_path.replace(self._path)
        except OSError:
            if tmp_path is not None:
                with contextlib.suppress(OSError):
                    tmp_path.unlink()
            raise

    def _sorted(self) -> list[CalendarFeedSource]:
        return sorted(self._feeds.values(), key=lambda f: f.created_at)

    def list_feeds(self) -> list[CalendarFeedSource]:
        """Return all feeds, oldest first."""
        with self._lock:
            return self._sorted()

    def list_enabled(self) -> list[CalendarFeedSource]:
        with self._lock:
            return [feed for feed in self._sorted() if feed.enabled]

    def get(self, feed_id: str) -> CalendarFeedSource:
        with self._lock:
            feed = self._feeds.get(feed_id)
        if feed is None:
            raise FeedNotFoundError(feed_id)
        return feed

    def create(self, name: Any, url: Any, color: Optional[str] = None) -> CalendarFeedSource:
        """Create and persist a feed.

        Raises:
            FeedValidationError: If name or url is empty after trimming
        """
        clean_name = name.strip() if isinstance(name, str) else ""
        clean_url = url.strip() if isinstance(url, str) else ""
        if not clean_name or not clean_url:
            raise FeedValidationError("name and url are required")

        feed = CalendarFeedSource(
            name=clean_name,
            url=clean_url,
            color=color if isinstance(color, str) and color else DEFAULT_FEED_COLOR,
        )
        with self._lock:
            self._feeds[feed.id] = feed
            try:
                self._persist()
            except OSError:
                del self._feeds[feed.id]
                logger.warning("Failed to persist new feed %r", clean_name)
                raise

        logger.info("Created calendar feed %r (%s)", feed.name, feed.id)
        return feed

    def update(self, feed_id: str, changes: dict[str, Any]) -> CalendarFeedSource:
        """Apply a partial update of name, url, color and enabled.

        Unknown keys are ignored; keys whose value is None are left unchanged.

        Raises:
            FeedNotFoundError: If no feed has ``feed_id``
            FeedValidationError: If the update produces an invalid feed
        """
        with self._lock:
            current = self._feeds.get(feed_id)
            if current is None:
                raise FeedNotFoundError(feed_id)

            updates = {k: changes[k] for k in _UPDATABLE_FIELDS if changes.get(k) is not None}
            try:
                updated = CalendarFeedSource.model_validate(
                    {**current.model_dump(), **updates}
                )
            except ValidationError as exc:
                raise FeedValidationError(str(exc)) from exc

            self._feeds[feed_id] = updated
            try:
                self._persist()
            except OSError:
                self._feeds[feed_id] = current
                raise

        logger.info("Updated calendar feed %s (%s)", feed_id, ", ".join(sorted(updates)) or "no changes")
        return updated

    def delete(self, feed_id: str) -> None:
        with self._lock:
            removed = self._feeds.pop(feed_id, None)
            if removed is None:
                raise FeedNotFoundError(feed_id)
            try:
                self._persist()
            except OSError:
                self._feeds[feed_id] = removed
                raise

        logger.info("Deleted calendar feed %r (%s)", removed.name, feed_id)

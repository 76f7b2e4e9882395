"""Shared test configuration for plannercal."""

import datetime
import zoneinfo
from typing import Any

import pytest

from plannercal.calendar.models import CalendarFeedSource, RawCalendarComponent

_PLANNERCAL_ENV_KEYS = (
    "PLANNERCAL_TIMEZONE",
    "PLANNERCAL_FEEDS_PATH",
    "PLANNERCAL_WEB_HOST",
    "PLANNERCAL_WEB_PORT",
    "PLANNERCAL_REQUEST_TIMEOUT",
    "PLANNERCAL_MAX_RETRIES",
    "PLANNERCAL_RETRY_BACKOFF",
    "PLANNERCAL_DEBUG",
    "PLANNERCAL_LOG_LEVEL",
    "PLANNERCAL_TEST_TIME",
)


def pytest_configure(config: Any) -> None:
    """Register test markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "integration: Tests that exercise the HTTP API end to end")


@pytest.fixture(autouse=True)
def clean_plannercal_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure PLANNERCAL_* variables from the host never leak into tests."""
    for key in _PLANNERCAL_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def la_tz() -> zoneinfo.ZoneInfo:
    """Deterministic target timezone for tests."""
    return zoneinfo.ZoneInfo("America/Los_Angeles")


@pytest.fixture
def utc() -> datetime.tzinfo:
    return datetime.timezone.utc


class FakeFeedLoader:
    """In-memory feed loader keyed by URL.

    A value that is an exception instance is raised instead of returned.
    """

    def __init__(self, feeds: dict[str, Any]):
        self.feeds = feeds
        self.calls: list[str] = []

    async def load(self, url: str) -> dict[str, RawCalendarComponent]:
        self.calls.append(url)
        result = self.feeds[url]
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def make_feed():
    """Factory for CalendarFeedSource instances with predictable ordering."""
    base = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)
    counter = {"n": 0}

    def _make(name: str, url: str, color: str = "#ff0000", enabled: bool = True) -> CalendarFeedSource:
        counter["n"] += 1
        return CalendarFeedSource(
            name=name,
            url=url,
            color=color,
            enabled=enabled,
            created_at=base + datetime.timedelta(minutes=counter["n"]),
        )

    return _make


@pytest.fixture
def fake_loader() -> type[FakeFeedLoader]:
    """The in-memory FakeFeedLoader class, for tests that build their own feeds."""
    return FakeFeedLoader

"""End-to-end tests of the plannercal HTTP API against in-memory feeds."""

import datetime
import json

import pytest
from aiohttp.test_utils import TestClient, TestServer

from plannercal.api.server import make_app
from plannercal.calendar.fetcher import ICSFetchError
from plannercal.calendar.models import RawCalendarComponent
from plannercal.core.config_manager import PlannerCalConfig
from plannercal.core.exceptions import InvalidTimezoneError
from plannercal.domain.feed_store import FeedStore

pytestmark = pytest.mark.integration

WORK_URL = "https://work.example.com/cal.ics"
HOME_URL = "https://home.example.com/cal.ics"
DOWN_URL = "https://down.example.com/cal.ics"


@pytest.fixture
def components(la_tz):
    return {
        WORK_URL: {
            "review": RawCalendarComponent(
                component_type="VEVENT",
                uid="review",
                summary="Design review",
                start=datetime.datetime(2024, 3, 5, 14, 0, tzinfo=la_tz),
                end=datetime.datetime(2024, 3, 5, 15, 0, tzinfo=la_tz),
            ),
        },
        HOME_URL: {
            "trip": RawCalendarComponent(
                component_type="VEVENT",
                uid="trip",
                summary="Trip",
                start=datetime.datetime(2024, 3, 4, tzinfo=la_tz),
                end=datetime.datetime(2024, 3, 6, tzinfo=la_tz),
            ),
        },
        DOWN_URL: ICSFetchError("HTTP 500: Internal Server Error"),
    }


@pytest.fixture
def config(tmp_path) -> PlannerCalConfig:
    return PlannerCalConfig(feeds_path=str(tmp_path / "feeds.json"))


async def _client(config, store, loader) -> TestClient:
    app = await make_app(config, feed_store=store, feed_loader=loader)
    client = TestClient(TestServer(app))
    await client.start_server()
    return client


class TestCalendarEvents:
    @pytest.mark.asyncio
    async def test_events_aggregates_enabled_feeds(self, config, components, fake_loader) -> None:
        store = FeedStore()
        store.create("Work", WORK_URL, "#10b981")
        store.create("Home", HOME_URL)
        disabled = store.create("Down", DOWN_URL)
        store.update(disabled.id, {"enabled": False})
        loader = fake_loader(components)

        client = await _client(config, store, loader)
        try:
            resp = await client.get("/api/calendar-events", params={"from": "2024-03-01", "to": "2024-03-31"})
            data = await resp.json()
        finally:
            await client.close()

        assert resp.status == 200
        assert data == [
            {
                "id": "trip_2024-03-04",
                "title": "Trip",
                "date": "2024-03-04",
                "allDay": True,
                "feedName": "Home",
                "feedColor": "#3b82f6",
            },
            {
                "id": "trip_2024-03-05",
                "title": "Trip",
                "date": "2024-03-05",
                "allDay": True,
                "feedName": "Home",
                "feedColor": "#3b82f6",
            },
            {
                "id": "review_2024-03-05",
                "title": "Design review",
                "date": "2024-03-05",
                "startTime": "2:00 PM",
                "endTime": "3:00 PM",
                "allDay": False,
                "feedName": "Work",
                "feedColor": "#10b981",
            },
        ]
        assert DOWN_URL not in loader.calls

    @pytest.mark.asyncio
    async def test_events_when_feed_fails_then_partial_result(self, config, components, fake_loader) -> None:
        store = FeedStore()
        store.create("Down", DOWN_URL)
        store.create("Work", WORK_URL)

        client = await _client(config, store, fake_loader(components))
        try:
            resp = await client.get("/api/calendar-events?from=2024-03-05&to=2024-03-05")
            data = await resp.json()
        finally:
            await client.close()

        assert resp.status == 200
        assert [item["id"] for item in data] == ["review_2024-03-05"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "query", ["", "?from=2024-03-01", "?to=2024-03-31", "?from=March&to=2024-03-31"]
    )
    async def test_events_when_range_invalid_then_400(self, config, fake_loader, query) -> None:
        client = await _client(config, FeedStore(), fake_loader({}))
        try:
            resp = await client.get(f"/api/calendar-events{query}")
            data = await resp.json()
        finally:
            await client.close()

        assert resp.status == 400
        assert data == {"error": "from and to params required"}

    @pytest.mark.asyncio
    async def test_events_when_unexpected_failure_then_500(self, config, fake_loader) -> None:
        class ExplodingStore(FeedStore):
            def list_enabled(self):
                raise RuntimeError("disk on fire")

        client = await _client(config, ExplodingStore(), fake_loader({}))
        try:
            resp = await client.get("/api/calendar-events?from=2024-03-01&to=2024-03-31")
        finally:
            await client.close()

        assert resp.status == 500


class TestCalendarFeeds:
    @pytest.mark.asyncio
    async def test_feed_crud_round_trip(self, config, fake_loader) -> None:
        store = FeedStore(config.feeds_path)
        client = await _client(config, store, fake_loader({}))
        try:
            created = await client.post(
                "/api/calendar-feeds", json={"name": " Work ", "url": "https://work.example.com/cal.ics"}
            )
            feed = await created.json()

            listed = await (await client.get("/api/calendar-feeds")).json()

            updated = await client.put(f"/api/calendar-feeds/{feed['id']}", json={"enabled": False, "color": "#000000"})
            updated_feed = await updated.json()

            deleted = await client.delete(f"/api/calendar-feeds/{feed['id']}")
            deleted_body = await deleted.json()

            remaining = await (await client.get("/api/calendar-feeds")).json()
        finally:
            await client.close()

        assert created.status == 201
        assert feed["name"] == "Work"
        assert feed["color"] == "#3b82f6"
        assert set(feed) == {"id", "name", "url", "color", "enabled", "createdAt"}
        assert listed == [feed]
        assert updated.status == 200
        assert updated_feed["enabled"] is False
        assert updated_feed["color"] == "#000000"
        assert deleted.status == 200
        assert deleted_body == {"ok": True}
        assert remaining == []
        with open(config.feeds_path, encoding="utf-8") as fh:
            assert json.load(fh) == []

    @pytest.mark.asyncio
    async def test_create_when_name_missing_then_400(self, config, fake_loader) -> None:
        client = await _client(config, FeedStore(), fake_loader({}))
        try:
            resp = await client.post("/api/calendar-feeds", json={"name": "  ", "url": "https://x"})
            data = await resp.json()
        finally:
            await client.close()

        assert resp.status == 400
        assert data == {"error": "name and url are required"}

    @pytest.mark.asyncio
    async def test_create_when_body_not_json_then_400(self, config, fake_loader) -> None:
        client = await _client(config, FeedStore(), fake_loader({}))
        try:
            resp = await client.post("/api/calendar-feeds", data="not json")
        finally:
            await client.close()

        assert resp.status == 400

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["put", "delete"])
    async def test_unknown_feed_then_404(self, config, fake_loader, method) -> None:
        client = await _client(config, FeedStore(), fake_loader({}))
        try:
            if method == "put":
                resp = await client.put("/api/calendar-feeds/nope", json={"name": "x"})
            else:
                resp = await client.delete("/api/calendar-feeds/nope")
            data = await resp.json()
        finally:
            await client.close()

        assert resp.status == 404
        assert data == {"error": "Feed not found"}

    @pytest.mark.asyncio
    async def test_feeds_listed_oldest_first(self, config, fake_loader) -> None:
        store = FeedStore()
        first = store.create("First", "https://1.example/cal.ics")
        second = store.create("Second", "https://2.example/cal.ics")

        client = await _client(config, store, fake_loader({}))
        try:
            data = await (await client.get("/api/calendar-feeds")).json()
        finally:
            await client.close()

        assert [item["id"] for item in data] == [first.id, second.id]


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_reports_timezone_and_feed_count(self, config, monkeypatch, fake_loader) -> None:
        monkeypatch.setenv("PLANNERCAL_TEST_TIME", "2024-03-05T08:20:00-08:00")
        store = FeedStore()
        store.create("Work", WORK_URL)

        client = await _client(config, store, fake_loader({}))
        try:
            resp = await client.get("/api/health", headers={"X-Request-ID": "health-1"})
            data = await resp.json()
        finally:
            await client.close()

        assert resp.status == 200
        assert resp.headers["X-Request-ID"] == "health-1"
        assert data == {
            "status": "ok",
            "server_time_iso": "2024-03-05T16:20:00+00:00",
            "timezone": "America/Los_Angeles",
            "feed_count": 1,
        }


class TestMakeApp:
    @pytest.mark.asyncio
    async def test_make_app_when_timezone_unknown_then_raises(self, tmp_path, fake_loader) -> None:
        config = PlannerCalConfig(timezone="Nowhere/Special", feeds_path=str(tmp_path / "f.json"))
        with pytest.raises(InvalidTimezoneError):
            await make_app(config, feed_store=FeedStore(), feed_loader=fake_loader({}))

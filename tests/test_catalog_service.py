import asyncio
from datetime import datetime, timezone
from typing import Dict, List

import httpx
import pytest

from musictube.catalog_service import CatalogService, CategoryNotFoundError
from musictube.failures import FailureKind
from musictube.models import CatalogConfig, ResultSet, SearchResult
from musictube.result_fetcher import FetchOutcome, ResultFetcher
from musictube.youtube_client import YouTubeDataClient


CONFIG = CatalogConfig.model_validate(
    {
        "categories": [
            {"key": "trending", "label": "Trending", "query": "top trending songs"},
            {"key": "popular", "label": "Popular", "chart": True},
            {"key": "lofi", "label": "Lo-Fi", "query": "lofi chill beats"},
        ]
    }
)

NOW = datetime(2024, 1, 6, tzinfo=timezone.utc)


def _result(video_id: str, title: str = "Song") -> SearchResult:
    return SearchResult(
        external_id=video_id,
        title=title,
        channel_name="Chan",
        thumbnail_url="http://x/a.jpg",
        published_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def _item(video_id: str, title: str) -> Dict[str, object]:
    return {
        "id": {"videoId": video_id},
        "snippet": {
            "title": title,
            "channelTitle": "Chan",
            "thumbnails": {"medium": {"url": "http://x/a.jpg"}},
            "publishedAt": "2024-01-01T00:00:00Z",
        },
    }


def _http_catalog(handler) -> CatalogService:
    client = YouTubeDataClient("test-key", transport=httpx.MockTransport(handler))
    return CatalogService(CONFIG, ResultFetcher(client))


class GatedFetcher:
    """Fetcher double whose calls finish only when their gate is opened."""

    def __init__(self) -> None:
        self.gates: Dict[str, asyncio.Event] = {}
        self.calls: List[str] = []

    def gate(self, name: str) -> asyncio.Event:
        return self.gates.setdefault(name, asyncio.Event())

    async def fetch(self, query: str, *, key: str = "search") -> FetchOutcome:
        self.calls.append(query)
        await self.gate(query).wait()
        return FetchOutcome(results=ResultSet(key=key, items=(_result(query, query),)))

    async def fetch_popular(self, *, key: str = "popular") -> FetchOutcome:
        self.calls.append("<popular>")
        await self.gate("<popular>").wait()
        return FetchOutcome(results=ResultSet(key=key, items=(_result("pop"),)))


def test_load_categories_stores_each_key() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/videos"):
            return httpx.Response(200, json={"items": [{"id": "xyz789", "snippet": _item("x", "Chart")["snippet"]}]})
        if request.url.params["q"] == "lofi chill beats":
            return httpx.Response(503)
        return httpx.Response(200, json={"items": [_item("abc123", "Song A")]})

    catalog = _http_catalog(handler)
    asyncio.run(catalog.load_categories())

    assert catalog.results("trending").items[0].external_id == "abc123"
    assert catalog.results("popular").items[0].external_id == "xyz789"
    assert len(catalog.results("lofi")) == 0
    assert catalog.failure("lofi") is FailureKind.NETWORK_FAILURE
    assert catalog.failure("trending") is None

    snapshot = catalog.snapshot(NOW)
    assert [section.key for section in snapshot.sections] == ["trending", "popular", "lofi"]
    assert snapshot.pending == []
    assert snapshot.sections[0].cards[0].age == "5 days ago"
    assert snapshot.sections[2].error is FailureKind.NETWORK_FAILURE


def test_snapshot_shows_keys_as_they_arrive() -> None:
    async def scenario() -> None:
        fetcher = GatedFetcher()
        catalog = CatalogService(CONFIG, fetcher)
        task = asyncio.create_task(catalog.load_categories())
        await asyncio.sleep(0)
        assert catalog.snapshot().sections == []

        fetcher.gate("lofi chill beats").set()
        await asyncio.sleep(0.01)
        snapshot = catalog.snapshot()
        assert [section.key for section in snapshot.sections] == ["lofi"]
        assert snapshot.pending == ["trending", "popular"]

        fetcher.gate("top trending songs").set()
        fetcher.gate("<popular>").set()
        await task
        assert catalog.snapshot().pending == []

    asyncio.run(scenario())


def test_stop_loading_cancels_background_fetches() -> None:
    async def scenario() -> None:
        fetcher = GatedFetcher()
        catalog = CatalogService(CONFIG, fetcher)
        task = catalog.start_loading()
        await asyncio.sleep(0)
        assert catalog.loading is True
        assert catalog.start_loading() is task

        await catalog.stop_loading()
        assert task.cancelled()
        assert catalog.loading is False
        assert catalog.snapshot().sections == []

        await catalog.stop_loading()

    asyncio.run(scenario())


def test_stale_fetch_does_not_overwrite_newer_result() -> None:
    async def scenario() -> None:
        fetcher = GatedFetcher()
        catalog = CatalogService(CONFIG, fetcher)
        older = asyncio.create_task(catalog.search("old query"))
        await asyncio.sleep(0)
        newer = asyncio.create_task(catalog.search("new query"))
        await asyncio.sleep(0)

        fetcher.gate("new query").set()
        await newer
        fetcher.gate("old query").set()
        await older

        assert catalog.results("search").items[0].external_id == "new query"
        assert catalog.last_query == "new query"

    asyncio.run(scenario())


def test_search_with_blank_query_is_skipped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    catalog = _http_catalog(handler)
    outcome = asyncio.run(catalog.search("   "))
    assert outcome.ok
    assert catalog.results("search") is None
    assert catalog.snapshot().sections == []


def test_search_section_comes_first() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"items": [_item("id-" + request.url.params["q"], "T")]})

    catalog = _http_catalog(handler)

    async def scenario() -> None:
        await catalog.refresh_category("trending")
        await catalog.search("drake")

    asyncio.run(scenario())
    snapshot = catalog.snapshot()
    assert [section.key for section in snapshot.sections] == ["search", "trending"]
    assert snapshot.sections[0].label == "🔍 Search Results"
    assert snapshot.pending == ["popular", "lofi"]


def test_empty_category_is_hidden() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"items": []})

    catalog = _http_catalog(handler)
    asyncio.run(catalog.refresh_category("trending"))
    assert catalog.snapshot().sections == []


def test_title_lookup() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"items": [_item("abc123", "Song A")]})

    catalog = _http_catalog(handler)
    asyncio.run(catalog.refresh_category("trending"))
    assert catalog.title_for("abc123") == "Song A"
    assert catalog.title_for("missing") == "Now Playing"


def test_unknown_category() -> None:
    catalog = CatalogService(CONFIG, GatedFetcher())
    with pytest.raises(CategoryNotFoundError):
        asyncio.run(catalog.refresh_category("jazz"))
    with pytest.raises(CategoryNotFoundError):
        catalog.view("jazz")


def test_describe_categories() -> None:
    catalog = CatalogService(CONFIG, GatedFetcher())
    assert catalog.available_categories() == ("trending", "popular", "lofi")
    assert catalog.describe_categories()[1] == {"key": "popular", "label": "Popular", "chart": True}

"""Fetch search results and normalise them into result sets."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel, ValidationError

from .failures import FailureKind, FailureReport, FailureReporter
from .models import ResultSet, SearchResult
from .youtube_client import MalformedResponse, NetworkFailure, YouTubeApiError, YouTubeDataClient


DEFAULT_MAX_RESULTS = 12
SEARCH_KEY = "search"
POPULAR_KEY = "popular"

logger = logging.getLogger(__name__)


class _Thumbnail(BaseModel):
    url: str


class _Snippet(BaseModel):
    title: str
    channelTitle: str
    thumbnails: Dict[str, _Thumbnail]
    publishedAt: datetime


class _VideoRef(BaseModel):
    videoId: str


class _SearchItem(BaseModel):
    """``search.list`` item: the id is nested under ``id.videoId``."""

    id: _VideoRef
    snippet: _Snippet


class _VideoItem(BaseModel):
    """``videos.list`` item: the id is a flat string."""

    id: str
    snippet: _Snippet


_THUMBNAIL_PREFERENCE = ("medium", "high", "default")


def _to_result(external_id: str, snippet: _Snippet) -> SearchResult:
    thumbnail = None
    for size in _THUMBNAIL_PREFERENCE:
        if size in snippet.thumbnails:
            thumbnail = snippet.thumbnails[size]
            break
    if thumbnail is None:
        raise MalformedResponse(f"Item {external_id} has no usable thumbnail")
    return SearchResult(
        external_id=external_id,
        title=snippet.title,
        channel_name=snippet.channelTitle,
        thumbnail_url=thumbnail.url,
        published_at=snippet.publishedAt,
    )


def parse_search_item(item: Any) -> SearchResult:
    try:
        parsed = _SearchItem.model_validate(item)
    except ValidationError as exc:
        raise MalformedResponse(f"Invalid search item: {exc.error_count()} errors") from exc
    return _to_result(parsed.id.videoId, parsed.snippet)


def parse_popular_item(item: Any) -> SearchResult:
    try:
        parsed = _VideoItem.model_validate(item)
    except ValidationError as exc:
        raise MalformedResponse(f"Invalid video item: {exc.error_count()} errors") from exc
    return _to_result(parsed.id, parsed.snippet)


@dataclass(frozen=True)
class FetchOutcome:
    """Result of one fetch: the result set plus the failure kind, if any."""

    results: ResultSet
    failure: Optional[FailureKind] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None


class ResultFetcher:
    """Issues one request per call and maps the payload into a ``ResultSet``.

    Errors never leave this class.  A failed call returns an empty set, names
    the failure on the outcome and reports it to the failure sink.  There are
    no retries and nothing is cached between calls.
    """

    def __init__(
        self,
        client: YouTubeDataClient,
        *,
        max_results: int = DEFAULT_MAX_RESULTS,
        region_code: str = "IN",
        popular_category_id: str | None = None,
        reporter: FailureReporter | None = None,
    ) -> None:
        self._client = client
        self._max_results = max(1, min(int(max_results), 50))
        self._region_code = region_code.upper()
        self._popular_category_id = popular_category_id
        self._reporter = reporter or FailureReporter()

    @property
    def max_results(self) -> int:
        return self._max_results

    async def fetch(self, query: str, *, key: str = SEARCH_KEY) -> FetchOutcome:
        normalized_query = str(query or "").strip()
        if not normalized_query:
            return FetchOutcome(results=ResultSet(key=key))

        async def request() -> List[Dict[str, Any]]:
            return await self._client.search_items(
                normalized_query, max_results=self._max_results
            )

        return await self._run(key, request, parse_search_item, query=normalized_query)

    async def fetch_popular(
        self, *, key: str = POPULAR_KEY, region_code: str | None = None
    ) -> FetchOutcome:
        region = (region_code or self._region_code).upper()

        async def request() -> List[Dict[str, Any]]:
            return await self._client.popular_items(
                region_code=region,
                max_results=self._max_results,
                category_id=self._popular_category_id,
            )

        return await self._run(key, request, parse_popular_item)

    async def _run(
        self,
        key: str,
        request: Callable[[], Any],
        parse: Callable[[Any], SearchResult],
        *,
        query: str | None = None,
    ) -> FetchOutcome:
        try:
            items = await request()
            results = self._map_items(items, parse)
        except NetworkFailure as exc:
            return self._failed(key, FailureKind.NETWORK_FAILURE, str(exc), query)
        except MalformedResponse as exc:
            return self._failed(key, FailureKind.MALFORMED_RESPONSE, str(exc), query)
        except YouTubeApiError as exc:
            return self._failed(key, FailureKind.NETWORK_FAILURE, str(exc), query)

        logger.info("Fetched %d results for %s", len(results), key)
        return FetchOutcome(results=ResultSet(key=key, items=tuple(results)))

    def _map_items(
        self, items: Iterable[Any], parse: Callable[[Any], SearchResult]
    ) -> List[SearchResult]:
        results: List[SearchResult] = []
        for item in items:
            results.append(parse(item))
            if len(results) >= self._max_results:
                break
        return results

    def _failed(
        self, key: str, kind: FailureKind, detail: str, query: str | None
    ) -> FetchOutcome:
        self._reporter.report(FailureReport(kind=kind, detail=detail, key=key, query=query))
        return FetchOutcome(results=ResultSet(key=key), failure=kind, detail=detail)


__all__ = [
    "DEFAULT_MAX_RESULTS",
    "FetchOutcome",
    "POPULAR_KEY",
    "ResultFetcher",
    "SEARCH_KEY",
    "parse_popular_item",
    "parse_search_item",
]

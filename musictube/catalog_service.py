"""Per-key result sets for the home page shelves and the search section."""
from __future__ import annotations

import asyncio
import contextlib
from datetime import datetime
import logging
from typing import Dict, List, Optional, Tuple

from .failures import FailureKind
from .models import (
    CatalogConfig,
    CatalogSnapshot,
    CategoryConfig,
    ResultCard,
    ResultSet,
    ResultSetView,
)
from .result_fetcher import SEARCH_KEY, FetchOutcome, ResultFetcher


NOW_PLAYING_FALLBACK = "Now Playing"
SEARCH_LABEL = "🔍 Search Results"

logger = logging.getLogger(__name__)


class CatalogServiceError(Exception):
    """Base error for the catalog service."""


class CategoryNotFoundError(CatalogServiceError):
    """Raised when a requested category is not configured."""


class CatalogService:
    """Owns the result sets shown on the page.

    Each key holds one immutable ``ResultSet`` that is swapped in when a fetch
    for that key completes.  Every fetch is stamped with a per-key generation;
    a completion for an older generation is dropped, so a slow stale request
    cannot overwrite a newer one.
    """

    def __init__(self, config: CatalogConfig, fetcher: ResultFetcher) -> None:
        self._config = config
        self._fetcher = fetcher
        self._results: Dict[str, ResultSet] = {}
        self._failures: Dict[str, FailureKind] = {}
        self._generations: Dict[str, int] = {}
        self._last_query: Optional[str] = None
        self._loading_task: Optional[asyncio.Task] = None

    def available_categories(self) -> Tuple[str, ...]:
        return tuple(category.key for category in self._config.categories)

    def describe_categories(self) -> List[Dict[str, object]]:
        """Return JSON-serialisable category metadata for the page."""

        return [
            {"key": category.key, "label": category.label, "chart": category.chart}
            for category in self._config.categories
        ]

    @property
    def last_query(self) -> Optional[str]:
        return self._last_query

    def results(self, key: str) -> Optional[ResultSet]:
        return self._results.get(key)

    def failure(self, key: str) -> Optional[FailureKind]:
        return self._failures.get(key)

    async def load_categories(self) -> None:
        """Fetch every configured category concurrently.

        Keys are stored as their own fetch completes; this coroutine only
        returns once all of them are done.
        """

        await asyncio.gather(
            *(self.refresh_category(category.key) for category in self._config.categories)
        )

    def start_loading(self) -> asyncio.Task:
        """Schedule ``load_categories`` in the background and return the task."""

        if self._loading_task is None or self._loading_task.done():
            self._loading_task = asyncio.create_task(self.load_categories())
        return self._loading_task

    @property
    def loading(self) -> bool:
        return self._loading_task is not None and not self._loading_task.done()

    async def stop_loading(self) -> None:
        """Cancel a background ``load_categories`` run and wait for it to finish."""

        task, self._loading_task = self._loading_task, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def refresh_category(self, key: str) -> FetchOutcome:
        try:
            category = self._config.get_category(key)
        except KeyError as exc:
            raise CategoryNotFoundError(str(exc.args[0])) from exc
        return await self._fetch_into(category.key, self._category_fetch(category))

    async def search(self, query: str) -> FetchOutcome:
        normalized = str(query or "").strip()
        if not normalized:
            return FetchOutcome(results=ResultSet(key=SEARCH_KEY))
        self._last_query = normalized
        return await self._fetch_into(SEARCH_KEY, self._fetcher.fetch(normalized, key=SEARCH_KEY))

    def _category_fetch(self, category: CategoryConfig):
        if category.chart:
            return self._fetcher.fetch_popular(key=category.key)
        return self._fetcher.fetch(category.query or "", key=category.key)

    async def _fetch_into(self, key: str, pending) -> FetchOutcome:
        generation = self._generations.get(key, 0) + 1
        self._generations[key] = generation
        outcome = await pending

        if self._generations.get(key) != generation:
            logger.debug("Dropping stale result set for %s", key)
            return outcome

        self._results[key] = outcome.results
        if outcome.failure is None:
            self._failures.pop(key, None)
        else:
            self._failures[key] = outcome.failure
        return outcome

    def title_for(self, external_id: str) -> str:
        for result_set in self._results.values():
            match = result_set.find(external_id)
            if match is not None:
                return match.title
        return NOW_PLAYING_FALLBACK

    def view(self, key: str, now: datetime | None = None) -> ResultSetView:
        label = SEARCH_LABEL
        if key != SEARCH_KEY:
            try:
                label = self._config.get_category(key).label
            except KeyError as exc:
                raise CategoryNotFoundError(str(exc.args[0])) from exc
        result_set = self._results.get(key) or ResultSet(key=key)
        return ResultSetView(
            key=key,
            label=label,
            cards=[ResultCard.from_result(item, now) for item in result_set.items],
            error=self._failures.get(key),
        )

    def snapshot(self, now: datetime | None = None) -> CatalogSnapshot:
        """Return every key that has arrived so far, search results first.

        Empty category sets are left out unless their fetch failed, in which
        case the section is kept so the page can show the error banner.
        """

        sections: List[ResultSetView] = []
        if SEARCH_KEY in self._results:
            sections.append(self.view(SEARCH_KEY, now))
        pending: List[str] = []
        for category in self._config.categories:
            key = category.key
            if key not in self._results:
                pending.append(key)
                continue
            if self._results[key].items or key in self._failures:
                sections.append(self.view(key, now))
        return CatalogSnapshot(sections=sections, pending=pending)


__all__ = [
    "CatalogService",
    "CatalogServiceError",
    "CategoryNotFoundError",
    "NOW_PLAYING_FALLBACK",
]

"""Lightweight async client for the YouTube Data API v3.

Only two read endpoints are used: ``search.list`` for keyword queries and
``videos.list`` with ``chart=mostPopular`` for the popular shelf.  The client
returns the raw ``items`` array; mapping into result records is the fetcher's
job.

No API key is stored in the repository.  The key is supplied via the
``YOUTUBE_API_KEY`` environment variable.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List

import httpx


_SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"
_VIDEOS_URL = "https://www.googleapis.com/youtube/v3/videos"

logger = logging.getLogger(__name__)


class YouTubeApiError(RuntimeError):
    """Raised when a YouTube Data API request cannot produce items."""


class NetworkFailure(YouTubeApiError):
    """The request was rejected, timed out or answered with a non-success status."""


class MalformedResponse(YouTubeApiError):
    """The response body is not the JSON shape the API documents."""


class YouTubeDataClient:
    """Small helper around the YouTube Data API list endpoints."""

    def __init__(
        self,
        api_key: str | None,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = (api_key or "").strip() or None
        self._timeout = timeout
        self._transport = transport

    @property
    def has_api_key(self) -> bool:
        return self._api_key is not None

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=httpx.Timeout(self._timeout), transport=self._transport)

    async def search_items(self, query: str, *, max_results: int) -> List[Dict[str, Any]]:
        """Return raw ``search.list`` items for a keyword query."""

        params = {
            "q": query,
            "part": "snippet",
            "type": "video",
            "maxResults": max_results,
        }
        return await self._request_items(_SEARCH_URL, params)

    async def popular_items(
        self,
        *,
        region_code: str,
        max_results: int,
        category_id: str | None = None,
    ) -> List[Dict[str, Any]]:
        """Return raw ``videos.list`` items of the most popular chart."""

        params: Dict[str, Any] = {
            "chart": "mostPopular",
            "regionCode": region_code,
            "part": "snippet",
            "maxResults": max_results,
        }
        if category_id:
            params["videoCategoryId"] = category_id
        return await self._request_items(_VIDEOS_URL, params)

    async def _request_items(self, url: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        if self._api_key is None:
            raise NetworkFailure("YouTube API key is not configured")

        request_params = {"key": self._api_key, **params}
        try:
            async with self._client() as client:
                response = await client.get(url, params=request_params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise NetworkFailure(
                f"{url} answered {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise NetworkFailure(f"{url} request failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedResponse("Response body is not JSON") from exc

        if not isinstance(data, dict):
            raise MalformedResponse("Unexpected response from YouTube API")
        if "error" in data:
            error_info = data.get("error")
            message = "YouTube API returned an error"
            if isinstance(error_info, dict) and error_info.get("message"):
                message = str(error_info["message"])
            raise NetworkFailure(message)
        items = data.get("items")
        if not isinstance(items, list):
            raise MalformedResponse("Response has no 'items' array")
        logger.debug("%s returned %d items", url, len(items))
        return items


__all__ = [
    "YouTubeDataClient",
    "YouTubeApiError",
    "NetworkFailure",
    "MalformedResponse",
]

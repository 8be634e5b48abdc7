"""Domain and API models for MusicTube."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .failures import FailureKind
from .formatting import format_relative_age


class CategoryConfig(BaseModel):
    """A shelf on the home page, filled by a keyword search or the popular chart."""

    key: str = Field(..., min_length=1, description="Result set key, e.g. trending")
    label: str = Field(..., description="Heading shown above the shelf")
    query: Optional[str] = Field(None, description="Keyword query for the search API")
    chart: bool = Field(
        False, description="Fill the shelf from the mostPopular chart instead of a query"
    )

    @model_validator(mode="after")
    def _check_source(self) -> "CategoryConfig":
        has_query = bool(self.query and self.query.strip())
        if has_query == self.chart:
            raise ValueError("category needs exactly one of 'query' or 'chart: true'")
        return self


class CatalogConfig(BaseModel):
    """Whole project configuration."""

    categories: List[CategoryConfig] = Field(default_factory=list)
    max_results: int = Field(12, ge=1, le=50, description="Result count cap per fetch")
    region_code: str = Field("IN", min_length=2, max_length=2)
    popular_category_id: Optional[str] = Field(
        None, description="videoCategoryId for the popular chart, e.g. 10 for Music"
    )
    request_timeout: float = Field(10.0, gt=0)
    script_timeout: float = Field(
        15.0, gt=0, description="Seconds to wait for the player script to report ready"
    )

    @field_validator("region_code")
    @classmethod
    def _upper_region(cls, value: str) -> str:
        return value.upper()

    @field_validator("categories")
    @classmethod
    def _unique_keys(cls, value: List[CategoryConfig]) -> List[CategoryConfig]:
        keys = [category.key for category in value]
        if len(keys) != len(set(keys)):
            raise ValueError("category keys must be unique")
        if "search" in keys:
            raise ValueError("'search' is reserved for search results")
        return value

    def get_category(self, key: str) -> CategoryConfig:
        for category in self.categories:
            if category.key == key:
                return category
        raise KeyError(f"Unknown category: {key}")


class SearchResult(BaseModel):
    """One normalised video from the external search API."""

    model_config = ConfigDict(frozen=True)

    external_id: str
    title: str
    channel_name: str
    thumbnail_url: str
    published_at: datetime


class ResultSet(BaseModel):
    """Ordered results for one key.  Replaced wholesale, never mutated."""

    model_config = ConfigDict(frozen=True)

    key: str
    items: Tuple[SearchResult, ...] = ()

    def __len__(self) -> int:
        return len(self.items)

    def find(self, external_id: str) -> Optional[SearchResult]:
        for item in self.items:
            if item.external_id == external_id:
                return item
        return None


class ResultCard(BaseModel):
    """Display projection of a search result."""

    external_id: str
    title: str
    channel_name: str
    thumbnail_url: str
    published_at: datetime
    age: str

    @classmethod
    def from_result(cls, result: SearchResult, now: datetime | None = None) -> "ResultCard":
        return cls(
            external_id=result.external_id,
            title=result.title,
            channel_name=result.channel_name,
            thumbnail_url=result.thumbnail_url,
            published_at=result.published_at,
            age=format_relative_age(result.published_at, now),
        )


class ResultSetView(BaseModel):
    """A result set as rendered by the page, with its failure banner if any."""

    key: str
    label: str
    cards: List[ResultCard] = Field(default_factory=list)
    error: Optional[FailureKind] = Field(
        None, description="Set when the last fetch for this key failed"
    )


class CatalogSnapshot(BaseModel):
    """Every result set that has arrived so far, in display order."""

    sections: List[ResultSetView] = Field(default_factory=list)
    pending: List[str] = Field(
        default_factory=list, description="Category keys whose first fetch is still running"
    )


class PlaybackState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"


class PlaybackSelection(BaseModel):
    """The single item currently chosen for playback."""

    model_config = ConfigDict(frozen=True)

    external_id: str
    title: str


class PlaybackStatus(BaseModel):
    """Snapshot of the playback controller for the mini-player bar."""

    state: PlaybackState
    selection: Optional[PlaybackSelection] = None
    is_playing: bool = False
    failure: Optional[FailureKind] = None


class SelectRequest(BaseModel):
    """Body of a card activation."""

    external_id: str = Field(..., min_length=1, alias="videoId")
    title: Optional[str] = Field(None, description="Title shown in the player bar")

    model_config = ConfigDict(populate_by_name=True)


class WidgetEventType(str, Enum):
    API_READY = "api_ready"
    READY = "ready"
    STATE_CHANGE = "state_change"
    ERROR = "error"


class WidgetEvent(BaseModel):
    """Event relayed by the page from the embedded player."""

    type: WidgetEventType
    widget: Optional[int] = Field(None, description="Widget id the event belongs to")
    data: Optional[int] = Field(None, description="Player state or error code")


class EventAck(BaseModel):
    """Answer to a relayed widget event."""

    accepted: bool
    player: PlaybackStatus


class HealthStatus(BaseModel):
    """Service state for the health endpoint."""

    status: str = "ok"
    categories: List[str] = Field(default_factory=list)
    api_key_configured: bool = False

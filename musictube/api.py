"""FastAPI application serving the MusicTube page and its JSON API."""
from __future__ import annotations

from contextlib import asynccontextmanager
from functools import lru_cache
import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from fastapi import Depends, FastAPI, HTTPException, Query, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import HTMLResponse, Response

from .catalog_service import SEARCH_LABEL, CatalogService, CategoryNotFoundError
from .config import load_config, load_youtube_settings, YouTubeApiSettings
from .failures import FailureReporter
from .models import (
    CatalogConfig,
    CatalogSnapshot,
    EventAck,
    HealthStatus,
    PlaybackStatus,
    ResultSetView,
    SelectRequest,
    WidgetEvent,
)
from .playback import (
    DEFAULT_MOUNT_ID,
    PlaybackController,
    WidgetScriptLoader,
    shared_script_loader,
)
from .result_fetcher import SEARCH_KEY, ResultFetcher
from .widgets import BrowserWidgetFactory
from .youtube_client import YouTubeDataClient


logger = logging.getLogger(__name__)

_UI_TEMPLATE_PLACEHOLDER = "{{ initial_data | tojson | safe }}"


@lru_cache(maxsize=1)
def _load_ui_template() -> str:
    template_path = Path(__file__).with_name("templates") / "ui.html"
    return template_path.read_text(encoding="utf-8")


def _encode_initial_payload(initial_data: dict) -> str:
    """Serialize the initial payload the way Jinja's ``tojson`` filter does.

    HTML-sensitive characters are written as unicode escapes so the object can
    be embedded in an inline ``<script>`` block.
    """

    encoded = json.dumps(
        jsonable_encoder(initial_data), ensure_ascii=False, separators=(",", ":")
    )
    encoded = (
        encoded.replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
        .replace("'", "\\u0027")
    )
    # These Unicode separators can break inline scripts in some browsers.
    encoded = encoded.replace("\u2028", "\\u2028").replace("\u2029", "\\u2029")
    return encoded


def _render_ui(initial_data: dict) -> str:
    template = _load_ui_template()
    initial_json = _encode_initial_payload(initial_data)
    if _UI_TEMPLATE_PLACEHOLDER not in template:
        raise RuntimeError("UI template placeholder not found")
    return template.replace(_UI_TEMPLATE_PLACEHOLDER, initial_json, 1)


@lru_cache(maxsize=1)
def get_config() -> CatalogConfig:
    return load_config()


@lru_cache(maxsize=1)
def get_youtube_settings() -> YouTubeApiSettings:
    return load_youtube_settings()


@lru_cache(maxsize=1)
def get_reporter() -> FailureReporter:
    return FailureReporter()


@lru_cache(maxsize=1)
def get_youtube_client() -> YouTubeDataClient:
    settings = get_youtube_settings()
    if settings.api_key is None:
        logger.warning("YOUTUBE_API_KEY is not set; every fetch will fail")
    return YouTubeDataClient(settings.api_key, timeout=get_config().request_timeout)


@lru_cache(maxsize=1)
def get_catalog_cached() -> CatalogService:
    config = get_config()
    settings = get_youtube_settings()
    fetcher = ResultFetcher(
        get_youtube_client(),
        max_results=config.max_results,
        region_code=settings.region_code or config.region_code,
        popular_category_id=config.popular_category_id,
        reporter=get_reporter(),
    )
    return CatalogService(config, fetcher)


def get_catalog() -> CatalogService:
    return get_catalog_cached()


@lru_cache(maxsize=1)
def get_widget_factory() -> BrowserWidgetFactory:
    return BrowserWidgetFactory()


@lru_cache(maxsize=1)
def get_script_loader() -> WidgetScriptLoader:
    return shared_script_loader(get_widget_factory(), timeout=get_config().script_timeout)


@lru_cache(maxsize=1)
def get_controller_cached() -> PlaybackController:
    return PlaybackController(
        get_widget_factory(), loader=get_script_loader(), reporter=get_reporter()
    )


def get_controller() -> PlaybackController:
    return get_controller_cached()


def _resolve(app: FastAPI, dependency):
    return app.dependency_overrides.get(dependency, dependency)()


@asynccontextmanager
async def lifespan(app: FastAPI):
    catalog = _resolve(app, get_catalog)
    catalog.start_loading()
    try:
        yield
    finally:
        await catalog.stop_loading()
        _resolve(app, get_controller).dispose()


app = FastAPI(title="MusicTube", version="0.1.0", lifespan=lifespan)


@app.get("/health", response_model=HealthStatus)
async def health(catalog: CatalogService = Depends(get_catalog)) -> HealthStatus:
    return HealthStatus(
        categories=list(catalog.available_categories()),
        api_key_configured=get_youtube_settings().api_key is not None,
    )


@app.head("/health")
async def health_head(catalog: CatalogService = Depends(get_catalog)) -> Response:
    """Lightweight HEAD variant of the health endpoint for platform probes."""

    catalog.available_categories()
    return Response(status_code=200)


@app.get("/", response_class=HTMLResponse)
@app.get("/ui", response_class=HTMLResponse)
async def ui(
    catalog: CatalogService = Depends(get_catalog),
    controller: PlaybackController = Depends(get_controller),
) -> HTMLResponse:
    initial_data = {
        "categories": catalog.describe_categories(),
        "snapshot": catalog.snapshot(),
        "player": controller.status(),
        "mountId": DEFAULT_MOUNT_ID,
        "lastQuery": catalog.last_query or "",
    }
    return HTMLResponse(content=_render_ui(initial_data))


@app.get("/api/categories")
async def categories(catalog: CatalogService = Depends(get_catalog)) -> List[Dict[str, Any]]:
    return catalog.describe_categories()


@app.get("/api/results", response_model=CatalogSnapshot)
async def results(catalog: CatalogService = Depends(get_catalog)) -> CatalogSnapshot:
    return catalog.snapshot()


@app.post("/api/categories/{key}/refresh", response_model=ResultSetView)
async def refresh_category(
    key: str, catalog: CatalogService = Depends(get_catalog)
) -> ResultSetView:
    try:
        await catalog.refresh_category(key)
    except CategoryNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return catalog.view(key)


@app.get("/api/search", response_model=ResultSetView)
async def search(
    q: str = Query("", description="Keyword query, e.g. lofi chill beats"),
    catalog: CatalogService = Depends(get_catalog),
) -> ResultSetView:
    if not q.strip():
        return ResultSetView(key=SEARCH_KEY, label=SEARCH_LABEL)
    await catalog.search(q)
    return catalog.view(SEARCH_KEY)


@app.get("/api/player", response_model=PlaybackStatus)
async def player_status(
    controller: PlaybackController = Depends(get_controller),
) -> PlaybackStatus:
    return controller.status()


@app.post(
    "/api/player/select",
    response_model=PlaybackStatus,
    status_code=status.HTTP_202_ACCEPTED,
)
async def select(
    request: SelectRequest,
    catalog: CatalogService = Depends(get_catalog),
    controller: PlaybackController = Depends(get_controller),
) -> PlaybackStatus:
    title = (request.title or "").strip() or catalog.title_for(request.external_id)
    controller.schedule_select(request.external_id, title)
    return controller.status()


@app.post("/api/player/toggle", response_model=PlaybackStatus)
async def toggle(controller: PlaybackController = Depends(get_controller)) -> PlaybackStatus:
    controller.toggle_playback()
    return controller.status()


@app.post("/api/player/skip-forward", response_model=PlaybackStatus)
async def skip_forward(
    controller: PlaybackController = Depends(get_controller),
) -> PlaybackStatus:
    controller.skip_forward()
    return controller.status()


@app.post("/api/player/skip-back", response_model=PlaybackStatus)
async def skip_back(controller: PlaybackController = Depends(get_controller)) -> PlaybackStatus:
    controller.skip_back()
    return controller.status()


@app.delete("/api/player", response_model=PlaybackStatus)
async def clear_player(
    controller: PlaybackController = Depends(get_controller),
) -> PlaybackStatus:
    controller.clear()
    return controller.status()


@app.get("/api/player/commands")
async def player_commands(
    factory: BrowserWidgetFactory = Depends(get_widget_factory),
) -> Dict[str, List[Dict[str, Any]]]:
    return {"commands": factory.drain_commands()}


@app.post("/api/player/events", response_model=EventAck)
async def player_events(
    event: WidgetEvent,
    factory: BrowserWidgetFactory = Depends(get_widget_factory),
    controller: PlaybackController = Depends(get_controller),
) -> EventAck:
    accepted = factory.dispatch(event)
    return EventAck(accepted=accepted, player=controller.status())

"""Helpers to load configuration from YAML and the environment."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import yaml

from .models import CatalogConfig


DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "default.yaml"
ENV_CONFIG_PATH = "MUSICTUBE_CONFIG_PATH"
YOUTUBE_API_KEY_ENV = "YOUTUBE_API_KEY"
YOUTUBE_REGION_ENV = "YOUTUBE_API_REGION"


@dataclass(frozen=True)
class YouTubeApiSettings:
    """Settings for the YouTube Data API integration."""

    api_key: str | None
    region_code: str | None


def load_config(path: Path | None = None) -> CatalogConfig:
    """Loads config from YAML file."""
    config_path = path or Path(os.getenv(ENV_CONFIG_PATH, DEFAULT_CONFIG_PATH))
    with open(config_path, "r", encoding="utf-8") as fh:
        raw_data: Dict[str, Any] = yaml.safe_load(fh) or {}
    return CatalogConfig.model_validate(raw_data)


def load_youtube_settings() -> YouTubeApiSettings:
    """Read YouTube API integration parameters from the environment.

    A missing key is not an error here: the fetcher degrades to failing every
    request instead of refusing to start.
    """

    raw_key = os.getenv(YOUTUBE_API_KEY_ENV, "").strip()
    raw_region = os.getenv(YOUTUBE_REGION_ENV, "").strip()
    api_key = raw_key or None
    region_code = raw_region.upper() or None
    return YouTubeApiSettings(api_key=api_key, region_code=region_code)

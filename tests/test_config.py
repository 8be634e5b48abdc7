from pathlib import Path

import pytest
from pydantic import ValidationError

from musictube.config import load_config, load_youtube_settings
from musictube.models import CatalogConfig


CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "default.yaml"


def test_load_config_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MUSICTUBE_CONFIG_PATH", str(CONFIG_PATH))
    config = load_config()
    assert isinstance(config, CatalogConfig)
    assert config.max_results == 12
    assert config.region_code == "IN"
    keys = [category.key for category in config.categories]
    assert keys[0] == "trending"
    assert "popular" in keys
    assert config.get_category("popular").chart is True


def test_load_config_from_explicit_path(tmp_path: Path) -> None:
    path = tmp_path / "custom.yaml"
    path.write_text(
        "region_code: us\ncategories:\n  - key: jazz\n    label: Jazz\n    query: smooth jazz\n",
        encoding="utf-8",
    )
    config = load_config(path)
    assert config.region_code == "US"
    assert config.max_results == 12
    assert config.get_category("jazz").query == "smooth jazz"


def test_category_needs_exactly_one_source() -> None:
    with pytest.raises(ValidationError):
        CatalogConfig.model_validate(
            {"categories": [{"key": "x", "label": "X", "query": "q", "chart": True}]}
        )
    with pytest.raises(ValidationError):
        CatalogConfig.model_validate({"categories": [{"key": "x", "label": "X"}]})


def test_category_keys_are_unique_and_search_is_reserved() -> None:
    duplicate = {"key": "a", "label": "A", "query": "a"}
    with pytest.raises(ValidationError):
        CatalogConfig.model_validate({"categories": [duplicate, duplicate]})
    with pytest.raises(ValidationError):
        CatalogConfig.model_validate(
            {"categories": [{"key": "search", "label": "S", "query": "s"}]}
        )


def test_unknown_category() -> None:
    config = CatalogConfig()
    with pytest.raises(KeyError):
        config.get_category("missing")


def test_youtube_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("YOUTUBE_API_KEY", "  secret ")
    monkeypatch.setenv("YOUTUBE_API_REGION", "de")
    settings = load_youtube_settings()
    assert settings.api_key == "secret"
    assert settings.region_code == "DE"


def test_youtube_settings_without_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("YOUTUBE_API_KEY", raising=False)
    monkeypatch.delenv("YOUTUBE_API_REGION", raising=False)
    settings = load_youtube_settings()
    assert settings.api_key is None
    assert settings.region_code is None

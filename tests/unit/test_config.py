"""Unit tests for Settings and the YAML config loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from src.config.loader import _deep_merge, load_config
from src.config.settings import Settings
from src.utils.errors import ConfigurationError


def _settings(**overrides) -> Settings:
    """Build a Settings instance with no API keys unless overridden."""
    defaults = {
        "voyage_api_key": "",
        "openai_api_key": "",
        "pdfco_api_key": "",
    }
    defaults.update(overrides)
    return Settings(**defaults)


class TestSettings:
    def test_processing_options_mirror_settings(self) -> None:
        options = _settings(chunk_size=500, chunk_overlap=50, extract_images=True).processing_options()

        assert options.chunk_size == 500
        assert options.chunk_overlap == 50
        assert options.extract_images is True
        assert options.embedding_model == "voyage-3"

    def test_invalid_overlap_surfaces_from_options(self) -> None:
        with pytest.raises(ValueError):
            _settings(chunk_size=100, chunk_overlap=200).processing_options()

    def test_available_providers_order(self) -> None:
        assert _settings().get_available_embedding_providers() == []
        assert _settings(openai_api_key="sk").get_available_embedding_providers() == ["openai"]
        assert _settings(openai_api_key="sk", voyage_api_key="vo").get_available_embedding_providers() == [
            "voyage",
            "openai",
        ]

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHUNK_SIZE", "321")
        monkeypatch.setenv("STORAGE_BACKEND", "memory")
        settings = Settings()
        assert settings.chunk_size == 321
        assert settings.storage_backend == "memory"


class TestLoadConfig:
    def test_yaml_values_merge_with_settings(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "app:\n  name: corpusFlow\n  port: 1\nsearch:\n  hybrid_alpha: 0.7\n",
            encoding="utf-8",
        )

        config = load_config(str(path), settings=_settings(app_port=9000, chunk_size=640))

        assert config["app"]["name"] == "corpusFlow"
        assert config["app"]["port"] == 9000
        assert config["search"]["hybrid_alpha"] == 0.7
        assert config["processing"]["chunk_size"] == 640
        assert config["extraction"]["enabled"] is False

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        config = load_config(str(tmp_path / "absent.yaml"), settings=_settings())
        assert config["storage"]["backend"] == "sqlite"

    def test_repo_config_loads(self, project_root: Path) -> None:
        config = load_config(str(project_root / "config" / "config.yaml"), settings=_settings())
        assert config["search"]["default_limit"] == 10

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("app: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(str(path), settings=_settings())

    def test_top_level_must_be_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(str(path), settings=_settings())


class TestDeepMerge:
    def test_nested_dicts_merge(self) -> None:
        base = {"processing": {"chunk_size": 800, "extra": True}, "keep": 1}
        _deep_merge(base, {"processing": {"chunk_size": 1000}, "new": 2})
        assert base == {"processing": {"chunk_size": 1000, "extra": True}, "keep": 1, "new": 2}

    def test_non_dict_replaces(self) -> None:
        base = {"a": {"b": 1}}
        _deep_merge(base, {"a": 5})
        assert base == {"a": 5}

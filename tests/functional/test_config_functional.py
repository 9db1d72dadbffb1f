"""Functional tests for configuration loading and per-survey page settings."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from survey_engine import config as config_module
from survey_engine.config import CollectorConfig, PageSettings, load_config


@pytest.fixture
def config_files(tmp_path, monkeypatch):
    """Point the loader at an isolated config file and override directory."""
    root = tmp_path / "survey_config.json"
    overrides = tmp_path / "config"
    overrides.mkdir()
    monkeypatch.setattr(config_module, "ROOT_CONFIG", root)
    monkeypatch.setattr(config_module, "CONFIG_DIR", overrides)
    for key in ("FRONTEND_URL", "EXPORT_EMPTY_MARKER", "ANALYTICS_PERCENTAGE_DECIMALS", "ANALYTICS_TIMEOUT_SECONDS", "CORS_ALLOW_ORIGINS"):
        monkeypatch.delenv(key, raising=False)
    return root, overrides


def test_json_file_supplies_base_values(config_files):
    root, _ = config_files
    root.write_text(
        json.dumps(
            {
                "collector": {"frontend_url": "https://from-json.test/"},
                "export": {"empty_marker": "n/a"},
                "analytics": {"percentage_decimals": 2},
            }
        ),
        encoding="utf-8",
    )
    cfg = load_config()
    assert cfg.collector.frontend_url == "https://from-json.test"
    assert cfg.export.empty_marker == "n/a"
    assert cfg.analytics.percentage_decimals == 2


def test_override_file_beats_json_and_env_beats_both(config_files, monkeypatch):
    root, overrides = config_files
    root.write_text(json.dumps({"collector": {"frontend_url": "https://json.test"}}), encoding="utf-8")
    (overrides / "collector.frontend_url").write_text("https://file.test\n", encoding="utf-8")
    assert load_config().collector.frontend_url == "https://file.test"

    monkeypatch.setenv("FRONTEND_URL", "https://env.test")
    assert load_config().collector.frontend_url == "https://env.test"


def test_defaults_without_any_source(config_files):
    cfg = load_config()
    assert cfg.collector.default_collector == "Web Link"
    assert cfg.collector.response_code_length == 8
    assert cfg.export.sheet_title == "Summary"
    assert cfg.analytics.timeout_seconds == 30.0
    assert cfg.http.cors_origins == ("*",)


def test_cors_origins_from_json_list_and_env(config_files, monkeypatch):
    root, _ = config_files
    root.write_text(json.dumps({"http": {"cors_origins": ["https://a.test/", "https://b.test"]}}), encoding="utf-8")
    assert load_config().http.cors_origins == ("https://a.test", "https://b.test")

    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "https://env.test, ")
    assert load_config().http.cors_origins == ("https://env.test",)


def test_invalid_values_are_rejected(config_files, monkeypatch):
    monkeypatch.setenv("ANALYTICS_TIMEOUT_SECONDS", "0")
    with pytest.raises(ValidationError):
        load_config()
    with pytest.raises(ValidationError):
        CollectorConfig(response_code_length=2)


def test_page_settings_ignore_unknown_keys():
    settings = PageSettings.from_survey_row("s-1", {"header_enabled": True, "theme": "dark", "survey_id": "other"})
    assert settings.survey_id == "s-1"
    assert settings.header_enabled is True
    assert settings.response_limit is None
    assert PageSettings.from_survey_row("s-1", None).terms_conditions_enabled is False

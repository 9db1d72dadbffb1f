"""Configuration utilities for the survey service.

This module loads application configuration with the following rules:
- Primary source: `survey_config.json` at the project root.
- Overrides: environment variables, then optional text files under `config/`.
- Validation: Pydantic models enforce required fields and value constraints.

`PageSettings` is the collector settings block sent with every rendered page.
It is built once per request from the survey row instead of being assembled
field by field inside the rendering code.
"""

from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator


CONFIG_DIR = Path("config")
ROOT_CONFIG = Path("survey_config.json")
logger = logging.getLogger(__name__)


def _read_config_file(rel_path: str) -> Optional[str]:
    path = CONFIG_DIR / rel_path
    try:
        if path.exists():
            return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read override %s: %s", path, e)
        return None
    return None


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)


class DatabaseConfig(BaseModel):
    dsn: str

    @field_validator("dsn")
    @classmethod
    def dsn_must_be_non_empty(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("database.dsn must be a non-empty string")
        return v


class CollectorConfig(BaseModel):
    # Loopback spellings collapse to this address
    loopback_canonical: str = "127.0.0.1"
    loopback_aliases: tuple[str, ...] = ("::1", "127.0.0.1", "::ffff:127.0.0.1", "localhost")
    frontend_url: str = "http://localhost:8080"
    default_collector: str = "Web Link"
    response_code_length: int = Field(default=8, ge=4, le=32)

    @field_validator("frontend_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class ExportConfig(BaseModel):
    sheet_title: str = "Summary"
    empty_marker: str = "-"
    title_font_color: str = "FF065F46"
    title_fill_color: str = "FFD1FAE5"
    question_font_color: str = "FF4B5563"
    header_font_color: str = "FFFFFFFF"
    header_fill_color: str = "FF10B981"
    highlight_fill_color: str = "FFD1FAE5"
    highlight_font_color: str = "FF065F46"
    muted_font_color: str = "FF9CA3AF"
    label_column_width: int = Field(default=50, gt=0)
    value_column_width: int = Field(default=15, gt=0)
    text_column_width: int = Field(default=100, gt=0)


class AnalyticsConfig(BaseModel):
    percentage_decimals: int = Field(default=1, ge=0, le=4)
    timeout_seconds: float = Field(default=30.0, gt=0)


class HttpConfig(BaseModel):
    cors_origins: tuple[str, ...] = ("*",)
    request_id_header: str = "X-Request-Id"

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_origins(cls, v: object) -> object:
        if isinstance(v, str):
            return tuple(o.strip().rstrip("/") for o in v.split(",") if o.strip())
        return v


class AppConfig(BaseModel):
    database: DatabaseConfig
    http: HttpConfig = Field(default_factory=HttpConfig)
    collector: CollectorConfig = Field(default_factory=CollectorConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)


class PageSettings(BaseModel):
    """Per-survey collector settings rendered alongside a page.

    Defaults describe a plain survey: no header, no introduction page, no
    terms gate, no end date and no response or time limits.
    """

    survey_id: str
    header_enabled: bool = False
    header_logo_url: Optional[str] = None
    introduction_page_enabled: bool = False
    introduction_page_description: Optional[str] = None
    terms_conditions_enabled: bool = False
    terms_conditions_description: Optional[str] = None
    end_date_enabled: bool = False
    end_date: Optional[str] = None
    response_limit_enabled: bool = False
    response_limit: Optional[int] = None
    time_limit_enabled: bool = False
    time_limit: Optional[int] = None

    @classmethod
    def from_survey_row(cls, survey_id: str, raw: dict | None) -> "PageSettings":
        """Build settings from the JSON blob stored with a survey, ignoring unknown keys."""
        data = {k: v for k, v in (raw or {}).items() if k in cls.model_fields and k != "survey_id"}
        return cls(survey_id=survey_id, **data)


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


def load_config() -> AppConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables
    2) Text files in `config/` (optional)
    3) survey_config.json at project root (primary base)
    4) Safe defaults for development
    """

    base = _read_json_file(ROOT_CONFIG)

    def _base(path: str, default: Optional[str] = None) -> Optional[str]:
        cur: object = base
        for key in path.split("."):
            if not isinstance(cur, dict) or key not in cur:
                return default
            cur = cur[key]
        if isinstance(cur, list):
            return ",".join(str(item) for item in cur)
        return str(cur) if cur is not None else default

    dsn = (
        _env("TEST_DATABASE_URL")
        or _env("DATABASE_URL")
        or _read_config_file("database.url")
        or _base("database.dsn")
        or "sqlite+pysqlite:///:memory:"
    )

    frontend_url = _env("FRONTEND_URL") or _read_config_file("collector.frontend_url") or _base("collector.frontend_url", "http://localhost:8080")
    default_collector = _env("COLLECTOR_DEFAULT_NAME") or _base("collector.default_collector", "Web Link")
    code_length_text = _env("COLLECTOR_RESPONSE_CODE_LENGTH") or _base("collector.response_code_length", "8")

    empty_marker = _env("EXPORT_EMPTY_MARKER") or _read_config_file("export.empty_marker") or _base("export.empty_marker", "-")
    sheet_title = _env("EXPORT_SHEET_TITLE") or _base("export.sheet_title", "Summary")

    decimals_text = _env("ANALYTICS_PERCENTAGE_DECIMALS") or _base("analytics.percentage_decimals", "1")
    timeout_text = _env("ANALYTICS_TIMEOUT_SECONDS") or _read_config_file("analytics.timeout_seconds") or _base("analytics.timeout_seconds", "30")
    cors_text = _env("CORS_ALLOW_ORIGINS") or _read_config_file("http.cors_origins") or _base("http.cors_origins", "*")

    try:
        cfg = AppConfig(
            database=DatabaseConfig(dsn=dsn),
            http=HttpConfig(cors_origins=str(cors_text)),
            collector=CollectorConfig(
                frontend_url=str(frontend_url),
                default_collector=str(default_collector),
                response_code_length=int(str(code_length_text).strip()),
            ),
            export=ExportConfig(empty_marker=str(empty_marker), sheet_title=str(sheet_title)),
            analytics=AnalyticsConfig(
                percentage_decimals=int(str(decimals_text).strip()),
                timeout_seconds=float(str(timeout_text).strip()),
            ),
        )
        return cfg
    except (PydanticValidationError, ValueError) as e:
        logger.error("Invalid application configuration: %s", e)
        raise


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Return the process-wide configuration, loading it on first use."""
    return load_config()


__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "HttpConfig",
    "CollectorConfig",
    "ExportConfig",
    "AnalyticsConfig",
    "PageSettings",
    "load_config",
    "get_config",
]

"""CORS for the collector frontend and analytics dashboards.

Origins come from `HttpConfig.cors_origins`. Credentials are only allowed
for an explicit origin list; browsers reject a wildcard origin combined with
credentials.
"""

from __future__ import annotations

from typing import Iterable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from survey_engine.http.caller import PREVIEW_HEADER, USER_ID_HEADER

# Headers the collector and dashboards send
ALLOW_HEADERS: list[str] = ["Content-Type", "X-Request-Id", USER_ID_HEADER, PREVIEW_HEADER]
# Headers the browser may read back: request correlation and export filenames
EXPOSE_HEADERS: list[str] = ["X-Request-Id", "Content-Disposition"]
ALLOW_METHODS: list[str] = ["GET", "POST", "DELETE", "OPTIONS"]


def cors_options(origins: Iterable[str]) -> dict:
    allowed = [o for o in origins if o] or ["*"]
    wildcard = "*" in allowed
    return {
        "allow_origins": ["*"] if wildcard else allowed,
        "allow_credentials": not wildcard,
        "allow_methods": ALLOW_METHODS,
        "allow_headers": ALLOW_HEADERS,
        "expose_headers": EXPOSE_HEADERS,
    }


def apply_cors(app: FastAPI, *, origins: Iterable[str] = ("*",)) -> None:
    app.add_middleware(CORSMiddleware, **cors_options(origins))


__all__ = ["apply_cors", "cors_options", "ALLOW_HEADERS", "ALLOW_METHODS", "EXPOSE_HEADERS"]

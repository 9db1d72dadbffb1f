from __future__ import annotations

import logging
import os

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text as sql_text
from sqlalchemy.exc import SQLAlchemyError

from survey_engine.config import get_config
from survey_engine.db.base import get_engine
from survey_engine.db.migrations_runner import apply_migrations
from survey_engine.errors import SurveyEngineError
from survey_engine.http.problem import (
    handle_engine_error,
    handle_http_exception,
    handle_request_validation_error,
    handle_unexpected_error,
)
from survey_engine.http.request_id import RequestIdMiddleware
from survey_engine.logging_setup import configure_logging
from survey_engine.middleware.cors import apply_cors
from survey_engine.routes import api_router

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def _health_check() -> dict:
    try:
        with get_engine().connect() as conn:
            conn.execute(sql_text("SELECT 1"))
        return {"status": "ok", "db": True}
    except SQLAlchemyError as e:
        logger.error("Health DB check failed", exc_info=True)
        return {"status": "degraded", "db": False, "reason": str(e)}


def create_app() -> FastAPI:
    # Configure global logging before app instantiation so all modules emit
    configure_logging()
    cfg = get_config()
    app = FastAPI(title="Survey Engine")
    app.add_exception_handler(SurveyEngineError, handle_engine_error)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.add_middleware(RequestIdMiddleware, header_name=cfg.http.request_id_header)
    apply_cors(app, origins=cfg.http.cors_origins)

    app.include_router(api_router, prefix=API_PREFIX)

    @app.get("/health", summary="Liveness and database connectivity")
    def health() -> dict:
        return _health_check()

    @app.on_event("startup")
    def _auto_migrate() -> None:
        if not _truthy(os.getenv("AUTO_APPLY_MIGRATIONS")):
            return
        applied = apply_migrations(get_engine())
        logger.info("startup_migrations applied=%s", len(applied))

    logger.info("app_created routes=%s", len(app.routes))
    return app


__all__ = ["create_app"]

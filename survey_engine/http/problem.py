"""Problem+JSON utilities and global exception handlers.

Defines the RFC 7807 media type and handler callables that turn engine
errors, HTTP exceptions, request validation failures and unexpected errors
into application/problem+json responses.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from survey_engine.errors import SurveyEngineError

PROBLEM_MEDIA_TYPE = "application/problem+json"

logger = logging.getLogger(__name__)


def _problem_response(request: Request, problem: dict[str, Any], status_code: int, headers: dict[str, str] | None = None) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    if request_id and "request_id" not in problem:
        problem = {**problem, "request_id": request_id}
    return JSONResponse(problem, status_code=status_code, media_type=PROBLEM_MEDIA_TYPE, headers=headers)


async def handle_engine_error(request: Request, exc: SurveyEngineError) -> JSONResponse:  # noqa: D401
    if exc.status >= 500:
        logger.error("engine_error code=%s path=%s", exc.code, request.url.path, exc_info=exc)
    else:
        logger.info("engine_error code=%s status=%s path=%s", exc.code, exc.status, request.url.path)
    return _problem_response(request, exc.to_problem(), exc.status)


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:  # noqa: D401
    status_code = int(exc.status_code or 500)
    if isinstance(exc.detail, dict):
        detail: dict[str, Any] = dict(exc.detail)
        detail.setdefault("status", status_code)
    else:
        detail = {"title": "Error", "status": status_code, "detail": str(exc.detail or "")}
    headers = {str(k): str(v) for k, v in (exc.headers or {}).items()}
    return _problem_response(request, detail, status_code, headers or None)


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:  # noqa: D401
    problem = {
        "title": "Invalid Request",
        "status": 422,
        "detail": "Request validation failed",
        "code": "REQUEST_VALIDATION_FAILED",
        "errors": [
            {"loc": list(err.get("loc", ())), "msg": str(err.get("msg", "")), "type": str(err.get("type", ""))}
            for err in exc.errors()
        ],
    }
    return _problem_response(request, problem, 422)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:  # noqa: D401
    logger.error("unexpected_error path=%s", request.url.path, exc_info=exc)
    return _problem_response(request, {"title": "Internal Server Error", "status": 500, "code": "INTERNAL_ERROR"}, 500)


__all__ = [
    "PROBLEM_MEDIA_TYPE",
    "handle_engine_error",
    "handle_http_exception",
    "handle_request_validation_error",
    "handle_unexpected_error",
]

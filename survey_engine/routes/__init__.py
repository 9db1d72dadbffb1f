"""APIRouter registration for the survey service."""

from __future__ import annotations

from fastapi import APIRouter

from survey_engine.routes.analytics import router as analytics_router
from survey_engine.routes.collector import router as collector_router
from survey_engine.routes.responses import router as responses_router

api_router = APIRouter()
api_router.include_router(collector_router, tags=["Collector"])
api_router.include_router(responses_router, tags=["Responses"])
api_router.include_router(analytics_router, tags=["Analytics", "Export"])

__all__ = ["api_router"]

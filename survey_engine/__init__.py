"""FastAPI application package for the survey response service.

Exposes the application factory. Collection, identity resolution,
aggregation and export logic lives in `survey_engine/logic/`; route
handlers live in `survey_engine/routes/`.
"""

from __future__ import annotations

from survey_engine.main import create_app

__all__ = ["create_app"]

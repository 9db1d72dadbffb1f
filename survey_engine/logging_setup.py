"""Central logging configuration for the application.

One stdout handler on the root logger; every record is stamped with the id
of the HTTP request it was emitted under (`-` outside a request) so log lines
from the collector, repositories and aggregation can be correlated. The
level of the `survey_engine` loggers comes from `LOG_LEVEL` (default INFO).
"""
from __future__ import annotations

import logging
import os
from contextvars import ContextVar
from logging.config import dictConfig

# Set by RequestIdMiddleware for the lifetime of one request
REQUEST_ID: ContextVar[str] = ContextVar("request_id", default="-")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = REQUEST_ID.get()
        return True


def _dict_config(level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_id": {"()": RequestIdFilter}},
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)s:%(name)s:[%(request_id)s] %(message)s",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": "DEBUG",
                "formatter": "default",
                "filters": ["request_id"],
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"level": "WARNING", "handlers": ["console"]},
        "loggers": {
            "survey_engine": {"level": level, "handlers": [], "propagate": True},
            # openpyxl and SQL echo stay quiet unless explicitly raised
            "openpyxl": {"level": "WARNING", "handlers": [], "propagate": True},
            "sqlalchemy.engine": {"level": "WARNING", "handlers": [], "propagate": True},
            "uvicorn": {"level": "INFO", "handlers": ["console"], "propagate": False},
            "uvicorn.error": {"level": "INFO", "handlers": ["console"], "propagate": False},
            "uvicorn.access": {"level": "INFO", "handlers": ["console"], "propagate": False},
        },
    }


def configure_logging(level: str | None = None) -> None:
    """Configure application-wide logging once.

    If the root logger already has handlers, only the `survey_engine` level is
    applied, so reloaders and pytest's capture handlers keep their output.
    """
    resolved = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    if logging.getLevelName(resolved) == f"Level {resolved}":
        resolved = "INFO"
    root = logging.getLogger()
    if root.handlers:
        logging.getLogger("survey_engine").setLevel(resolved)
        return
    dictConfig(_dict_config(resolved))


__all__ = ["REQUEST_ID", "RequestIdFilter", "configure_logging"]

"""Functional tests for logging configuration and CORS options."""

from __future__ import annotations

import logging

from survey_engine.logging_setup import REQUEST_ID, RequestIdFilter, configure_logging
from survey_engine.middleware.cors import cors_options


def _record() -> logging.LogRecord:
    return logging.LogRecord("survey_engine.test", logging.INFO, __file__, 1, "hello", None, None)


def test_filter_stamps_current_request_id():
    token = REQUEST_ID.set("req-abc")
    try:
        record = _record()
        assert RequestIdFilter().filter(record) is True
        assert record.request_id == "req-abc"
    finally:
        REQUEST_ID.reset(token)


def test_filter_outside_request_uses_placeholder():
    record = _record()
    RequestIdFilter().filter(record)
    assert record.request_id == "-"


def test_configure_logging_applies_level_when_already_configured(monkeypatch):
    # pytest installs capture handlers on the root logger
    logger = logging.getLogger("survey_engine")
    previous = logger.level
    try:
        monkeypatch.setenv("LOG_LEVEL", "debug")
        configure_logging()
        assert logger.level == logging.DEBUG
        configure_logging("not-a-level")
        assert logger.level == logging.INFO
    finally:
        logger.setLevel(previous)


def test_cors_wildcard_disables_credentials():
    opts = cors_options(["*"])
    assert opts["allow_origins"] == ["*"]
    assert opts["allow_credentials"] is False
    assert "Content-Disposition" in opts["expose_headers"]


def test_cors_explicit_origins_allow_credentials():
    opts = cors_options(["https://surveys.example.test", ""])
    assert opts["allow_origins"] == ["https://surveys.example.test"]
    assert opts["allow_credentials"] is True

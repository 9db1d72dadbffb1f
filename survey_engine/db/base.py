"""SQLAlchemy engine and transaction helpers.

The service targets PostgreSQL in production but supports SQLite for local
development and CI. No declarative models are defined here; repositories
issue SQL through `sqlalchemy.text` and this module only manages connection
lifecycle.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


def _db_url() -> str:
    return (
        os.getenv("TEST_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or "sqlite+pysqlite:///:memory:"
    )


# Module-level cached Engine to ensure a single shared connection pool
_ENGINE: Engine | None = None
_ENGINE_URL: str | None = None


def get_engine(url: str | None = None) -> Engine:
    """Return a singleton SQLAlchemy Engine for the given URL.

    Reuses a module-level Engine so repositories share the same pool.
    For SQLite in-memory URLs, use a StaticPool to keep a single connection
    alive across sessions and threads during tests.
    """
    global _ENGINE, _ENGINE_URL
    resolved_url = url or _db_url()

    if _ENGINE is None or _ENGINE_URL != resolved_url:
        kwargs: dict = {"future": True, "pool_pre_ping": True}
        if resolved_url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in resolved_url:
                kwargs["poolclass"] = StaticPool
        if _ENGINE is not None:
            _ENGINE.dispose()
        _ENGINE = create_engine(resolved_url, **kwargs)
        _ENGINE_URL = resolved_url
        logger.info("db_engine_created dialect=%s", _ENGINE.dialect.name)

    return _ENGINE


def dialect_name(conn: Connection) -> str:
    return (getattr(conn.dialect, "name", "") or "").lower()


@contextmanager
def transaction(conn: Connection | None = None) -> Iterator[Connection]:
    """Yield a connection inside a transaction.

    When the caller already holds a connection it is reused as-is so several
    repository calls can share one unit of work; otherwise a new transaction
    is opened and committed (or rolled back on error) on exit.
    """
    if conn is not None:
        yield conn
        return
    eng = get_engine()
    with eng.begin() as new_conn:
        yield new_conn


@contextmanager
def read_connection(conn: Connection | None = None) -> Iterator[Connection]:
    """Yield a connection for read-only queries."""
    if conn is not None:
        yield conn
        return
    eng = get_engine()
    with eng.connect() as new_conn:
        yield new_conn


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string, the form every timestamp column stores."""
    return datetime.now(timezone.utc).isoformat()


def to_iso(value: object) -> str | None:
    """Normalise a timestamp column value to ISO-8601 text.

    SQLite returns the stored text unchanged; PostgreSQL returns datetimes.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    return str(value)


def parse_iso(value: object) -> datetime | None:
    text = to_iso(value)
    if not text:
        return None
    parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed

"""Database bootstrap utilities for the survey service.

This module exposes convenience imports for engine construction, transaction
scoping, timestamp helpers and the migrations runner that applies SQL files
from the local `migrations/` (PostgreSQL) or `sqlite_migrations/` (SQLite)
directory.
"""

from survey_engine.db.base import (
    dialect_name,
    get_engine,
    parse_iso,
    read_connection,
    to_iso,
    transaction,
    utc_now,
)
from survey_engine.db.migrations_runner import apply_migrations, migrations_dir_for

__all__ = [
    "dialect_name",
    "get_engine",
    "parse_iso",
    "read_connection",
    "to_iso",
    "transaction",
    "utc_now",
    "apply_migrations",
    "migrations_dir_for",
]

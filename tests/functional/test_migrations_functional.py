"""Functional tests for the SQL migrations runner and the shipped schema."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy import text as sql_text

from survey_engine.db.migrations_runner import _split_statements, apply_migrations
from survey_engine.logic import repository_definitions as definitions

SQLITE_MIGRATIONS = Path(__file__).resolve().parents[2] / "sqlite_migrations"


def test_semicolons_inside_comments_do_not_split_statements():
    sql = (
        "-- one live row per key; history stays\n"
        "CREATE TABLE t (id TEXT);\n"
        "  -- trailing note; still a comment\n"
        "CREATE INDEX ix_t ON t (id);\n"
        "BEGIN;\nCOMMIT;\n"
    )
    assert _split_statements(sql) == ["CREATE TABLE t (id TEXT)", "CREATE INDEX ix_t ON t (id)"]


def test_fresh_database_gets_every_index_and_journal_entry(tmp_path):
    # A separate engine keeps the shared test database untouched
    engine = create_engine(f"sqlite:///{tmp_path / 'fresh.db'}")
    try:
        applied = apply_migrations(engine, migrations_dir=SQLITE_MIGRATIONS)
        assert applied == sorted(p.name for p in SQLITE_MIGRATIONS.glob("*.sql"))
        with engine.connect() as conn:
            indexes = {
                r[0] for r in conn.execute(sql_text("SELECT name FROM sqlite_master WHERE type = 'index'"))
            }
        assert {"uq_response_instance_question", "uq_instance_survey_user", "uq_instance_survey_address"} <= indexes
        assert apply_migrations(engine, migrations_dir=SQLITE_MIGRATIONS) == []
    finally:
        engine.dispose()


def test_surveys_may_reuse_page_ids(survey_definition, inactive_definition):
    open_pages = [p.page_id for p in definitions.fetch_definition("s-1").pages]
    closed_pages = [p.page_id for p in definitions.fetch_definition("s-closed").pages]
    assert open_pages == closed_pages == ["p-1", "p-2"]

    # Re-storing one survey leaves the other's pages alone
    definitions.store_definition(survey_definition)
    assert len(definitions.fetch_definition("s-closed").pages) == 2

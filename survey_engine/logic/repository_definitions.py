"""Survey definition snapshot data access.

Definitions are owned by the authoring side; this module reads them as
immutable `SurveyDefinition` snapshots and maintains the two survey-level
counters the collector updates (visits and completed responses).
`store_definition` exists for seeding and import, not for authoring flows.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection

from survey_engine.db.base import dialect_name, read_connection, transaction, utc_now
from survey_engine.errors import NotFound
from survey_engine.models.definition import Page, SurveyDefinition

logger = logging.getLogger(__name__)


def _json_column(raw: Any, default: Any) -> Any:
    if raw is None:
        return default
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        return json.loads(raw) if raw.strip() else default
    return raw


def fetch_survey_row(survey_id: str, conn: Connection | None = None) -> Dict[str, Any]:
    """Return the survey header row as a dict, or raise NotFound."""
    with read_connection(conn) as c:
        row = c.execute(
            sql_text(
                "SELECT survey_id, title, description, status, settings_json, visit_count, response_count "
                "FROM survey WHERE survey_id = :sid AND is_deleted = 0"
            ),
            {"sid": survey_id},
        ).mappings().fetchone()
    if row is None:
        raise NotFound(f"survey {survey_id} not found", context={"survey_id": survey_id})
    out = dict(row)
    out["settings"] = _json_column(out.pop("settings_json"), {})
    return out


def fetch_definition(survey_id: str, conn: Connection | None = None) -> SurveyDefinition:
    """Load one immutable definition snapshot: the survey and its live pages in order."""
    with read_connection(conn) as c:
        survey = fetch_survey_row(survey_id, c)
        rows = c.execute(
            sql_text(
                "SELECT page_id, title, description, questions_json FROM survey_page "
                "WHERE survey_id = :sid AND is_deleted = 0 ORDER BY page_index ASC, page_id ASC"
            ),
            {"sid": survey_id},
        ).mappings().fetchall()
    pages = [
        Page(
            page_id=str(r["page_id"]),
            title=r["title"],
            description=r["description"],
            questions=_json_column(r["questions_json"], []),
        )
        for r in rows
    ]
    return SurveyDefinition(
        survey_id=str(survey["survey_id"]),
        title=str(survey["title"] or ""),
        description=survey["description"],
        status=str(survey["status"] or "active"),
        pages=tuple(pages),
    )


def store_definition(
    definition: SurveyDefinition,
    *,
    settings: Optional[Dict[str, Any]] = None,
    conn: Connection | None = None,
) -> None:
    """Insert or replace a survey header and its pages."""
    now = utc_now()
    with transaction(conn) as c:
        is_pg = dialect_name(c) == "postgresql"
        c.execute(
            sql_text(
                """
                INSERT INTO survey (survey_id, title, description, status, settings_json, created_at, updated_at)
                VALUES (:sid, :title, :descr, :status, :settings, :now, :now)
                ON CONFLICT (survey_id)
                DO UPDATE SET title = excluded.title,
                              description = excluded.description,
                              status = excluded.status,
                              settings_json = excluded.settings_json,
                              is_deleted = 0,
                              updated_at = excluded.updated_at
                """
            ),
            {
                "sid": definition.survey_id,
                "title": definition.title,
                "descr": definition.description,
                "status": definition.status,
                "settings": json.dumps(settings or {}),
                "now": now,
            },
        )
        c.execute(sql_text("DELETE FROM survey_page WHERE survey_id = :sid"), {"sid": definition.survey_id})
        questions_param = "CAST(:questions AS JSONB)" if is_pg else ":questions"
        for page_index, page in enumerate(definition.pages):
            c.execute(
                sql_text(
                    "INSERT INTO survey_page (page_id, survey_id, page_index, title, description, questions_json) "
                    f"VALUES (:pid, :sid, :pidx, :title, :descr, {questions_param})"
                ),
                {
                    "pid": page.page_id,
                    "sid": definition.survey_id,
                    "pidx": page_index,
                    "title": page.title,
                    "descr": page.description,
                    "questions": json.dumps([q.model_dump(mode="json") for q in page.questions]),
                },
            )
    logger.info("definition_stored survey_id=%s pages=%s", definition.survey_id, len(definition.pages))


def increment_visit_count(survey_id: str, conn: Connection | None = None) -> None:
    with transaction(conn) as c:
        c.execute(
            sql_text("UPDATE survey SET visit_count = visit_count + 1, updated_at = :now WHERE survey_id = :sid"),
            {"sid": survey_id, "now": utc_now()},
        )


def increment_response_count(survey_id: str, conn: Connection | None = None) -> None:
    with transaction(conn) as c:
        c.execute(
            sql_text(
                "UPDATE survey SET response_count = response_count + 1, updated_at = :now WHERE survey_id = :sid"
            ),
            {"sid": survey_id, "now": utc_now()},
        )


__all__ = [
    "fetch_survey_row",
    "fetch_definition",
    "store_definition",
    "increment_visit_count",
    "increment_response_count",
]

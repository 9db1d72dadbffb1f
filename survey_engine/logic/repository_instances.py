"""Response instance data access helpers.

A response instance is one respondent's attempt at one survey. It is keyed
by the authenticated user id when present, otherwise by the normalized
requester address. Creation is an atomic insert-if-absent against partial
unique indexes followed by a read in the same transaction, so concurrent
first visits converge on a single live instance.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, List, Optional

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection

from survey_engine.db.base import read_connection, to_iso, transaction, utc_now
from survey_engine.errors import NotFound
from survey_engine.models.response_types import ResponseInstanceSummary

logger = logging.getLogger(__name__)

STATUS_NOT_STARTED = "not_started"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"

_COLUMNS = (
    "instance_id, survey_id, user_id, ip_address, status, answered_question_count, last_page_index, "
    "total_pages, total_questions, started_at, last_activity_at, completed_at, time_taken_seconds, "
    "user_agent, survey_url, collector, tags_json, response_code, response_link"
)


def _to_summary(row: Any) -> ResponseInstanceSummary:
    data = dict(row)
    tags_raw = data.pop("tags_json", None)
    tags = json.loads(tags_raw) if isinstance(tags_raw, str) and tags_raw else (tags_raw or [])
    for key in ("started_at", "last_activity_at", "completed_at"):
        data[key] = to_iso(data.get(key))
    return ResponseInstanceSummary(**data, tags=list(tags))


def find_instance(
    survey_id: str,
    *,
    user_id: Optional[str],
    ip_address: Optional[str],
    conn: Connection | None = None,
) -> Optional[ResponseInstanceSummary]:
    """Return the live instance for a respondent without creating one.

    An authenticated respondent is never matched by address.
    """
    if user_id:
        sql = f"SELECT {_COLUMNS} FROM response_instance WHERE survey_id = :sid AND user_id = :uid AND is_deleted = 0"
        params = {"sid": survey_id, "uid": user_id}
    elif ip_address:
        sql = (
            f"SELECT {_COLUMNS} FROM response_instance "
            "WHERE survey_id = :sid AND user_id IS NULL AND ip_address = :ip AND is_deleted = 0"
        )
        params = {"sid": survey_id, "ip": ip_address}
    else:
        return None
    with read_connection(conn) as c:
        row = c.execute(sql_text(sql), params).mappings().fetchone()
    return _to_summary(row) if row is not None else None


def find_or_create_instance(
    survey_id: str,
    *,
    user_id: Optional[str],
    ip_address: Optional[str],
    total_pages: int = 0,
    total_questions: int = 0,
    conn: Connection | None = None,
) -> tuple[ResponseInstanceSummary, bool]:
    """Return `(instance, created)`, creating a `not_started` instance if absent."""
    if user_id:
        conflict = "ON CONFLICT (survey_id, user_id) WHERE user_id IS NOT NULL AND is_deleted = 0 DO NOTHING"
    else:
        conflict = "ON CONFLICT (survey_id, ip_address) WHERE user_id IS NULL AND is_deleted = 0 DO NOTHING"
    now = utc_now()
    with transaction(conn) as c:
        result = c.execute(
            sql_text(
                """
                INSERT INTO response_instance (
                    instance_id, survey_id, user_id, ip_address, status,
                    total_pages, total_questions, started_at, last_activity_at, created_at, updated_at
                )
                VALUES (:iid, :sid, :uid, :ip, :status, :pages, :questions, :now, :now, :now, :now)
                """
                + conflict
            ),
            {
                "iid": str(uuid.uuid4()),
                "sid": survey_id,
                "uid": user_id or None,
                "ip": ip_address,
                "status": STATUS_NOT_STARTED,
                "pages": int(total_pages),
                "questions": int(total_questions),
                "now": now,
            },
        )
        found = find_instance(survey_id, user_id=user_id, ip_address=ip_address, conn=c)
    if found is None:  # pragma: no cover - insert-if-absent always leaves a live row
        raise NotFound("response instance could not be created", context={"survey_id": survey_id})
    created = bool(result.rowcount)
    if created:
        logger.info("instance_created instance_id=%s survey_id=%s", found.instance_id, survey_id)
    return found, created


def get_instance(instance_id: str, conn: Connection | None = None) -> ResponseInstanceSummary:
    with read_connection(conn) as c:
        row = c.execute(
            sql_text(f"SELECT {_COLUMNS} FROM response_instance WHERE instance_id = :iid AND is_deleted = 0"),
            {"iid": instance_id},
        ).mappings().fetchone()
    if row is None:
        raise NotFound(f"response instance {instance_id} not found", context={"instance_id": instance_id})
    return _to_summary(row)


def record_visit(
    instance_id: str,
    *,
    total_pages: int,
    total_questions: int,
    conn: Connection | None = None,
) -> None:
    """Touch `last_activity_at` and refresh the page and question totals."""
    now = utc_now()
    with transaction(conn) as c:
        c.execute(
            sql_text(
                "UPDATE response_instance SET last_activity_at = :now, total_pages = :pages, "
                "total_questions = :questions, updated_at = :now WHERE instance_id = :iid"
            ),
            {"iid": instance_id, "now": now, "pages": int(total_pages), "questions": int(total_questions)},
        )


def record_client_metadata(
    instance_id: str,
    *,
    user_agent: Optional[str],
    survey_url: Optional[str],
    conn: Connection | None = None,
) -> None:
    """Store user agent and survey URL on first submission; later values are ignored."""
    with transaction(conn) as c:
        c.execute(
            sql_text(
                "UPDATE response_instance SET user_agent = COALESCE(user_agent, :ua), "
                "survey_url = COALESCE(survey_url, :url) WHERE instance_id = :iid"
            ),
            {"iid": instance_id, "ua": user_agent, "url": survey_url},
        )


def response_code_exists(code: str, conn: Connection | None = None) -> bool:
    with read_connection(conn) as c:
        row = c.execute(
            sql_text("SELECT 1 FROM response_instance WHERE response_code = :code LIMIT 1"),
            {"code": code},
        ).fetchone()
    return row is not None


def complete_instance(
    instance_id: str,
    *,
    completed_at: str,
    time_taken_seconds: Optional[int],
    collector: str,
    tags: List[str],
    response_code: str,
    response_link: str,
    conn: Connection | None = None,
) -> bool:
    """Mark an instance completed; returns False when it was already completed."""
    with transaction(conn) as c:
        result = c.execute(
            sql_text(
                """
                UPDATE response_instance
                SET status = :status,
                    completed_at = :completed_at,
                    last_activity_at = :completed_at,
                    time_taken_seconds = :taken,
                    collector = :collector,
                    tags_json = :tags,
                    response_code = :code,
                    response_link = :link,
                    updated_at = :completed_at
                WHERE instance_id = :iid AND status <> :status AND is_deleted = 0
                """
            ),
            {
                "iid": instance_id,
                "status": STATUS_COMPLETED,
                "completed_at": completed_at,
                "taken": time_taken_seconds,
                "collector": collector,
                "tags": json.dumps(list(tags)),
                "code": response_code,
                "link": response_link,
            },
        )
    return bool(result.rowcount)


def list_instances(survey_id: str, conn: Connection | None = None) -> List[ResponseInstanceSummary]:
    with read_connection(conn) as c:
        rows = c.execute(
            sql_text(
                f"SELECT {_COLUMNS} FROM response_instance "
                "WHERE survey_id = :sid AND is_deleted = 0 ORDER BY created_at ASC, instance_id ASC"
            ),
            {"sid": survey_id},
        ).mappings().fetchall()
    return [_to_summary(r) for r in rows]


def list_instance_activity(survey_id: str, conn: Connection | None = None) -> List[dict]:
    """Return `(status, created_at, updated_at)` per live instance for overview timelines."""
    with read_connection(conn) as c:
        rows = c.execute(
            sql_text(
                "SELECT status, created_at, updated_at FROM response_instance "
                "WHERE survey_id = :sid AND is_deleted = 0"
            ),
            {"sid": survey_id},
        ).mappings().fetchall()
    return [
        {"status": r["status"], "created_at": to_iso(r["created_at"]), "updated_at": to_iso(r["updated_at"])}
        for r in rows
    ]


__all__ = [
    "STATUS_NOT_STARTED",
    "STATUS_IN_PROGRESS",
    "STATUS_COMPLETED",
    "find_instance",
    "find_or_create_instance",
    "get_instance",
    "record_visit",
    "record_client_metadata",
    "response_code_exists",
    "complete_instance",
    "list_instances",
    "list_instance_activity",
]

"""Response data access helpers.

Each response instance holds at most one live response per question. Writes
go through a single `INSERT ... ON CONFLICT ... DO UPDATE` against the
partial unique index on `(instance_id, question_id) WHERE is_deleted = 0`,
so concurrent saves for the same question converge on one row. Deletes are
soft. Every write recomputes the instance's progress counters from live rows
inside the same transaction.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Iterable, List, Optional, Union

from sqlalchemy import bindparam
from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection

from survey_engine.db.base import read_connection, to_iso, transaction, utc_now
from survey_engine.errors import NotFound
from survey_engine.logic import events
from survey_engine.logic.repository_instances import STATUS_IN_PROGRESS, STATUS_NOT_STARTED
from survey_engine.models.canonical import dump_canonical, load_canonical
from survey_engine.models.response_types import StoredResponse

logger = logging.getLogger(__name__)

_COLUMNS = (
    "response_id, instance_id, survey_id, question_id, question_type, value_json, comment, score, "
    "page_index, created_at, answered_at"
)


def _to_stored(row: Any) -> StoredResponse:
    data = dict(row)
    value = load_canonical(data.pop("value_json"))
    data["created_at"] = to_iso(data["created_at"])
    data["answered_at"] = to_iso(data["answered_at"])
    return StoredResponse(**data, value=value)


def refresh_progress(instance_id: str, conn: Connection | None = None) -> None:
    """Recompute answered count and last page from live responses.

    Moves a `not_started` instance to `in_progress` once it holds an answer.
    """
    with transaction(conn) as c:
        c.execute(
            sql_text(
                """
                UPDATE response_instance
                SET answered_question_count = (
                        SELECT COUNT(*) FROM response r
                        WHERE r.instance_id = :iid AND r.is_deleted = 0
                    ),
                    last_page_index = COALESCE((
                        SELECT MAX(r.page_index) FROM response r
                        WHERE r.instance_id = :iid AND r.is_deleted = 0
                    ), 0),
                    status = CASE
                        WHEN status = :not_started AND EXISTS (
                            SELECT 1 FROM response r WHERE r.instance_id = :iid AND r.is_deleted = 0
                        ) THEN :in_progress
                        ELSE status
                    END,
                    last_activity_at = :now,
                    updated_at = :now
                WHERE instance_id = :iid
                """
            ),
            {
                "iid": instance_id,
                "not_started": STATUS_NOT_STARTED,
                "in_progress": STATUS_IN_PROGRESS,
                "now": utc_now(),
            },
        )


def upsert_response(
    instance_id: str,
    question_identity: str,
    type_tag: Optional[str],
    value: Any,
    comment: Optional[str] = None,
    score: Optional[float] = None,
    page_index: Optional[int] = None,
    *,
    survey_id: Optional[str] = None,
    conn: Connection | None = None,
) -> StoredResponse:
    """Insert or update the live response for `(instance_id, question_identity)`.

    On update only the value, comment, score and `answered_at` change; a page
    index is filled in only when none was stored. The response id, question
    type and `created_at` are kept.
    """
    now = utc_now()
    with transaction(conn) as c:
        if survey_id is None:
            row = c.execute(
                sql_text("SELECT survey_id FROM response_instance WHERE instance_id = :iid AND is_deleted = 0"),
                {"iid": instance_id},
            ).fetchone()
            if row is None:
                raise NotFound(f"response instance {instance_id} not found", context={"instance_id": instance_id})
            survey_id = str(row[0])
        c.execute(
            sql_text(
                """
                INSERT INTO response (
                    response_id, instance_id, survey_id, question_id, question_type, value_json,
                    comment, score, page_index, created_at, answered_at
                )
                VALUES (:rid, :iid, :sid, :qid, :qtype, :vjson, :comment, :score, :pidx, :now, :now)
                ON CONFLICT (instance_id, question_id) WHERE is_deleted = 0
                DO UPDATE SET value_json = excluded.value_json,
                              comment = excluded.comment,
                              score = excluded.score,
                              page_index = COALESCE(response.page_index, excluded.page_index),
                              answered_at = excluded.answered_at
                """
            ),
            {
                "rid": str(uuid.uuid4()),
                "iid": instance_id,
                "sid": survey_id,
                "qid": question_identity,
                "qtype": type_tag,
                "vjson": dump_canonical(value),
                "comment": comment,
                "score": score,
                "pidx": page_index,
                "now": now,
            },
        )
        stored_row = c.execute(
            sql_text(
                f"SELECT {_COLUMNS} FROM response "
                "WHERE instance_id = :iid AND question_id = :qid AND is_deleted = 0"
            ),
            {"iid": instance_id, "qid": question_identity},
        ).mappings().fetchone()
        refresh_progress(instance_id, c)
    stored = _to_stored(stored_row)
    logger.info("responses_upsert instance_id=%s question_id=%s", instance_id, question_identity)
    events.publish(
        events.RESPONSE_SAVED,
        {"response_id": stored.response_id, "instance_id": instance_id, "question_id": question_identity},
    )
    return stored


def get_response(response_id: str, conn: Connection | None = None) -> StoredResponse:
    with read_connection(conn) as c:
        row = c.execute(
            sql_text(f"SELECT {_COLUMNS} FROM response WHERE response_id = :rid AND is_deleted = 0"),
            {"rid": response_id},
        ).mappings().fetchone()
    if row is None:
        raise NotFound(f"response {response_id} not found", context={"response_id": response_id})
    return _to_stored(row)


def list_by_instance(instance_id: str, conn: Connection | None = None) -> List[StoredResponse]:
    with read_connection(conn) as c:
        rows = c.execute(
            sql_text(
                f"SELECT {_COLUMNS} FROM response WHERE instance_id = :iid AND is_deleted = 0 "
                "ORDER BY answered_at ASC, response_id ASC"
            ),
            {"iid": instance_id},
        ).mappings().fetchall()
    return [_to_stored(r) for r in rows]


def list_by_survey(
    survey_id: str,
    question_identity: Union[str, Iterable[str], None] = None,
    conn: Connection | None = None,
) -> List[StoredResponse]:
    """Live responses of a survey, optionally limited to one question's candidate ids."""
    params: dict[str, Any] = {"sid": survey_id}
    where = "survey_id = :sid AND is_deleted = 0"
    if question_identity is not None:
        ids = [question_identity] if isinstance(question_identity, str) else sorted(set(question_identity))
        if not ids:
            return []
        where += " AND question_id IN :qids"
        params["qids"] = ids
    stmt = sql_text(f"SELECT {_COLUMNS} FROM response WHERE {where} ORDER BY answered_at ASC, response_id ASC")
    if "qids" in params:
        stmt = stmt.bindparams(bindparam("qids", expanding=True))
    with read_connection(conn) as c:
        rows = c.execute(stmt, params).mappings().fetchall()
    return [_to_stored(r) for r in rows]


def soft_delete_response(response_id: str, conn: Connection | None = None) -> StoredResponse:
    """Mark a live response deleted and refresh its instance's progress."""
    with transaction(conn) as c:
        existing = get_response(response_id, c)
        c.execute(
            sql_text(
                "UPDATE response SET is_deleted = 1, deleted_at = :now "
                "WHERE response_id = :rid AND is_deleted = 0"
            ),
            {"rid": response_id, "now": utc_now()},
        )
        refresh_progress(existing.instance_id, c)
    logger.info("responses_soft_delete response_id=%s instance_id=%s", response_id, existing.instance_id)
    events.publish(
        events.RESPONSE_DELETED,
        {"response_id": response_id, "instance_id": existing.instance_id, "question_id": existing.question_id},
    )
    return existing


__all__ = [
    "refresh_progress",
    "upsert_response",
    "get_response",
    "list_by_instance",
    "list_by_survey",
    "soft_delete_response",
]

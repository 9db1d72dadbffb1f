"""Reporting orchestration: analytics, overview, progress listings and exports.

Each operation fetches one definition snapshot, loads the live responses it
needs and hands both to the shared aggregation path. Persistence failures
are wrapped in `AggregationFailure` so callers never receive a partial
summary or workbook.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from survey_engine.config import AppConfig, get_config
from survey_engine.db.base import read_connection
from survey_engine.errors import AggregationFailure, UnresolvableIdentity
from survey_engine.logic import repository_definitions as definitions
from survey_engine.logic import repository_instances as instances
from survey_engine.logic import repository_responses as responses
from survey_engine.logic.aggregation import aggregate, percentage
from survey_engine.logic.export_formatter import format_question_report, format_survey_report
from survey_engine.logic.identity_resolver import IdentityResolver
from survey_engine.models.definition import SurveyDefinition
from survey_engine.models.response_types import (
    InstanceProgress,
    InstanceProgressList,
    StoredResponse,
    SurveyAnalytics,
    SurveyOverview,
    TabularDocument,
    TimelinePoint,
)

logger = logging.getLogger(__name__)


@contextmanager
def _aggregation_guard(survey_id: str, question_id: Optional[str] = None) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error(
            "aggregation_persistence_failed survey_id=%s question_id=%s",
            survey_id,
            question_id,
            exc_info=True,
        )
        raise AggregationFailure(
            "could not load responses for aggregation", survey_id=survey_id, question_id=question_id
        ) from exc


def _deadline(cfg: AppConfig) -> float:
    return time.monotonic() + cfg.analytics.timeout_seconds


def _question_summary(survey_id: str, question_id: str, cfg: AppConfig) -> tuple[SurveyDefinition, Any]:
    with _aggregation_guard(survey_id, question_id), read_connection() as conn:
        definition = definitions.fetch_definition(survey_id, conn)
        resolver = IdentityResolver(definition)
        target = resolver.resolve(question_id)
        if target is None:
            raise UnresolvableIdentity(
                f"question {question_id} not found in survey {survey_id}",
                context={"survey_id": survey_id, "question_id": question_id},
            )
        stored = responses.list_by_survey(survey_id, target.candidate_keys, conn)
    summaries = aggregate(
        definition,
        stored,
        question_identity=target.identity,
        deadline=_deadline(cfg),
        resolver=resolver,
        percentage_decimals=cfg.analytics.percentage_decimals,
    )
    return definition, summaries[0]


def question_analytics(survey_id: str, question_id: str, *, config: Optional[AppConfig] = None) -> Any:
    """Summary for one question; every stored key the question ever had is included."""
    _, summary = _question_summary(survey_id, question_id, config or get_config())
    return summary


def survey_analytics(survey_id: str, *, config: Optional[AppConfig] = None) -> SurveyAnalytics:
    cfg = config or get_config()
    with _aggregation_guard(survey_id), read_connection() as conn:
        definition = definitions.fetch_definition(survey_id, conn)
        stored = responses.list_by_survey(survey_id, None, conn)
    summaries = aggregate(
        definition,
        stored,
        deadline=_deadline(cfg),
        percentage_decimals=cfg.analytics.percentage_decimals,
    )
    return SurveyAnalytics(survey_id=survey_id, title=definition.title, questions=summaries)


def survey_responses(survey_id: str, question_id: Optional[str] = None) -> List[StoredResponse]:
    """Live responses of a survey; a question filter matches every key it was stored under."""
    with read_connection() as conn:
        definition = definitions.fetch_definition(survey_id, conn)
        keys: Optional[Iterable[str]] = None
        if question_id is not None:
            resolved = IdentityResolver(definition).resolve(question_id)
            keys = resolved.candidate_keys if resolved is not None else {question_id}
        return responses.list_by_survey(survey_id, keys, conn)


def survey_overview(survey_id: str, *, config: Optional[AppConfig] = None) -> SurveyOverview:
    """Status counts, completion rate and a per-day activity timeline."""
    cfg = config or get_config()
    with _aggregation_guard(survey_id), read_connection() as conn:
        survey = definitions.fetch_survey_row(survey_id, conn)
        activity = instances.list_instance_activity(survey_id, conn)
    by_status = Counter(a["status"] for a in activity)
    per_day: Counter[str] = Counter()
    for a in activity:
        stamp = a["updated_at"] or a["created_at"]
        if stamp:
            per_day[stamp[:10]] += 1
    total = len(activity)
    completed = by_status.get(instances.STATUS_COMPLETED, 0)
    return SurveyOverview(
        survey_id=survey_id,
        title=str(survey["title"] or ""),
        status=str(survey["status"] or ""),
        visit_count=int(survey["visit_count"] or 0),
        response_count=int(survey["response_count"] or 0),
        total=total,
        completed=completed,
        in_progress=by_status.get(instances.STATUS_IN_PROGRESS, 0),
        not_started=by_status.get(instances.STATUS_NOT_STARTED, 0),
        completion_rate=percentage(completed, total, cfg.analytics.percentage_decimals),
        timeline=[TimelinePoint(date=day, count=count) for day, count in sorted(per_day.items())],
    )


def instance_progress(survey_id: str, *, config: Optional[AppConfig] = None) -> InstanceProgressList:
    cfg = config or get_config()
    with _aggregation_guard(survey_id), read_connection() as conn:
        definitions.fetch_survey_row(survey_id, conn)
        rows = instances.list_instances(survey_id, conn)
    items = [
        InstanceProgress(
            instance_id=r.instance_id,
            user_id=r.user_id,
            ip_address=r.ip_address,
            status=r.status,
            answered_question_count=r.answered_question_count,
            total_questions=r.total_questions,
            progress=min(
                100.0,
                percentage(r.answered_question_count, r.total_questions, cfg.analytics.percentage_decimals),
            ),
            last_activity_at=r.last_activity_at,
            completed_at=r.completed_at,
            response_code=r.response_code,
        )
        for r in rows
    ]
    return InstanceProgressList(survey_id=survey_id, items=items)


def export_question(survey_id: str, question_id: str, *, config: Optional[AppConfig] = None) -> TabularDocument:
    cfg = config or get_config()
    definition, summary = _question_summary(survey_id, question_id, cfg)
    return format_question_report(summary, survey_title=definition.title, config=cfg.export)


def export_survey(survey_id: str, *, config: Optional[AppConfig] = None) -> TabularDocument:
    cfg = config or get_config()
    analytics = survey_analytics(survey_id, config=cfg)
    return format_survey_report(analytics.title, analytics.questions, cfg.export, survey_id=survey_id)


__all__ = [
    "question_analytics",
    "survey_analytics",
    "survey_responses",
    "survey_overview",
    "instance_progress",
    "export_question",
    "export_survey",
]

"""Collector session flow: render survey pages and accept submissions.

A respondent is identified by the upstream-authenticated user id when
present, otherwise by the normalized requester address. Each respondent has
one live response instance per survey, created on the first non-preview page
view. Preview requests never create instances and never count visits.

Submissions resolve each item against the current definition, normalize the
raw answer into its canonical value and upsert it under the question's
effective identity. Items that no longer resolve are stored under the
identity the client sent so nothing submitted is lost; aggregation later
excludes them as orphans.
"""

from __future__ import annotations

import ipaddress
import logging
import math
import secrets
import string
from typing import Dict, Iterable, List, Optional

from sqlalchemy.engine import Connection

from survey_engine.config import AppConfig, CollectorConfig, PageSettings, get_config
from survey_engine.db.base import parse_iso, read_connection, transaction, utc_now
from survey_engine.errors import (
    InvalidOwnership,
    MissingRequesterAddress,
    NotFound,
    SurveyAlreadyCompleted,
    SurveyNotActive,
)
from survey_engine.logic import events
from survey_engine.logic import repository_definitions as definitions
from survey_engine.logic import repository_instances as instances
from survey_engine.logic import repository_responses as responses
from survey_engine.logic.aggregation import supersedes
from survey_engine.logic.identity_resolver import IdentityResolver, ResolvedQuestion
from survey_engine.logic.response_normalizer import normalize, to_display
from survey_engine.models.response_types import (
    Caller,
    PagePayload,
    RenderedColumn,
    RenderedOption,
    RenderedPair,
    RenderedQuestion,
    RenderedRow,
    ResponseInstanceSummary,
    StoredResponse,
    SubmissionItem,
    SubmissionMetadata,
)

logger = logging.getLogger(__name__)

_CODE_ALPHABET = string.ascii_letters + string.digits


def normalize_address(raw: Optional[str], config: Optional[CollectorConfig] = None) -> Optional[str]:
    """Collapse loopback spellings and unwrap IPv4-mapped IPv6 addresses."""
    cfg = config or get_config().collector
    if raw is None:
        return None
    text = str(raw).split(",")[0].strip().strip("[]")
    if not text:
        return None
    lowered = text.lower()
    if lowered in cfg.loopback_aliases:
        return cfg.loopback_canonical
    try:
        addr = ipaddress.ip_address(lowered)
    except ValueError:
        return text
    if isinstance(addr, ipaddress.IPv6Address) and addr.ipv4_mapped is not None:
        addr = addr.ipv4_mapped
    if addr.is_loopback:
        return cfg.loopback_canonical
    return str(addr)


def _respondent(caller: Caller, config: CollectorConfig) -> tuple[Optional[str], Optional[str]]:
    user_id = (caller.user_id or "").strip() or None
    ip = normalize_address(caller.ip_address, config)
    if user_id is None and ip is None:
        raise MissingRequesterAddress("requester address is required for anonymous respondents")
    return user_id, ip


def ensure_owner(instance: ResponseInstanceSummary, caller: Caller) -> None:
    """Reject access to an authenticated respondent's instance by anyone else."""
    if instance.user_id and (caller.user_id or None) != instance.user_id:
        raise InvalidOwnership(
            "response instance belongs to another respondent",
            context={"instance_id": instance.instance_id},
        )


def _render_question(rq: ResolvedQuestion, answer: Optional[StoredResponse]) -> RenderedQuestion:
    q = rq.question
    pairs = [
        RenderedPair(id=pid, row_id=row_id, column_id=col_id) for pid, (row_id, col_id) in rq.pair_lookup.items()
    ]
    return RenderedQuestion(
        question_id=rq.identity,
        type_tag=q.type_tag,
        text=q.text,
        mandatory=q.mandatory,
        validation=q.validation,
        options=[RenderedOption(id=o.identity, text=o.label, value=o.value, weight=o.weight) for o in rq.options],
        rows=[RenderedRow(id=r.identity, text=r.label) for r in rq.rows],
        columns=[RenderedColumn(id=c.identity, text=c.label, weight=c.weight) for c in rq.columns],
        pairs=pairs,
        answer=to_display(q.type_tag, answer.value) if answer is not None else None,
        comment=answer.comment if answer is not None else None,
    )


def _answers_by_identity(resolver: IdentityResolver, stored: Iterable[StoredResponse]) -> Dict[str, StoredResponse]:
    out: Dict[str, StoredResponse] = {}
    for r in stored:
        rq = resolver.resolve(r.question_id)
        if rq is None:
            continue
        current = out.get(rq.identity)
        if current is None or supersedes(r, current, rq.identity):
            out[rq.identity] = r
    return out


def render_page(
    survey_id: str,
    page_id: Optional[str] = None,
    *,
    caller: Caller,
    preview: bool = False,
    config: Optional[AppConfig] = None,
) -> PagePayload:
    """Render one page of a survey for a respondent, with stored answers overlaid."""
    cfg = config or get_config()
    with transaction() as conn:
        survey = definitions.fetch_survey_row(survey_id, conn)
        definition = definitions.fetch_definition(survey_id, conn)
        if not definition.is_active and not preview:
            raise SurveyNotActive("Survey is not active", context={"survey_id": survey_id})

        pages = list(definition.pages)
        if page_id is not None:
            page = definition.page_by_id(page_id)
            if page is None:
                raise NotFound(f"page {page_id} not found", context={"survey_id": survey_id, "page_id": page_id})
        else:
            page = pages[0] if pages else None
        page_pos = pages.index(page) if page is not None else 0
        resolver = IdentityResolver(definition)

        instance: Optional[ResponseInstanceSummary] = None
        answers: Dict[str, StoredResponse] = {}
        if not preview:
            user_id, ip = _respondent(caller, cfg.collector)
            instance, created = instances.find_or_create_instance(
                survey_id,
                user_id=user_id,
                ip_address=ip,
                total_pages=len(pages),
                total_questions=definition.total_questions(),
                conn=conn,
            )
            if created:
                definitions.increment_response_count(survey_id, conn)
            definitions.increment_visit_count(survey_id, conn)
            instances.record_visit(
                instance.instance_id,
                total_pages=len(pages),
                total_questions=definition.total_questions(),
                conn=conn,
            )
            answers = _answers_by_identity(resolver, responses.list_by_instance(instance.instance_id, conn))

    settings = PageSettings.from_survey_row(survey_id, survey.get("settings"))
    questions = (
        [_render_question(rq, answers.get(rq.identity)) for rq in resolver.questions_on_page(page.page_id)]
        if page is not None
        else []
    )
    logger.info(
        "collector_render survey_id=%s page_id=%s preview=%s instance_id=%s",
        survey_id,
        page.page_id if page is not None else None,
        preview,
        instance.instance_id if instance is not None else None,
    )
    return PagePayload(
        survey_id=survey_id,
        title=definition.title,
        description=definition.description,
        instance_id=instance.instance_id if instance is not None else None,
        preview=preview,
        page_id=page.page_id if page is not None else None,
        page_title=page.title if page is not None else None,
        page_description=page.description if page is not None else None,
        questions=questions,
        total_pages=len(pages),
        current_page_number=page_pos + 1 if page is not None else 0,
        previous_page_id=pages[page_pos - 1].page_id if page is not None and page_pos > 0 else None,
        next_page_id=pages[page_pos + 1].page_id if page is not None and page_pos + 1 < len(pages) else None,
        settings=settings,
    )


def _retire_older_keys(resolver: IdentityResolver, rq: ResolvedQuestion, instance_id: str, conn: Connection) -> None:
    """Soft-delete the instance's live answers to `rq` stored under another key."""
    for r in responses.list_by_instance(instance_id, conn):
        if r.question_id == rq.identity or r.question_id not in rq.candidate_keys:
            continue
        owner = resolver.resolve(r.question_id)
        if owner is None or owner.identity != rq.identity:
            continue
        logger.info(
            "collector_retire_key instance_id=%s question_id=%s stored_key=%s",
            instance_id,
            rq.identity,
            r.question_id,
        )
        responses.soft_delete_response(r.response_id, conn)


def _store_item(
    resolver: IdentityResolver,
    instance: ResponseInstanceSummary,
    item: SubmissionItem,
    conn: Connection,
) -> StoredResponse:
    rq = resolver.resolve(item.question_identity)
    if rq is None:
        logger.info(
            "collector_unresolved_item survey_id=%s question_id=%s",
            instance.survey_id,
            item.question_identity,
        )
    identity = rq.identity if rq is not None else item.question_identity
    type_tag = rq.question.type_tag if rq is not None else item.type_tag
    page_index = item.page_index if item.page_index is not None else (rq.page_index if rq is not None else None)
    value = normalize(type_tag, item.raw_value, rq)
    if rq is not None:
        _retire_older_keys(resolver, rq, instance.instance_id, conn)
    return responses.upsert_response(
        instance.instance_id,
        identity,
        type_tag,
        value,
        comment=item.comment,
        score=item.score,
        page_index=page_index,
        survey_id=instance.survey_id,
        conn=conn,
    )


def _new_response_code(length: int, conn: Connection) -> str:
    while True:
        code = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(length))
        if not instances.response_code_exists(code, conn):
            return code


def _complete(
    instance: ResponseInstanceSummary,
    metadata: SubmissionMetadata,
    cfg: AppConfig,
    conn: Connection,
) -> None:
    completed_at = utc_now()
    started = parse_iso(metadata.started_at) or parse_iso(instance.started_at)
    finished = parse_iso(completed_at)
    taken = None
    if started is not None and finished is not None:
        taken = max(0, math.floor((finished - started).total_seconds()))
    code = _new_response_code(cfg.collector.response_code_length, conn)
    link = f"{cfg.collector.frontend_url}/survey/{instance.survey_id}/response/{code}"
    changed = instances.complete_instance(
        instance.instance_id,
        completed_at=completed_at,
        time_taken_seconds=taken,
        collector=metadata.collector or cfg.collector.default_collector,
        tags=list(metadata.tags),
        response_code=code,
        response_link=link,
        conn=conn,
    )
    if not changed:
        raise SurveyAlreadyCompleted("survey already completed", context={"instance_id": instance.instance_id})


def submit_responses(
    survey_id: str,
    *,
    caller: Caller,
    items: List[SubmissionItem],
    complete: bool = False,
    metadata: Optional[SubmissionMetadata] = None,
    config: Optional[AppConfig] = None,
) -> ResponseInstanceSummary:
    """Store a batch of answers for the caller's instance, optionally completing it."""
    cfg = config or get_config()
    meta = metadata or SubmissionMetadata()
    with transaction() as conn:
        definition = definitions.fetch_definition(survey_id, conn)
        if not definition.is_active:
            raise SurveyNotActive("Survey is not active", context={"survey_id": survey_id})
        user_id, ip = _respondent(caller, cfg.collector)
        instance, created = instances.find_or_create_instance(
            survey_id,
            user_id=user_id,
            ip_address=ip,
            total_pages=len(definition.pages),
            total_questions=definition.total_questions(),
            conn=conn,
        )
        if created:
            definitions.increment_response_count(survey_id, conn)
        if instance.status == instances.STATUS_COMPLETED:
            raise SurveyAlreadyCompleted("survey already completed", context={"instance_id": instance.instance_id})

        instances.record_client_metadata(
            instance.instance_id,
            user_agent=caller.user_agent,
            survey_url=meta.survey_url or caller.referer,
            conn=conn,
        )
        resolver = IdentityResolver(definition)
        for item in items:
            _store_item(resolver, instance, item, conn)
        if complete:
            _complete(instance, meta, cfg, conn)
        result = instances.get_instance(instance.instance_id, conn)

    logger.info(
        "collector_submit survey_id=%s instance_id=%s items=%s complete=%s",
        survey_id,
        result.instance_id,
        len(items),
        complete,
    )
    if complete:
        events.publish(
            events.RESPONSE_INSTANCE_COMPLETED,
            {"instance_id": result.instance_id, "survey_id": survey_id, "response_code": result.response_code},
        )
    return result


def save_instance_response(
    instance_id: str,
    item: SubmissionItem,
    *,
    caller: Caller,
) -> StoredResponse:
    """Upsert one answer addressed by instance id rather than by respondent."""
    with transaction() as conn:
        instance = instances.get_instance(instance_id, conn)
        ensure_owner(instance, caller)
        if instance.status == instances.STATUS_COMPLETED:
            raise SurveyAlreadyCompleted("survey already completed", context={"instance_id": instance_id})
        definition = definitions.fetch_definition(instance.survey_id, conn)
        return _store_item(IdentityResolver(definition), instance, item, conn)


def list_instance_responses(instance_id: str, *, caller: Caller) -> List[StoredResponse]:
    with read_connection() as conn:
        instance = instances.get_instance(instance_id, conn)
        ensure_owner(instance, caller)
        return responses.list_by_instance(instance_id, conn)


def delete_instance_response(response_id: str, *, caller: Caller) -> StoredResponse:
    """Soft-delete one answer after checking the caller owns its instance."""
    with transaction() as conn:
        existing = responses.get_response(response_id, conn)
        ensure_owner(instances.get_instance(existing.instance_id, conn), caller)
        return responses.soft_delete_response(response_id, conn)


__all__ = [
    "normalize_address",
    "ensure_owner",
    "render_page",
    "submit_responses",
    "save_instance_response",
    "list_instance_responses",
    "delete_instance_response",
]

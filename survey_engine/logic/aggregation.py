"""Aggregate stored responses into per-question summaries.

One path serves both analytics and exports: responses are resolved against
the current definition, grouped by effective question identity and folded
into a choice, matrix or text summary depending on the question kind.
Responses that no longer resolve to a live question are excluded.

Aggregation is read-only and idempotent. An optional monotonic deadline is
checked between responses and between questions; once it passes the run is
abandoned with `AggregationCancelled`.
"""

from __future__ import annotations

import json
import logging
import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Sequence

from survey_engine.errors import AggregationCancelled, UnresolvableIdentity
from survey_engine.logic.answer_canonical import canonicalize_answer_value, choice_label
from survey_engine.logic.identity_resolver import IdentityResolver, ResolvedQuestion
from survey_engine.logic.response_normalizer import normalize
from survey_engine.models.canonical import PairSetValue, RawValue, ScalarSetValue, ScalarValue
from survey_engine.models.definition import SurveyDefinition
from survey_engine.models.question_kind import CHOICE_KINDS, MATRIX_KINDS
from survey_engine.models.response_types import (
    ChoiceCount,
    ChoiceSummary,
    MatrixColumnSummary,
    MatrixRowSummary,
    MatrixSummary,
    StoredResponse,
    TextEntry,
    TextSummary,
)

logger = logging.getLogger(__name__)


def percentage(count: int, total: int, decimals: int = 1) -> float:
    """`count / total * 100` rounded half-up; zero when `total` is zero."""
    if not total:
        return 0.0
    quantum = Decimal(1).scaleb(-decimals)
    value = (Decimal(count) * 100 / Decimal(total)).quantize(quantum, rounding=ROUND_HALF_UP)
    return float(value)


def format_percentage(count: int, total: int, decimals: int = 1) -> str:
    if not total:
        return "0%"
    return f"{percentage(count, total, decimals):.{decimals}f}%"


def _check_deadline(deadline: Optional[float], survey_id: str, question_id: Optional[str] = None) -> None:
    if deadline is not None and time.monotonic() > deadline:
        logger.warning("aggregation_cancelled survey_id=%s question_id=%s", survey_id, question_id)
        raise AggregationCancelled(
            "aggregation exceeded its deadline", survey_id=survey_id, question_id=question_id
        )


def _selections(value: Any) -> List[Any]:
    if isinstance(value, ScalarValue):
        return [] if value.is_empty() else [value.value]
    if isinstance(value, ScalarSetValue):
        return list(value.values)
    if isinstance(value, RawValue):
        raw = value.value
        if isinstance(raw, (list, tuple)):
            return [v for v in raw if isinstance(v, (str, int, float, bool))]
        if isinstance(raw, (str, int, float, bool)):
            return [raw]
    return []


def _choice_summary(q: ResolvedQuestion, responses: Sequence[StoredResponse], decimals: int) -> ChoiceSummary:
    counts: Dict[str, int] = {}
    answered = 0
    for r in responses:
        labels = [choice_label(v, q) for v in _selections(r.value)]
        labels = [label for label in labels if label is not None]
        if not labels:
            continue
        answered += 1
        for label in labels:
            counts[label] = counts.get(label, 0) + 1
    total = sum(counts.values())
    return ChoiceSummary(
        question_id=q.identity,
        question_text=q.text,
        type_tag=q.type_tag,
        page_index=q.page_index,
        answered_count=answered,
        total=total,
        counts=[
            ChoiceCount(
                label=label,
                count=count,
                percentage=percentage(count, total, decimals),
                percentage_label=format_percentage(count, total, decimals),
            )
            for label, count in counts.items()
        ],
    )


def _pairs_of(q: ResolvedQuestion, value: Any) -> List[tuple[str, str]]:
    if isinstance(value, RawValue):
        # Rows stored before the question became a matrix are re-read through the normalizer
        value = normalize(q.type_tag, value.value, q)
    if not isinstance(value, PairSetValue):
        return []
    out: List[tuple[str, str]] = []
    for pair in value.pairs:
        row = q.resolve_row(pair.row_identity)
        col = q.resolve_column(pair.column_identity)
        if row is None or col is None:
            logger.debug(
                "aggregation_pair_unresolved question_id=%s row=%s column=%s",
                q.identity,
                pair.row_identity,
                pair.column_identity,
            )
            continue
        key = (row.identity, col.identity)
        if key not in out:
            out.append(key)
    return out


def _matrix_summary(q: ResolvedQuestion, responses: Sequence[StoredResponse]) -> MatrixSummary:
    grid: Dict[str, Dict[str, int]] = {row.identity: {c.identity: 0 for c in q.columns} for row in q.rows}
    answered = 0
    for r in responses:
        pairs = _pairs_of(q, r.value)
        if not pairs:
            continue
        answered += 1
        for row_id, col_id in pairs:
            grid[row_id][col_id] += 1

    weights = {c.identity: c.weight for c in q.columns if c.weight is not None}
    weighted = bool(weights)
    max_weight = max(weights.values()) if weighted else None
    rows: List[MatrixRowSummary] = []
    for row in q.rows:
        counts = grid[row.identity]
        earned: Optional[float] = None
        possible: Optional[float] = None
        if weighted:
            earned = float(sum(counts[cid] * w for cid, w in weights.items()))
            answered_pairs = sum(counts[cid] for cid in weights)
            possible = float(answered_pairs * max_weight)
        rows.append(
            MatrixRowSummary(row_identity=row.identity, label=row.label, counts=dict(counts), earned=earned, possible=possible)
        )
    return MatrixSummary(
        question_id=q.identity,
        question_text=q.text,
        type_tag=q.type_tag,
        page_index=q.page_index,
        answered_count=answered,
        weighted=weighted,
        columns=[MatrixColumnSummary(column_identity=c.identity, label=c.label, weight=c.weight) for c in q.columns],
        rows=rows,
    )


def _text_of(value: Any) -> Optional[str]:
    if isinstance(value, ScalarValue):
        return canonicalize_answer_value(value.value)
    if isinstance(value, ScalarSetValue):
        parts = [canonicalize_answer_value(v) for v in value.values]
        joined = ", ".join(p for p in parts if p)
        return joined or None
    if isinstance(value, PairSetValue):
        joined = ", ".join(f"{p.row_identity}:{p.column_identity}" for p in value.pairs)
        return joined or None
    raw = value.value if isinstance(value, RawValue) else value
    if raw is None:
        return None
    if isinstance(raw, (dict, list)):
        return json.dumps(raw, sort_keys=True) if raw else None
    return canonicalize_answer_value(raw)


def _text_summary(q: ResolvedQuestion, responses: Sequence[StoredResponse]) -> TextSummary:
    entries: List[TextEntry] = []
    for r in responses:
        text = _text_of(r.value)
        if text is None:
            continue
        entries.append(TextEntry(value=text, answered_at=r.answered_at))
    return TextSummary(
        question_id=q.identity,
        question_text=q.text,
        type_tag=q.type_tag,
        page_index=q.page_index,
        answered_count=len(entries),
        entries=entries,
    )


def supersedes(candidate: StoredResponse, current: StoredResponse, identity: str) -> bool:
    """Whether `candidate` replaces `current` as an instance's answer to `identity`.

    A row keyed on the effective identity beats rows under older keys; among
    equals the latest `answered_at` wins.
    """
    exact = candidate.question_id == identity
    if exact != (current.question_id == identity):
        return exact
    return candidate.answered_at > current.answered_at


def summarize_question(q: ResolvedQuestion, responses: Sequence[StoredResponse], *, percentage_decimals: int = 1) -> Any:
    if q.kind in MATRIX_KINDS:
        return _matrix_summary(q, responses)
    if q.kind in CHOICE_KINDS:
        return _choice_summary(q, responses, percentage_decimals)
    return _text_summary(q, responses)


def aggregate(
    definition: SurveyDefinition,
    responses: Sequence[StoredResponse],
    *,
    question_identity: Optional[str] = None,
    deadline: Optional[float] = None,
    resolver: Optional[IdentityResolver] = None,
    percentage_decimals: int = 1,
) -> List[Any]:
    """Return one summary per live question, in page then position order.

    With `question_identity` only that question is summarized; an identity
    that matches no live question raises `UnresolvableIdentity`.
    """
    resolver = resolver or IdentityResolver(definition)
    target: Optional[ResolvedQuestion] = None
    if question_identity is not None:
        target = resolver.resolve(question_identity)
        if target is None:
            raise UnresolvableIdentity(
                f"question {question_identity} not found in survey {definition.survey_id}",
                context={"survey_id": definition.survey_id, "question_id": question_identity},
            )

    # One answer per (question, instance)
    grouped: Dict[str, Dict[str, StoredResponse]] = {}
    orphans = 0
    for r in responses:
        _check_deadline(deadline, definition.survey_id, question_identity)
        rq = resolver.resolve(r.question_id)
        if rq is None:
            orphans += 1
            logger.debug("aggregation_orphan survey_id=%s question_id=%s", definition.survey_id, r.question_id)
            continue
        if target is not None and rq.identity != target.identity:
            continue
        per_instance = grouped.setdefault(rq.identity, {})
        current = per_instance.get(r.instance_id)
        if current is not None:
            logger.debug(
                "aggregation_duplicate survey_id=%s instance_id=%s question_id=%s",
                definition.survey_id,
                r.instance_id,
                rq.identity,
            )
        if current is None or supersedes(r, current, rq.identity):
            per_instance[r.instance_id] = r

    summaries: List[Any] = []
    for q in resolver.questions():
        if target is not None and q.identity != target.identity:
            continue
        _check_deadline(deadline, definition.survey_id, q.identity)
        summaries.append(summarize_question(q, list(grouped.get(q.identity, {}).values()), percentage_decimals=percentage_decimals))
    logger.info(
        "aggregation_done survey_id=%s questions=%s responses=%s orphans=%s",
        definition.survey_id,
        len(summaries),
        len(responses),
        orphans,
    )
    return summaries


__all__ = [
    "percentage",
    "format_percentage",
    "supersedes",
    "summarize_question",
    "aggregate",
]

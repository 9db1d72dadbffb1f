"""Identity resolution against one survey definition snapshot.

Stored responses may reference a question by its durable id, by its raw
positional ordinal, by its content hash, or by the legacy index-based hash
written before ordinals existed. The resolver registers every one of those
keys once per snapshot and resolves a candidate in that tier order.

A key claimed by two different elements within the same tier is ambiguous:
it is dropped from that tier (and logged) so two distinct elements are never
merged. Matrix rows and columns, and choice options, get per-question
lookups built with the same rules.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Iterable, List, Optional, Sequence, Tuple, TypeVar

from survey_engine.logic.content_identity import (
    COLUMN_TAG,
    OPTION_TAG,
    ROW_TAG,
    derive,
    pair_identity,
)
from survey_engine.models.definition import Page, Question, SurveyDefinition
from survey_engine.models.question_kind import canonical_kind

logger = logging.getLogger(__name__)

TIER_DURABLE = "durable"
TIER_ORDINAL = "ordinal"
TIER_CONTENT = "content"
TIER_LEGACY = "legacy"
TIERS: Tuple[str, ...] = (TIER_DURABLE, TIER_ORDINAL, TIER_CONTENT, TIER_LEGACY)

T = TypeVar("T")


class TieredIndex(Generic[T]):
    """Multi-key lookup where earlier tiers win and clashing keys are discarded."""

    def __init__(self, name: str, tiers: Sequence[str] = TIERS) -> None:
        self.name = name
        self.tiers = tuple(tiers)
        self._entries: Dict[str, Dict[str, Tuple[str, T]]] = {t: {} for t in self.tiers}
        self._ambiguous: Dict[str, set[str]] = {t: set() for t in self.tiers}

    def register(self, tier: str, key: Optional[str], owner: str, item: T) -> None:
        if key is None or key == "":
            return
        entries = self._entries[tier]
        if key in self._ambiguous[tier]:
            return
        existing = entries.get(key)
        if existing is None:
            entries[key] = (owner, item)
            return
        if existing[0] == owner:
            return
        del entries[key]
        self._ambiguous[tier].add(key)
        logger.warning(
            "identity_ambiguous index=%s tier=%s key=%s owners=%s,%s",
            self.name,
            tier,
            key,
            existing[0],
            owner,
        )

    def resolve(self, candidate: Any) -> Optional[T]:
        if candidate is None:
            return None
        key = str(candidate).strip()
        if not key:
            return None
        for tier in self.tiers:
            hit = self._entries[tier].get(key)
            if hit is not None:
                return hit[1]
        return None

    def ambiguous_keys(self, tier: Optional[str] = None) -> set[str]:
        if tier is not None:
            return set(self._ambiguous[tier])
        out: set[str] = set()
        for keys in self._ambiguous.values():
            out |= keys
        return out


@dataclass(frozen=True)
class ResolvedElement:
    """A matrix row, matrix column or choice option with its effective identity."""

    identity: str
    label: str
    ordinal: str
    index: int
    durable_id: Optional[str] = None
    weight: Optional[float] = None
    value: Optional[str] = None


@dataclass(frozen=True)
class ResolvedQuestion:
    question: Question
    page: Page
    page_index: int
    index: int
    ordinal: str
    identity: str
    kind: Optional[str]
    rows: Tuple[ResolvedElement, ...] = ()
    columns: Tuple[ResolvedElement, ...] = ()
    options: Tuple[ResolvedElement, ...] = ()
    row_lookup: TieredIndex[ResolvedElement] = field(default_factory=lambda: TieredIndex("rows"))
    column_lookup: TieredIndex[ResolvedElement] = field(default_factory=lambda: TieredIndex("columns"))
    option_lookup: TieredIndex[ResolvedElement] = field(default_factory=lambda: TieredIndex("options"))
    pair_lookup: Dict[str, Tuple[str, str]] = field(default_factory=dict)
    candidate_keys: frozenset[str] = frozenset()

    @property
    def type_tag(self) -> str:
        return self.kind or self.question.type_tag

    @property
    def text(self) -> str:
        return self.question.text

    def resolve_row(self, candidate: Any) -> Optional[ResolvedElement]:
        return self.row_lookup.resolve(candidate)

    def resolve_column(self, candidate: Any) -> Optional[ResolvedElement]:
        return self.column_lookup.resolve(candidate)

    def resolve_option(self, candidate: Any) -> Optional[ResolvedElement]:
        return self.option_lookup.resolve(candidate)

    def resolve_pair(self, pair_id: Any) -> Optional[Tuple[str, str]]:
        if pair_id is None:
            return None
        return self.pair_lookup.get(str(pair_id).strip())

    def pair_id_for(self, row_identity: str, column_identity: str) -> Optional[str]:
        for pid, (r, c) in self.pair_lookup.items():
            if r == row_identity and c == column_identity:
                return pid
        return None


def _register_element(
    index: TieredIndex[ResolvedElement],
    element: ResolvedElement,
    content_hash: str,
    legacy_hash: str,
) -> None:
    index.register(TIER_DURABLE, element.durable_id, element.identity, element)
    index.register(TIER_ORDINAL, element.ordinal, element.identity, element)
    index.register(TIER_CONTENT, content_hash, element.identity, element)
    if legacy_hash != content_hash:
        index.register(TIER_LEGACY, legacy_hash, element.identity, element)


def _build_grid(
    scope: str,
    items: Iterable[Any],
    tag: str,
    placeholder: str,
    lookup: TieredIndex[ResolvedElement],
) -> Tuple[ResolvedElement, ...]:
    built: List[ResolvedElement] = []
    for i, item in enumerate(items):
        ordinal = item.position_ordinal if item.position_ordinal is not None else str(i)
        text = item.text or ""
        content_hash = derive(scope, ordinal, text, tag)
        legacy_hash = derive(scope, i, text, tag)
        element = ResolvedElement(
            identity=item.id or content_hash,
            label=text or f"{placeholder} {i + 1}",
            ordinal=ordinal,
            index=i,
            durable_id=item.id,
            weight=getattr(item, "weight", None),
        )
        _register_element(lookup, element, content_hash, legacy_hash)
        built.append(element)
    return tuple(built)


def _build_options(scope: str, question: Question, lookup: TieredIndex[ResolvedElement]) -> Tuple[ResolvedElement, ...]:
    built: List[ResolvedElement] = []
    live = [o for o in question.options if not o.is_deleted]
    for i, opt in enumerate(live):
        ordinal = opt.position_ordinal if opt.position_ordinal is not None else str(i)
        content_hash = derive(scope, ordinal, opt.text, OPTION_TAG)
        element = ResolvedElement(
            identity=opt.id or content_hash,
            label=opt.text or (opt.value or f"Option {i + 1}"),
            ordinal=ordinal,
            index=i,
            durable_id=opt.id,
            weight=opt.weight,
            value=opt.value,
        )
        # Choice answers are stored as option ids, values or the visible text
        lookup.register(TIER_DURABLE, element.identity, element.identity, element)
        lookup.register(TIER_ORDINAL, opt.value, element.identity, element)
        lookup.register(TIER_CONTENT, opt.text, element.identity, element)
        built.append(element)
    return tuple(built)


class IdentityResolver:
    """Resolve question, row, column and pair references for one definition."""

    def __init__(self, definition: SurveyDefinition) -> None:
        self.definition = definition
        self._questions: List[ResolvedQuestion] = []
        self._index: TieredIndex[ResolvedQuestion] = TieredIndex("questions")
        self._build()

    def _build(self) -> None:
        for page_index, page in enumerate(self.definition.pages):
            for i, question in enumerate(page.live_questions()):
                self._add_question(page, page_index, i, question)
        logger.debug(
            "identity_resolver_built survey_id=%s questions=%s",
            self.definition.survey_id,
            len(self._questions),
        )

    def _add_question(self, page: Page, page_index: int, i: int, question: Question) -> None:
        ordinal = question.position_ordinal if question.position_ordinal is not None else str(i)
        content_hash = derive(page.page_id, ordinal, question.text, question.type_tag)
        legacy_hash = derive(page.page_id, i, question.text, question.type_tag)
        identity = question.durable_id or content_hash

        row_lookup: TieredIndex[ResolvedElement] = TieredIndex(f"rows:{identity}")
        column_lookup: TieredIndex[ResolvedElement] = TieredIndex(f"columns:{identity}")
        option_lookup: TieredIndex[ResolvedElement] = TieredIndex(f"options:{identity}")
        rows = _build_grid(identity, question.matrix_rows, ROW_TAG, "Statement", row_lookup)
        columns = _build_grid(identity, question.matrix_columns, COLUMN_TAG, "Option", column_lookup)
        options = _build_options(identity, question, option_lookup)

        pairs: Dict[str, Tuple[str, str]] = {}
        for row in rows:
            for col in columns:
                pairs[pair_identity(row.identity, col.ordinal, col.identity)] = (row.identity, col.identity)

        keys = {identity, content_hash, legacy_hash}
        if question.durable_id:
            keys.add(question.durable_id)
        if question.position_ordinal is not None:
            keys.add(question.position_ordinal)

        resolved = ResolvedQuestion(
            question=question,
            page=page,
            page_index=page_index,
            index=i,
            ordinal=ordinal,
            identity=identity,
            kind=canonical_kind(question.type_tag),
            rows=rows,
            columns=columns,
            options=options,
            row_lookup=row_lookup,
            column_lookup=column_lookup,
            option_lookup=option_lookup,
            pair_lookup=pairs,
            candidate_keys=frozenset(keys),
        )
        self._questions.append(resolved)
        self._index.register(TIER_DURABLE, question.durable_id, identity, resolved)
        self._index.register(TIER_ORDINAL, question.position_ordinal, identity, resolved)
        self._index.register(TIER_CONTENT, content_hash, identity, resolved)
        if legacy_hash != content_hash:
            self._index.register(TIER_LEGACY, legacy_hash, identity, resolved)

    def questions(self) -> List[ResolvedQuestion]:
        """Every live question in page order, then position order."""
        return list(self._questions)

    def questions_on_page(self, page_id: str) -> List[ResolvedQuestion]:
        return [q for q in self._questions if q.page.page_id == page_id]

    def resolve(self, candidate: Any) -> Optional[ResolvedQuestion]:
        return self._index.resolve(candidate)

    def ambiguous_keys(self, tier: Optional[str] = None) -> set[str]:
        return self._index.ambiguous_keys(tier)


__all__ = [
    "TIER_DURABLE",
    "TIER_ORDINAL",
    "TIER_CONTENT",
    "TIER_LEGACY",
    "TIERS",
    "TieredIndex",
    "ResolvedElement",
    "ResolvedQuestion",
    "IdentityResolver",
]

"""Normalize raw submitted answers into canonical values.

Submitted answers arrive in whatever shape the client sent: arrays where a
scalar is expected, bare scalars for multi-choice, matrix selections as
objects, pair ids or row-to-column mappings. `normalize()` coerces them into
one canonical value per question kind and never raises; unrecognised type
tags pass through as permissive raw values.

`to_display()` maps a canonical value back to the shape the collector UI
expects when a stored answer is overlaid on a rendered page.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator, List, Optional, Tuple

from survey_engine.logic.identity_resolver import ResolvedQuestion
from survey_engine.models.canonical import (
    Pair,
    PairSetValue,
    RawValue,
    ScalarSetValue,
    ScalarValue,
)
from survey_engine.models.question_kind import MATRIX_KINDS, SCALAR_KINDS, SET_KINDS, canonical_kind

logger = logging.getLogger(__name__)

_MAPPING_SCALAR_KEYS = ("value", "text", "label")


def _scalar_from(raw: Any) -> Any:
    if raw is None:
        return ""
    if isinstance(raw, (list, tuple)):
        return _scalar_from(raw[0]) if raw else ""
    if isinstance(raw, dict):
        for key in _MAPPING_SCALAR_KEYS:
            if key in raw and raw[key] is not None:
                return _scalar_from(raw[key])
        logger.info("normalize_degraded kind=scalar reason=mapping_without_value keys=%s", sorted(raw.keys()))
        return ""
    if isinstance(raw, (str, int, float, bool)):
        return raw
    logger.info("normalize_degraded kind=scalar reason=unsupported_type type=%s", type(raw).__name__)
    return str(raw)


def _set_from(raw: Any) -> List[Any]:
    if raw is None:
        return []
    items = list(raw) if isinstance(raw, (list, tuple, set)) else [raw]
    out: List[Any] = []
    for item in items:
        value = _scalar_from(item)
        if isinstance(value, str) and value == "":
            continue
        if value not in out:
            out.append(value)
    return out


def _text(v: Any) -> Optional[str]:
    if v is None:
        return None
    text = str(v).strip()
    return text or None


def _iter_pair_candidates(raw: Any) -> Iterator[Tuple[Optional[str], Optional[str], Optional[str]]]:
    """Yield (row, column, pair_id) triples from every accepted matrix shape."""
    if raw is None:
        return
    if isinstance(raw, (str, int)):
        yield None, None, _text(raw)
        return
    if isinstance(raw, (list, tuple)):
        for item in raw:
            yield from _iter_pair_candidates(item)
        return
    if isinstance(raw, dict):
        row = raw.get("rowId", raw.get("row_id", raw.get("row_identity")))
        col = raw.get("columnId", raw.get("column_id", raw.get("column_identity")))
        if row is not None or col is not None:
            yield _text(row), _text(col), None
            return
        if "id" in raw and len(raw) == 1:
            yield None, None, _text(raw["id"])
            return
        # {row: column} or {row: [columns]}
        for row_key, cols in raw.items():
            col_items: Iterable[Any] = cols if isinstance(cols, (list, tuple)) else [cols]
            for c in col_items:
                yield _text(row_key), _text(c), None
        return
    logger.info("normalize_degraded kind=pairs reason=unsupported_item type=%s", type(raw).__name__)


def _pairs_from(raw: Any, question: Optional[ResolvedQuestion]) -> List[Pair]:
    out: List[Pair] = []
    seen: set[Tuple[str, str]] = set()
    dropped = 0
    for row_key, col_key, pair_id in _iter_pair_candidates(raw):
        resolved: Optional[Tuple[str, str]] = None
        if pair_id is not None:
            if question is not None:
                resolved = question.resolve_pair(pair_id)
        elif row_key is not None and col_key is not None:
            if question is None:
                resolved = (row_key, col_key)
            else:
                row = question.resolve_row(row_key)
                col = question.resolve_column(col_key)
                if row is not None and col is not None:
                    resolved = (row.identity, col.identity)
        if resolved is None:
            dropped += 1
            continue
        if resolved in seen:
            continue
        seen.add(resolved)
        out.append(Pair(row_identity=resolved[0], column_identity=resolved[1]))
    if dropped:
        logger.info(
            "normalize_dropped_pairs question_id=%s dropped=%s",
            question.identity if question is not None else None,
            dropped,
        )
    return out


def normalize(type_tag: Optional[str], raw: Any, question: Optional[ResolvedQuestion] = None) -> Any:
    """Return the canonical value for `raw` answered to a question of `type_tag`."""
    kind = canonical_kind(type_tag)
    if kind in SCALAR_KINDS:
        return ScalarValue(value=_scalar_from(raw))
    if kind in SET_KINDS:
        return ScalarSetValue(values=_set_from(raw))
    if kind in MATRIX_KINDS:
        return PairSetValue(pairs=_pairs_from(raw, question))
    logger.debug("normalize_raw type_tag=%s", type_tag)
    return RawValue(value=raw)


def to_display(type_tag: Optional[str], value: Any) -> Any:
    """Map a canonical value to the collector's answer shape for `type_tag`.

    Scalar kinds yield a single value, multi-choice a list and matrix kinds a
    list of `{rowId, columnId}` objects. The question's current kind wins over
    the stored shape so a changed type degrades instead of failing.
    """
    if value is None:
        return None
    kind = canonical_kind(type_tag)
    if isinstance(value, ScalarValue):
        scalar: Any = value.value
        items: List[Any] = [] if value.is_empty() else [scalar]
    elif isinstance(value, ScalarSetValue):
        scalar = value.values[0] if value.values else ""
        items = list(value.values)
    elif isinstance(value, PairSetValue):
        if kind is not None and kind not in MATRIX_KINDS:
            return None
        return [{"rowId": p.row_identity, "columnId": p.column_identity} for p in value.pairs]
    else:
        return value.value

    if kind in SET_KINDS:
        return items
    if kind in MATRIX_KINDS:
        return []
    return scalar


__all__ = ["normalize", "to_display"]

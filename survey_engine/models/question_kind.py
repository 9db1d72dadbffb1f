"""QuestionKind taxonomy for survey questions.

Provides a simple constants container instead of an Enum to keep imports
lightweight in architectural tests, plus the alias table that maps the type
tags found in stored definitions onto the canonical kinds.
"""

from __future__ import annotations

from typing import Optional


class QuestionKind:
    SHORT_TEXT = "SHORT_TEXT"
    LONG_TEXT = "LONG_TEXT"
    BOOLEAN = "BOOLEAN"
    RATING_SCALE = "RATING_SCALE"
    SINGLE_CHOICE = "SINGLE_CHOICE"
    DROPDOWN = "DROPDOWN"
    MULTI_CHOICE = "MULTI_CHOICE"
    MATRIX_RADIO = "MATRIX_RADIO"
    MATRIX_CHECKBOX = "MATRIX_CHECKBOX"


# Keys are compared upper-cased with dashes and spaces folded to underscores
_ALIASES: dict[str, str] = {
    "SHORT_TEXT": QuestionKind.SHORT_TEXT,
    "TEXT": QuestionKind.SHORT_TEXT,
    "SHORT_ANSWER": QuestionKind.SHORT_TEXT,
    "LONG_TEXT": QuestionKind.LONG_TEXT,
    "TEXTAREA": QuestionKind.LONG_TEXT,
    "PARAGRAPH": QuestionKind.LONG_TEXT,
    "COMMENT_BOX": QuestionKind.LONG_TEXT,
    "BOOLEAN": QuestionKind.BOOLEAN,
    "YES_NO": QuestionKind.BOOLEAN,
    "RATING_SCALE": QuestionKind.RATING_SCALE,
    "RATING": QuestionKind.RATING_SCALE,
    "STAR_RATING": QuestionKind.RATING_SCALE,
    "SINGLE_CHOICE": QuestionKind.SINGLE_CHOICE,
    "RADIO_BOX": QuestionKind.SINGLE_CHOICE,
    "RADIO": QuestionKind.SINGLE_CHOICE,
    "DROPDOWN": QuestionKind.DROPDOWN,
    "SELECT": QuestionKind.DROPDOWN,
    "MULTI_CHOICE": QuestionKind.MULTI_CHOICE,
    "MULTIPLE_CHOICE": QuestionKind.MULTI_CHOICE,
    "CHECK_BOX": QuestionKind.MULTI_CHOICE,
    "CHECKBOX": QuestionKind.MULTI_CHOICE,
    "MATRIX_RADIO": QuestionKind.MATRIX_RADIO,
    "MATRIX_RADIO_BOX": QuestionKind.MATRIX_RADIO,
    "MATRIX_CHECKBOX": QuestionKind.MATRIX_CHECKBOX,
    "MATRIX_CHECK_BOX": QuestionKind.MATRIX_CHECKBOX,
}

SCALAR_KINDS = frozenset(
    {
        QuestionKind.SHORT_TEXT,
        QuestionKind.LONG_TEXT,
        QuestionKind.BOOLEAN,
        QuestionKind.RATING_SCALE,
        QuestionKind.SINGLE_CHOICE,
        QuestionKind.DROPDOWN,
    }
)
SET_KINDS = frozenset({QuestionKind.MULTI_CHOICE})
MATRIX_KINDS = frozenset({QuestionKind.MATRIX_RADIO, QuestionKind.MATRIX_CHECKBOX})
CHOICE_KINDS = frozenset(
    {
        QuestionKind.SINGLE_CHOICE,
        QuestionKind.MULTI_CHOICE,
        QuestionKind.DROPDOWN,
        QuestionKind.RATING_SCALE,
        QuestionKind.BOOLEAN,
    }
)
TEXT_KINDS = frozenset({QuestionKind.SHORT_TEXT, QuestionKind.LONG_TEXT})


def canonical_kind(type_tag: Optional[str]) -> Optional[str]:
    """Return the canonical kind for a type tag, or None when unrecognised."""
    if not type_tag:
        return None
    key = str(type_tag).strip().upper().replace("-", "_").replace(" ", "_")
    return _ALIASES.get(key)


__all__ = [
    "QuestionKind",
    "SCALAR_KINDS",
    "SET_KINDS",
    "MATRIX_KINDS",
    "CHOICE_KINDS",
    "TEXT_KINDS",
    "canonical_kind",
]

"""Canonicalization helpers for answer labels.

Provides the single mapping from a stored scalar to the label used when
counting selections, so analytics and exports agree on bucket names.
"""

from __future__ import annotations

from typing import Any, Optional

from survey_engine.logic.identity_resolver import ResolvedQuestion


def canonicalize_answer_value(value: Any) -> Optional[str]:
    """Return a stable string representation for a stored scalar.

    - Booleans -> "true" / "false"
    - Numbers  -> integer form when integral, else decimal string
    - Text     -> stripped string
    - None / empty text -> None
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        f = float(value)
        if f.is_integer():
            return str(int(f))
        return str(f)
    text = str(value).strip()
    return text or None


def choice_label(value: Any, question: Optional[ResolvedQuestion]) -> Optional[str]:
    """Return the option text for `value` when it names an option, else its canonical form."""
    canonical = canonicalize_answer_value(value)
    if canonical is None or question is None:
        return canonical
    option = question.resolve_option(canonical)
    if option is not None:
        return option.label
    return canonical


__all__ = ["canonicalize_answer_value", "choice_label"]

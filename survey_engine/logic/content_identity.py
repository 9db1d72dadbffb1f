"""Content-derived identities for definition elements without a durable id.

`derive()` is the only place a content hash is computed. The same inputs
always produce the same 32-character lowercase hex string, in every process
and on every platform.
"""

from __future__ import annotations

import hashlib
from typing import Union

ROW_TAG = "ROW"
COLUMN_TAG = "COLUMN"
OPTION_TAG = "OPTION"
PAIR_TAG = "PAIR"


def derive(scope_id: str, position_ordinal: Union[str, int], text: str, type_tag: str) -> str:
    """Return the MD5 hex digest of `"{scope_id}-{position_ordinal}-{text}-{type_tag}"`."""
    material = f"{scope_id}-{position_ordinal}-{text}-{type_tag}"
    return hashlib.md5(material.encode("utf-8")).hexdigest()


def pair_identity(row_identity: str, column_ordinal: Union[str, int], column_identity: str) -> str:
    """Identity of one (row, column) cell of a matrix question."""
    return derive(row_identity, column_ordinal, column_identity, PAIR_TAG)


__all__ = [
    "ROW_TAG",
    "COLUMN_TAG",
    "OPTION_TAG",
    "PAIR_TAG",
    "derive",
    "pair_identity",
]

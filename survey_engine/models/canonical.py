"""Canonical answer values.

A stored answer is one of four shapes, discriminated by `kind`:
- `scalar`: a single value (text, number, boolean)
- `set`: an ordered list of selected values
- `pairs`: matrix selections as (row identity, column identity) pairs
- `raw`: anything submitted for an unrecognised question type

Values are persisted as JSON text in `response.value_json`; use
`dump_canonical` / `load_canonical` at the storage boundary.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

Scalar = Union[str, int, float, bool]


class ScalarValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["scalar"] = "scalar"
    value: Scalar = ""

    def is_empty(self) -> bool:
        return self.value is None or (isinstance(self.value, str) and self.value.strip() == "")


class ScalarSetValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["set"] = "set"
    values: list[Scalar] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.values


class Pair(BaseModel):
    model_config = ConfigDict(frozen=True)

    row_identity: str
    column_identity: str


class PairSetValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["pairs"] = "pairs"
    pairs: list[Pair] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.pairs


class RawValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["raw"] = "raw"
    permissive: Literal[True] = True
    value: Any = None

    def is_empty(self) -> bool:
        return self.value is None or self.value == "" or self.value == [] or self.value == {}


CanonicalValue = Annotated[
    Union[ScalarValue, ScalarSetValue, PairSetValue, RawValue],
    Field(discriminator="kind"),
]

CANONICAL_ADAPTER: TypeAdapter = TypeAdapter(CanonicalValue)


def dump_canonical(value: Any) -> str:
    return json.dumps(value.model_dump(mode="json"), separators=(",", ":"), sort_keys=True)


def load_canonical(raw: Any) -> Any:
    """Parse a stored value; rows written without a `kind` come back as raw values."""
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    data = json.loads(raw) if isinstance(raw, str) else raw
    if isinstance(data, dict) and data.get("kind") in {"scalar", "set", "pairs", "raw"}:
        return CANONICAL_ADAPTER.validate_python(data)
    return RawValue(value=data)


__all__ = [
    "Scalar",
    "ScalarValue",
    "ScalarSetValue",
    "Pair",
    "PairSetValue",
    "RawValue",
    "CanonicalValue",
    "CANONICAL_ADAPTER",
    "dump_canonical",
    "load_canonical",
]

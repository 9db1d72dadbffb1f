"""Survey definition snapshot models.

Definitions are authored elsewhere and read here as immutable snapshots:
pages hold questions, questions hold options or matrix rows and columns.
Elements may lack a durable id; their effective identity is derived from
content by `survey_engine.logic.content_identity`.

Models accept both snake_case and the camelCase keys found in stored
question JSON (`questionId`, `uniqueOrder`, `questionType`, ...).
"""

from __future__ import annotations

from typing import Annotated, Any, Optional

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, field_validator


_FROZEN = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


def _ordinal_text(v: Any) -> Optional[str]:
    if v is None:
        return None
    if isinstance(v, bool):
        return str(v).lower()
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    text = str(v).strip()
    return text or None


# Ordinals are free-form in stored definitions ("3", "A"); compare them as text
Ordinal = Annotated[Optional[str], BeforeValidator(_ordinal_text)]


class Option(BaseModel):
    model_config = _FROZEN

    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("id", "option_id", "optionId"))
    text: str = ""
    value: Optional[str] = None
    weight: Optional[float] = None
    position_ordinal: Ordinal = Field(
        default=None, validation_alias=AliasChoices("position_ordinal", "uniqueOrder", "unique_order")
    )
    is_deleted: bool = Field(default=False, validation_alias=AliasChoices("is_deleted", "isDeleted"))

    @field_validator("value", mode="before")
    @classmethod
    def _value_text(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)


class MatrixRow(BaseModel):
    model_config = _FROZEN

    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("id", "row_id", "rowId"))
    text: str = ""
    position_ordinal: Ordinal = Field(
        default=None, validation_alias=AliasChoices("position_ordinal", "uniqueOrder", "unique_order")
    )


class MatrixColumn(BaseModel):
    model_config = _FROZEN

    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("id", "column_id", "columnId"))
    text: str = ""
    position_ordinal: Ordinal = Field(
        default=None, validation_alias=AliasChoices("position_ordinal", "uniqueOrder", "unique_order")
    )
    weight: Optional[float] = None


class Question(BaseModel):
    model_config = _FROZEN

    durable_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("durable_id", "questionId", "question_id", "id")
    )
    position_ordinal: Ordinal = Field(
        default=None, validation_alias=AliasChoices("position_ordinal", "uniqueOrder", "unique_order")
    )
    text: str = Field(default="", validation_alias=AliasChoices("text", "question"))
    type_tag: str = Field(default="", validation_alias=AliasChoices("type_tag", "questionType", "type"))
    options: tuple[Option, ...] = ()
    matrix_rows: tuple[MatrixRow, ...] = Field(
        default=(), validation_alias=AliasChoices("matrix_rows", "gridRows", "rows")
    )
    matrix_columns: tuple[MatrixColumn, ...] = Field(
        default=(), validation_alias=AliasChoices("matrix_columns", "gridColumns", "columns")
    )
    validation: Optional[dict[str, Any]] = None
    mandatory: bool = Field(default=False, validation_alias=AliasChoices("mandatory", "mandatoryEnabled"))
    is_deleted: bool = Field(default=False, validation_alias=AliasChoices("is_deleted", "isDeleted"))

    @field_validator("text", "type_tag", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> str:
        return "" if v is None else str(v)


class Page(BaseModel):
    model_config = _FROZEN

    page_id: str = Field(validation_alias=AliasChoices("page_id", "pageId", "id"))
    title: Optional[str] = None
    description: Optional[str] = None
    questions: tuple[Question, ...] = ()

    def live_questions(self) -> list[Question]:
        return [q for q in self.questions if not q.is_deleted]


class SurveyDefinition(BaseModel):
    """Immutable snapshot of one survey and its pages in display order."""

    model_config = _FROZEN

    survey_id: str
    title: str = ""
    description: Optional[str] = None
    status: str = "active"
    pages: tuple[Page, ...] = ()

    @property
    def is_active(self) -> bool:
        return str(self.status or "").lower() == "active"

    def page_by_id(self, page_id: str) -> Optional[Page]:
        for page in self.pages:
            if page.page_id == page_id:
                return page
        return None

    def total_questions(self) -> int:
        return sum(len(p.live_questions()) for p in self.pages)


__all__ = [
    "Option",
    "MatrixRow",
    "MatrixColumn",
    "Question",
    "Page",
    "SurveyDefinition",
]

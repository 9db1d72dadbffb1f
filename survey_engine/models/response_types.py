"""Pydantic models for collector, response store and analytics bodies."""

from __future__ import annotations

from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from survey_engine.config import PageSettings
from survey_engine.models.canonical import CanonicalValue


class Caller(BaseModel):
    """Who is answering: an upstream-authenticated user, else a network address."""

    user_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referer: Optional[str] = None


# Collector page rendering


class RenderedOption(BaseModel):
    id: str
    text: str
    value: Optional[str] = None
    weight: Optional[float] = None


class RenderedRow(BaseModel):
    id: str
    text: str


class RenderedColumn(BaseModel):
    id: str
    text: str
    weight: Optional[float] = None


class RenderedPair(BaseModel):
    id: str
    row_id: str
    column_id: str


class RenderedQuestion(BaseModel):
    question_id: str
    type_tag: str
    text: str
    mandatory: bool = False
    validation: Optional[dict[str, Any]] = None
    options: List[RenderedOption] = Field(default_factory=list)
    rows: List[RenderedRow] = Field(default_factory=list)
    columns: List[RenderedColumn] = Field(default_factory=list)
    pairs: List[RenderedPair] = Field(default_factory=list)
    answer: Any = None
    comment: Optional[str] = None


class PagePayload(BaseModel):
    survey_id: str
    title: str
    description: Optional[str] = None
    instance_id: Optional[str] = None
    preview: bool = False
    page_id: Optional[str] = None
    page_title: Optional[str] = None
    page_description: Optional[str] = None
    questions: List[RenderedQuestion] = Field(default_factory=list)
    total_pages: int
    current_page_number: int
    previous_page_id: Optional[str] = None
    next_page_id: Optional[str] = None
    settings: PageSettings


# Submission


class SubmissionItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question_identity: str = Field(
        min_length=1, validation_alias=AliasChoices("question_identity", "question_id", "questionId")
    )
    type_tag: Optional[str] = Field(default=None, validation_alias=AliasChoices("type_tag", "questionType"))
    raw_value: Any = Field(default=None, validation_alias=AliasChoices("raw_value", "value", "response"))
    comment: Optional[str] = None
    score: Optional[float] = None
    page_index: Optional[int] = Field(default=None, ge=0)


class SubmissionMetadata(BaseModel):
    collector: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    survey_url: Optional[str] = None
    started_at: Optional[str] = None


class SubmitRequest(BaseModel):
    items: List[SubmissionItem] = Field(default_factory=list)
    complete: bool = False
    metadata: SubmissionMetadata = Field(default_factory=SubmissionMetadata)


class ResponseInstanceSummary(BaseModel):
    instance_id: str
    survey_id: str
    user_id: Optional[str] = None
    ip_address: Optional[str] = None
    status: str
    answered_question_count: int = 0
    last_page_index: int = 0
    total_pages: int = 0
    total_questions: int = 0
    started_at: Optional[str] = None
    last_activity_at: Optional[str] = None
    completed_at: Optional[str] = None
    time_taken_seconds: Optional[int] = None
    user_agent: Optional[str] = None
    survey_url: Optional[str] = None
    collector: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    response_code: Optional[str] = None
    response_link: Optional[str] = None


class StoredResponse(BaseModel):
    response_id: str
    instance_id: str
    survey_id: str
    question_id: str
    question_type: Optional[str] = None
    value: CanonicalValue
    comment: Optional[str] = None
    score: Optional[float] = None
    page_index: Optional[int] = None
    created_at: str
    answered_at: str


class StoredResponseList(BaseModel):
    items: List[StoredResponse]


# Analytics


class ChoiceCount(BaseModel):
    label: str
    count: int
    percentage: float
    percentage_label: str


class ChoiceSummary(BaseModel):
    kind: Literal["choice"] = "choice"
    question_id: str
    question_text: str
    type_tag: str
    page_index: int
    answered_count: int = 0
    total: int = 0
    counts: List[ChoiceCount] = Field(default_factory=list)


class MatrixColumnSummary(BaseModel):
    column_identity: str
    label: str
    weight: Optional[float] = None


class MatrixRowSummary(BaseModel):
    row_identity: str
    label: str
    counts: dict[str, int]
    earned: Optional[float] = None
    possible: Optional[float] = None


class MatrixSummary(BaseModel):
    kind: Literal["matrix"] = "matrix"
    question_id: str
    question_text: str
    type_tag: str
    page_index: int
    answered_count: int = 0
    weighted: bool = False
    columns: List[MatrixColumnSummary] = Field(default_factory=list)
    rows: List[MatrixRowSummary] = Field(default_factory=list)


class TextEntry(BaseModel):
    value: str
    answered_at: Optional[str] = None


class TextSummary(BaseModel):
    kind: Literal["text"] = "text"
    question_id: str
    question_text: str
    type_tag: str
    page_index: int
    answered_count: int = 0
    entries: List[TextEntry] = Field(default_factory=list)


QuestionSummary = Annotated[
    Union[ChoiceSummary, MatrixSummary, TextSummary],
    Field(discriminator="kind"),
]


class SurveyAnalytics(BaseModel):
    survey_id: str
    title: str
    questions: List[QuestionSummary]


class TimelinePoint(BaseModel):
    date: str
    count: int


class SurveyOverview(BaseModel):
    survey_id: str
    title: str
    status: str
    visit_count: int = 0
    response_count: int = 0
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    not_started: int = 0
    completion_rate: float = 0.0
    timeline: List[TimelinePoint] = Field(default_factory=list)


class InstanceProgress(BaseModel):
    instance_id: str
    user_id: Optional[str] = None
    ip_address: Optional[str] = None
    status: str
    answered_question_count: int = 0
    total_questions: int = 0
    progress: float = 0.0
    last_activity_at: Optional[str] = None
    completed_at: Optional[str] = None
    response_code: Optional[str] = None


class InstanceProgressList(BaseModel):
    survey_id: str
    items: List[InstanceProgress]


class TabularDocument(BaseModel):
    """A rendered report: a filename, its media type and the file bytes."""

    filename: str
    media_type: str
    content: bytes


__all__ = [
    "Caller",
    "RenderedOption",
    "RenderedRow",
    "RenderedColumn",
    "RenderedPair",
    "RenderedQuestion",
    "PagePayload",
    "SubmissionItem",
    "SubmissionMetadata",
    "SubmitRequest",
    "ResponseInstanceSummary",
    "StoredResponse",
    "StoredResponseList",
    "ChoiceCount",
    "ChoiceSummary",
    "MatrixColumnSummary",
    "MatrixRowSummary",
    "MatrixSummary",
    "TextEntry",
    "TextSummary",
    "QuestionSummary",
    "SurveyAnalytics",
    "TimelinePoint",
    "SurveyOverview",
    "InstanceProgress",
    "InstanceProgressList",
    "TabularDocument",
]

"""Analytics, overview, progress and export routes."""

from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi.responses import Response

from survey_engine.logic import reporting
from survey_engine.models.response_types import (
    InstanceProgressList,
    QuestionSummary,
    SurveyAnalytics,
    SurveyOverview,
    TabularDocument,
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get(
    "/surveys/{survey_id}/analytics",
    summary="Summaries for every question of a survey",
    response_model=SurveyAnalytics,
)
def get_survey_analytics(survey_id: str) -> SurveyAnalytics:
    return reporting.survey_analytics(survey_id)


@router.get(
    "/surveys/{survey_id}/analytics/questions/{question_id}",
    summary="Summary for one question",
    response_model=QuestionSummary,
)
def get_question_analytics(survey_id: str, question_id: str):
    return reporting.question_analytics(survey_id, question_id)


@router.get(
    "/surveys/{survey_id}/overview",
    summary="Instance status counts and activity timeline",
    response_model=SurveyOverview,
)
def get_overview(survey_id: str) -> SurveyOverview:
    return reporting.survey_overview(survey_id)


@router.get(
    "/surveys/{survey_id}/instances",
    summary="Response instances with progress",
    response_model=InstanceProgressList,
)
def get_instances(survey_id: str) -> InstanceProgressList:
    return reporting.instance_progress(survey_id)


def _attachment(doc: TabularDocument) -> Response:
    return Response(
        content=doc.content,
        media_type=doc.media_type,
        headers={"Content-Disposition": f'attachment; filename="{doc.filename}"'},
    )


@router.get("/surveys/{survey_id}/questions/{question_id}/export", summary="Export one question as xlsx")
def export_question(survey_id: str, question_id: str) -> Response:
    return _attachment(reporting.export_question(survey_id, question_id))


@router.get("/surveys/{survey_id}/export", summary="Export every question as xlsx")
def export_survey(survey_id: str) -> Response:
    return _attachment(reporting.export_survey(survey_id))


__all__ = ["router"]

"""Collector routes: render survey pages and accept respondent submissions."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request

from survey_engine.http.caller import get_caller, is_preview
from survey_engine.logic.collector_flow import render_page, submit_responses
from survey_engine.models.response_types import Caller, PagePayload, ResponseInstanceSummary, SubmitRequest

router = APIRouter()
logger = logging.getLogger(__name__)


def _render(survey_id: str, page_id: Optional[str], request: Request, caller: Caller) -> PagePayload:
    return render_page(survey_id, page_id, caller=caller, preview=is_preview(request))


@router.get(
    "/collector/surveys/{survey_id}/pages",
    summary="Render the first page of a survey",
    response_model=PagePayload,
)
def get_first_page(survey_id: str, request: Request, caller: Caller = Depends(get_caller)) -> PagePayload:
    return _render(survey_id, None, request, caller)


@router.get(
    "/collector/surveys/{survey_id}/pages/{page_id}",
    summary="Render one page of a survey",
    response_model=PagePayload,
)
def get_page(survey_id: str, page_id: str, request: Request, caller: Caller = Depends(get_caller)) -> PagePayload:
    return _render(survey_id, page_id, request, caller)


@router.post(
    "/collector/surveys/{survey_id}/responses",
    summary="Submit answers for the caller's response instance",
    response_model=ResponseInstanceSummary,
)
def post_responses(
    survey_id: str,
    body: SubmitRequest,
    caller: Caller = Depends(get_caller),
) -> ResponseInstanceSummary:
    return submit_responses(
        survey_id,
        caller=caller,
        items=body.items,
        complete=body.complete,
        metadata=body.metadata,
    )


__all__ = ["router"]

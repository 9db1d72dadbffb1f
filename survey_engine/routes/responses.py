"""Response store routes: per-instance answers, survey listings and deletes."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from survey_engine.http.caller import get_caller
from survey_engine.logic import reporting
from survey_engine.logic.collector_flow import delete_instance_response, list_instance_responses, save_instance_response
from survey_engine.models.response_types import Caller, StoredResponse, StoredResponseList, SubmissionItem

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get(
    "/response-instances/{instance_id}/responses",
    summary="List live responses of one instance",
    response_model=StoredResponseList,
)
def get_instance_responses(instance_id: str, caller: Caller = Depends(get_caller)) -> StoredResponseList:
    return StoredResponseList(items=list_instance_responses(instance_id, caller=caller))


@router.post(
    "/response-instances/{instance_id}/responses",
    summary="Insert or update one response of an instance",
    response_model=StoredResponse,
)
def post_instance_response(
    instance_id: str,
    item: SubmissionItem,
    caller: Caller = Depends(get_caller),
) -> StoredResponse:
    return save_instance_response(instance_id, item, caller=caller)


@router.get(
    "/surveys/{survey_id}/responses",
    summary="List live responses of a survey",
    response_model=StoredResponseList,
)
def get_survey_responses(
    survey_id: str,
    question_id: Optional[str] = Query(default=None),
) -> StoredResponseList:
    return StoredResponseList(items=reporting.survey_responses(survey_id, question_id))


@router.delete(
    "/responses/{response_id}",
    summary="Soft-delete one response",
    status_code=204,
)
def delete_response(response_id: str, caller: Caller = Depends(get_caller)) -> None:
    delete_instance_response(response_id, caller=caller)


__all__ = ["router"]

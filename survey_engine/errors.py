"""Error taxonomy for the survey engine.

Every error carries a stable `code`, an HTTP `status` and a human `title` so
the problem+json handler can render it without per-route mapping. Optional
`context` is included in the problem body for diagnostics.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class SurveyEngineError(Exception):
    code = "SURVEY_ENGINE_ERROR"
    status = 500
    title = "Internal Server Error"

    def __init__(self, detail: str = "", *, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(detail or self.title)
        self.detail = detail or self.title
        self.context: Dict[str, Any] = dict(context or {})

    def to_problem(self) -> Dict[str, Any]:
        """Return the RFC 7807 body for this error."""
        problem: Dict[str, Any] = {
            "title": self.title,
            "status": self.status,
            "detail": self.detail,
            "code": self.code,
        }
        if self.context:
            problem["context"] = self.context
        return problem


class NotFound(SurveyEngineError):
    code = "NOT_FOUND"
    status = 404
    title = "Not Found"


class InvalidOwnership(SurveyEngineError):
    code = "INVALID_OWNERSHIP"
    status = 403
    title = "Forbidden"


class UnresolvableIdentity(SurveyEngineError):
    """Raised only when a caller explicitly asks for an unknown question."""

    code = "UNRESOLVABLE_IDENTITY"
    status = 404
    title = "Not Found"


class MalformedResponseShape(SurveyEngineError):
    # Not raised by the normalizer, which stores a raw value and logs
    code = "MALFORMED_RESPONSE_SHAPE"
    status = 422
    title = "Unprocessable Entity"


class MissingRequesterAddress(SurveyEngineError):
    code = "MISSING_REQUESTER_ADDRESS"
    status = 400
    title = "Bad Request"


class AggregationFailure(SurveyEngineError):
    code = "AGGREGATION_FAILURE"
    status = 500
    title = "Aggregation Failed"

    def __init__(
        self,
        detail: str = "",
        *,
        survey_id: Optional[str] = None,
        question_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        ctx = dict(context or {})
        if survey_id is not None:
            ctx.setdefault("survey_id", survey_id)
        if question_id is not None:
            ctx.setdefault("question_id", question_id)
        super().__init__(detail, context=ctx)
        self.survey_id = survey_id
        self.question_id = question_id


class AggregationCancelled(AggregationFailure):
    code = "AGGREGATION_CANCELLED"
    status = 503
    title = "Service Unavailable"


class SurveyNotActive(SurveyEngineError):
    code = "SURVEY_NOT_ACTIVE"
    status = 400
    title = "Bad Request"


class SurveyAlreadyCompleted(SurveyEngineError):
    code = "SURVEY_ALREADY_COMPLETED"
    status = 409
    title = "Conflict"


__all__ = [
    "SurveyEngineError",
    "NotFound",
    "InvalidOwnership",
    "UnresolvableIdentity",
    "MalformedResponseShape",
    "MissingRequesterAddress",
    "AggregationFailure",
    "AggregationCancelled",
    "SurveyNotActive",
    "SurveyAlreadyCompleted",
]

"""Caller identity and preview detection for collector requests.

Authentication happens upstream; an authenticated respondent arrives with an
`X-User-Id` header. Anonymous respondents are identified by address, taken
from the first `X-Forwarded-For` hop, then `X-Real-IP`, then the socket peer.
"""

from __future__ import annotations

from fastapi import Request

from survey_engine.models.response_types import Caller

USER_ID_HEADER = "X-User-Id"
PREVIEW_HEADER = "X-Preview-Mode"


def requester_address(request: Request) -> str | None:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = (request.headers.get("X-Real-IP") or "").strip()
    if real_ip:
        return real_ip
    return request.client.host if request.client else None


def get_caller(request: Request) -> Caller:
    """FastAPI dependency building the caller from request headers."""
    return Caller(
        user_id=(request.headers.get(USER_ID_HEADER) or "").strip() or None,
        ip_address=requester_address(request),
        user_agent=request.headers.get("User-Agent"),
        referer=request.headers.get("Referer"),
    )


def is_preview(request: Request) -> bool:
    """True for `?preview=true`, `X-Preview-Mode: true` or a referer carrying `preview=true`."""
    if (request.query_params.get("preview") or "").lower() == "true":
        return True
    if (request.headers.get(PREVIEW_HEADER) or "").lower() == "true":
        return True
    return "preview=true" in (request.headers.get("Referer") or "")


__all__ = ["USER_ID_HEADER", "PREVIEW_HEADER", "requester_address", "get_caller", "is_preview"]

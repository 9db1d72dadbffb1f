"""Request ID middleware.

Echoes an inbound X-Request-Id header on the response, or assigns a fresh
one when the client did not send it. The id is stored on the request state
for problem bodies and in the logging context var for log lines.
"""

from __future__ import annotations

import logging
import uuid

from survey_engine.logging_setup import REQUEST_ID

logger = logging.getLogger(__name__)

# Inbound ids longer than this are replaced rather than echoed
MAX_INBOUND_LENGTH = 128


class RequestIdMiddleware:
    def __init__(self, app, header_name: str = "X-Request-Id") -> None:  # type: ignore[no-untyped-def]
        self.app = app
        self.header_name = header_name
        self._wanted = header_name.lower().encode("latin-1")

    def _inbound(self, scope) -> str | None:  # type: ignore[no-untyped-def]
        for key, value in scope.get("headers") or []:
            if key.lower() != self._wanted or not value:
                continue
            candidate = value.decode("latin-1").strip()
            if candidate and len(candidate) <= MAX_INBOUND_LENGTH and candidate.isprintable():
                return candidate
            logger.debug("request_id_rejected length=%s", len(candidate))
        return None

    async def __call__(self, scope, receive, send):  # type: ignore[no-untyped-def]
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request_id = self._inbound(scope) or uuid.uuid4().hex
        scope.setdefault("state", {})["request_id"] = request_id
        header_bytes = self.header_name.encode("latin-1")

        async def send_wrapper(message):  # type: ignore[no-untyped-def]
            if message.get("type") == "http.response.start":
                headers = [(k, v) for k, v in (message.get("headers") or []) if bytes(k).lower() != self._wanted]
                headers.append((header_bytes, request_id.encode("latin-1")))
                message = {**message, "headers": headers}
            await send(message)

        token = REQUEST_ID.set(request_id)
        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            REQUEST_ID.reset(token)


__all__ = ["RequestIdMiddleware", "MAX_INBOUND_LENGTH"]

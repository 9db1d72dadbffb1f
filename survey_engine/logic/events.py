"""Domain event constants and publisher.

Defines event type constants and a simple publish() callable used by the
save, delete and completion flows.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

RESPONSE_SAVED = "response.saved"
RESPONSE_DELETED = "response.deleted"
RESPONSE_INSTANCE_COMPLETED = "response_instance.completed"

# In-process event log; bounded so a long-running worker does not grow without limit
EVENT_BUFFER: List[Dict[str, Any]] = []
EVENT_BUFFER_LIMIT = 1000
_LOCK = threading.Lock()


def publish(event_type: str, payload: Dict[str, Any]) -> None:
    """Publish a domain event to the log and the in-process buffer."""
    logger.info("event_publish type=%s payload=%s", event_type, payload)
    with _LOCK:
        EVENT_BUFFER.append({"type": event_type, "payload": dict(payload)})
        overflow = len(EVENT_BUFFER) - EVENT_BUFFER_LIMIT
        if overflow > 0:
            del EVENT_BUFFER[:overflow]


def get_buffered_events(clear: bool = True) -> List[Dict[str, Any]]:
    """Return buffered domain events; optionally clear the buffer."""
    with _LOCK:
        events = list(EVENT_BUFFER)
        if clear:
            EVENT_BUFFER.clear()
    return events


__all__ = [
    "RESPONSE_SAVED",
    "RESPONSE_DELETED",
    "RESPONSE_INSTANCE_COMPLETED",
    "publish",
    "get_buffered_events",
    "EVENT_BUFFER",
]

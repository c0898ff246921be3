"""Event pub/sub for completion request progress.

Decouples the orchestrator from whoever watches it:
- CLI subscribes -> Rich console status lines
- HTTP API subscribes -> last-known state for GET /state
"""

import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional

import structlog

logger = structlog.get_logger()

# Event types
STATE_CHANGED = "state_changed"
REJECTED = "rejected"
COMPLETED = "completed"
FAILED = "failed"
CANCELLED = "cancelled"


@dataclass
class CompletionEvent:
    """A single completion lifecycle event."""

    type: str
    data: dict = field(default_factory=dict)
    request_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        """Serialize for JSON transport."""
        return {
            "type": self.type,
            "data": self.data,
            "request_id": self.request_id,
            "timestamp": self.timestamp,
        }


class EventBus:
    """Simple synchronous event bus.

    Subscribers run in the emitter's thread, in subscription order.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, Callable[[CompletionEvent], None]] = {}

    def subscribe(self, callback: Callable[[CompletionEvent], None]) -> str:
        """Register a callback. Returns subscription ID for unsubscribe."""
        sub_id = str(uuid.uuid4())
        self._subscribers[sub_id] = callback
        return sub_id

    def unsubscribe(self, sub_id: str) -> None:
        """Remove a subscriber by ID."""
        self._subscribers.pop(sub_id, None)

    def emit(self, event: CompletionEvent) -> None:
        """Send event to all subscribers."""
        for callback in list(self._subscribers.values()):
            try:
                callback(event)
            except Exception as e:
                # A bad subscriber must not break the request it observes
                logger.warning("event_subscriber_failed", event=event.type, error=str(e))

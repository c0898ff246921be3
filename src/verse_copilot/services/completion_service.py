"""Completion service for the HTTP API.

Owns the orchestrator for a running server. Editor notices are collected by
a RecordingHost and returned with each response.
"""

from pathlib import Path
from typing import Any, Optional

import structlog

from verse_copilot.completion.orchestrator import CompletionOrchestrator
from verse_copilot.config import AppConfig, get_config
from verse_copilot.context.document import DocumentSnapshot, Position
from verse_copilot.host import RecordingHost
from verse_copilot.services.events import CompletionEvent, EventBus

logger = structlog.get_logger()


class CompletionService:
    """Run completions for HTTP clients and track the last outcome."""

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        event_bus: Optional[EventBus] = None,
        orchestrator: Optional[CompletionOrchestrator] = None,
    ) -> None:
        if orchestrator is None:
            orchestrator = CompletionOrchestrator.from_config(
                config or get_config(), RecordingHost(), event_bus=event_bus or EventBus()
            )
        self.orchestrator = orchestrator
        self.host = orchestrator.host
        self.event_bus = orchestrator.event_bus
        self.recent_events: list[dict] = []
        self.event_bus.subscribe(self._record)

    def _record(self, event: CompletionEvent) -> None:
        self.recent_events.append(event.to_dict())
        del self.recent_events[:-50]

    async def complete(
        self, text: str, line: int, character: int, path: Optional[str] = None
    ) -> dict[str, Any]:
        document = DocumentSnapshot(text=text, path=Path(path) if path else None)
        inserted = await self.orchestrator.trigger(document, Position(line, character))
        return {
            "text": inserted,
            "state": str(self.orchestrator.last_state),
            "notices": self.host.drain(),
        }

    def document_changed(self, is_own_insertion: bool = False) -> dict[str, Any]:
        cancelled = self.orchestrator.on_document_changed(is_own_insertion=is_own_insertion)
        return {"cancelled": cancelled}

    def apply_config(self, config: AppConfig) -> None:
        self.orchestrator.on_config_changed(config)

    def get_state(self) -> dict[str, Any]:
        cache = self.orchestrator.cache
        return {
            "state": str(self.orchestrator.state),
            "last_state": str(self.orchestrator.last_state),
            "busy": self.orchestrator.is_busy,
            "cache": cache.stats.as_dict() if cache is not None else None,
            "events": list(self.recent_events[-10:]),
        }

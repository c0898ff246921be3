"""Lifecycle of verse completion requests.

One request at a time moves through::

    Idle -> Triggered -> Assembling -> Requesting -> Completed | Cancelled | Failed -> Idle

A second trigger while a request is active is rejected with one notice. A
document edit cancels the active request; its backend call is cancelled and
its result is never inserted. However a request ends, the progress indicator
is cleared and the orchestrator returns to Idle.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Optional

import structlog

from verse_copilot.cancellation import CancellationToken
from verse_copilot.completion.backend import CompletionBackend
from verse_copilot.completion.formatting import format_completion_response
from verse_copilot.completion.prompts import build_verse_messages
from verse_copilot.config import AppConfig
from verse_copilot.context.assembler import ContextAssembler
from verse_copilot.context.cache import ResultCache
from verse_copilot.context.document import CurrentReferenceSource, DocumentSnapshot, Position
from verse_copilot.context.similarity import build_similarity_client
from verse_copilot.errors import (
    BackendFailureError,
    ConfigurationInvalidError,
    NotFoundError,
    RequestCancelledError,
)
from verse_copilot.host import EditorHost
from verse_copilot.log import request_context
from verse_copilot.services.events import (
    CANCELLED,
    COMPLETED,
    FAILED,
    REJECTED,
    STATE_CHANGED,
    CompletionEvent,
    EventBus,
)

logger = structlog.get_logger()

MESSAGES_DUMP_FILE = "messages.txt"
BUSY_NOTICE = "A verse completion is already in progress."


class CompletionState(StrEnum):
    IDLE = "idle"
    TRIGGERED = "triggered"
    ASSEMBLING = "assembling"
    REQUESTING = "requesting"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATES = frozenset(
    {CompletionState.COMPLETED, CompletionState.CANCELLED, CompletionState.FAILED}
)


@dataclass
class RequestState:
    """Per-request bookkeeping. Discarded when the request ends."""

    request_id: str
    token: CancellationToken = field(default_factory=CancellationToken)
    state: CompletionState = CompletionState.TRIGGERED
    should_provide: bool = True
    task: Optional[asyncio.Task] = None


class CompletionOrchestrator:
    """Single-flight driver from trigger to inserted text."""

    def __init__(
        self,
        config: AppConfig,
        assembler: ContextAssembler,
        backend: CompletionBackend,
        host: EditorHost,
        event_bus: Optional[EventBus] = None,
        cache: Optional[ResultCache] = None,
    ):
        self.config = config
        self.assembler = assembler
        self.backend = backend
        self.host = host
        self.event_bus = event_bus or EventBus()
        self.cache = cache
        self._request: Optional[RequestState] = None
        self._inserting = False
        self.last_state = CompletionState.IDLE

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        host: EditorHost,
        reference_source: Optional[CurrentReferenceSource] = None,
        event_bus: Optional[EventBus] = None,
    ) -> "CompletionOrchestrator":
        """Wire cache, similarity client, assembler and backend from settings."""
        cache = ResultCache(
            ttl=config.similarity.cache_ttl_seconds,
            sweep_interval=config.similarity.sweep_interval_seconds,
        )
        assembler = ContextAssembler(
            build_similarity_client(config.similarity, cache),
            reference_source=reference_source,
            host=host,
        )
        return cls(
            config,
            assembler,
            CompletionBackend(config.llm),
            host,
            event_bus=event_bus,
            cache=cache,
        )

    @property
    def state(self) -> CompletionState:
        if self._request is None:
            return CompletionState.IDLE
        return self._request.state

    @property
    def is_busy(self) -> bool:
        return self._request is not None

    # ------------------------------------------------------------------
    # Host entry points
    # ------------------------------------------------------------------

    async def trigger(self, document: DocumentSnapshot, position: Position) -> Optional[str]:
        """Start a completion for the verse at ``position``.

        Returns the inserted text, or None if the request was rejected,
        cancelled or failed.
        """
        if self._request is not None:
            logger.info("completion_rejected", active=self._request.request_id)
            self.host.show_info(BUSY_NOTICE)
            self._emit(REJECTED, {"active_request": self._request.request_id})
            return None

        request = RequestState(request_id=uuid.uuid4().hex[:12])
        self._request = request
        self._emit(STATE_CHANGED, {"state": str(request.state)}, request)
        return await self.provide_inline_completion(document, position)

    async def provide_inline_completion(
        self, document: DocumentSnapshot, position: Position
    ) -> Optional[str]:
        """Run the pending request once. Later calls for the same request are no-ops."""
        request = self._request
        if request is None or not request.should_provide:
            return None
        request.should_provide = False

        task = asyncio.ensure_future(self._run(request, document, position))
        request.task = task
        request.token.on_cancel(task.cancel)
        try:
            return await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                # The caller itself is being cancelled
                request.token.cancel("interrupted")
                self._cancelled(request)
                self._end(request)
                raise
            if request.token.cancelled and task.cancelled():
                # Edited before the task got to run
                self._cancelled(request)
                self._end(request)
                return None
            raise

    def on_document_changed(self, is_own_insertion: bool = False) -> bool:
        """Cancel the active request after a user edit.

        Returns True if a request was cancelled.
        """
        if is_own_insertion or self._inserting or self._request is None:
            return False
        request = self._request
        logger.info("completion_cancel_requested", request_id=request.request_id, state=str(request.state))
        request.token.cancel("document changed")
        return True

    def on_config_changed(self, config: AppConfig) -> None:
        """Apply new settings and release any active request."""
        if config.similarity_signature() != self.config.similarity_signature() and self.cache is not None:
            self.cache.invalidate()
        if config.similarity != self.config.similarity and self.cache is not None:
            self.assembler.similarity = build_similarity_client(config.similarity, self.cache)
        self.backend.reconfigure(config.llm)
        self.assembler.reset()
        self.config = config

        request = self._request
        if request is not None:
            request.token.cancel("configuration changed")
            self._cancelled(request)
            self._end(request)
        logger.info("config_applied", project_dir=str(config.project_dir))

    # ------------------------------------------------------------------
    # Request lifecycle
    # ------------------------------------------------------------------

    async def _run(
        self, request: RequestState, document: DocumentSnapshot, position: Position
    ) -> Optional[str]:
        token = request.token
        with request_context(request_id=request.request_id):
            self.host.set_busy(True)
            try:
                self.config.validate_for_completion()

                self._transition(request, CompletionState.ASSEMBLING)
                bundle = await self.assembler.assemble(document, position, self.config, token)
                token.raise_if_cancelled()

                messages = build_verse_messages(bundle)
                if self.config.completion.dump_messages:
                    await asyncio.to_thread(self._dump_messages, messages)

                self._transition(request, CompletionState.REQUESTING)
                raw = await self.backend.complete(messages)
                token.raise_if_cancelled()

                text = format_completion_response(raw, bundle.current_verse)
                if not text.strip():
                    raise BackendFailureError("Completion was empty after formatting")

                self._transition(request, CompletionState.COMPLETED)
                self._insert(text)
                self._emit(COMPLETED, {"ref": bundle.verse_ref, "text": text}, request)
                logger.info("completion_inserted", ref=bundle.verse_ref, chars=len(text))
                return text

            except (RequestCancelledError, asyncio.CancelledError):
                cancelled_by_edit = token.cancelled
                self._cancelled(request)
                if not cancelled_by_edit:
                    token.cancel("interrupted")
                    raise
                return None

            except (ConfigurationInvalidError, NotFoundError, BackendFailureError) as e:
                self._fail(request, str(e))
                return None

            except Exception as e:
                logger.exception("completion_crashed", error=str(e))
                self._fail(request, f"Unexpected error: {e}")
                return None

            finally:
                self._end(request)

    def _insert(self, text: str) -> None:
        self._inserting = True
        try:
            self.host.insert_text(text)
        finally:
            self._inserting = False

    def _fail(self, request: RequestState, message: str) -> None:
        self._transition(request, CompletionState.FAILED)
        self._emit(FAILED, {"error": message}, request)
        logger.warning("completion_failed", error=message)
        self.host.show_error(f"Verse completion failed: {message}")

    def _cancelled(self, request: RequestState) -> None:
        reason = request.token.reason or "interrupted"
        if self._transition(request, CompletionState.CANCELLED):
            self._emit(CANCELLED, {"reason": reason}, request)
            logger.info("completion_cancelled", reason=reason)

    def _transition(self, request: RequestState, state: CompletionState) -> bool:
        """Move ``request`` to ``state``. Terminal states are final."""
        if request.state in TERMINAL_STATES:
            return False
        logger.debug("completion_state", old=str(request.state), new=str(state))
        request.state = state
        self.last_state = state
        self._emit(STATE_CHANGED, {"state": str(state)}, request)
        return True

    def _end(self, request: RequestState) -> None:
        """Release the single-flight slot. Safe to call more than once."""
        if self._request is not request:
            return
        self._request = None
        self.host.set_busy(False)
        self._emit(STATE_CHANGED, {"state": str(CompletionState.IDLE)}, request)

    def _emit(self, event_type: str, data: dict, request: Optional[RequestState] = None) -> None:
        self.event_bus.emit(
            CompletionEvent(
                type=event_type,
                data=data,
                request_id=request.request_id if request else None,
            )
        )

    def _dump_messages(self, messages: list[dict[str, str]]) -> None:
        path = Path(self.config.project_dir) / MESSAGES_DUMP_FILE
        body = "\n\n".join(f"[{m['role']}]\n{m['content']}" for m in messages)
        try:
            path.write_text(body, encoding="utf-8")
        except OSError as e:
            logger.warning("messages_dump_failed", path=str(path), error=str(e))

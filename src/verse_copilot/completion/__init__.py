"""Prompt building, backend calls and the completion request lifecycle."""

from verse_copilot.completion.backend import STOP_SEQUENCES, CompletionBackend
from verse_copilot.completion.formatting import format_completion_response
from verse_copilot.completion.orchestrator import CompletionOrchestrator, CompletionState
from verse_copilot.completion.prompts import build_verse_messages

__all__ = [
    "STOP_SEQUENCES",
    "CompletionBackend",
    "CompletionOrchestrator",
    "CompletionState",
    "build_verse_messages",
    "format_completion_response",
]

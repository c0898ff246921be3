"""Editor document snapshots and sources of the reference under the cursor."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Protocol

import structlog

from verse_copilot.scripture.references import VerseRef, parse_reference, reference_at_line_start

logger = structlog.get_logger()


@dataclass(frozen=True)
class Position:
    """Zero-based cursor position."""

    line: int
    character: int


@dataclass(frozen=True)
class DocumentSnapshot:
    """Immutable copy of the editor document taken when a request starts."""

    text: str
    path: Optional[Path] = None
    version: int = 0

    def lines(self) -> list[str]:
        return self.text.splitlines()

    def line_text(self, line: int) -> str:
        lines = self.lines()
        return lines[line] if 0 <= line < len(lines) else ""

    def text_before(self, position: Position) -> str:
        """Everything from the document start up to the cursor."""
        raw_lines = self.text.splitlines(keepends=True)
        line = min(max(position.line, 0), len(raw_lines))
        head = "".join(raw_lines[:line])
        if line < len(raw_lines):
            current = raw_lines[line].rstrip("\r\n")
            head += current[: max(position.character, 0)]
        return head


class CurrentReferenceSource(Protocol):
    """Something that knows which verse the user is editing."""

    async def current_reference(
        self, document: DocumentSnapshot, position: Position
    ) -> Optional[VerseRef]:
        ...


class NoReferenceSource:
    """No provider available."""

    async def current_reference(
        self, document: DocumentSnapshot, position: Position
    ) -> Optional[VerseRef]:
        return None


class CursorLineReferenceSource:
    """Read the reference from the document itself.

    The verse under edit is the nearest line, at or above the cursor, that
    starts with a reference.
    """

    async def current_reference(
        self, document: DocumentSnapshot, position: Position
    ) -> Optional[VerseRef]:
        lines = document.lines()
        for index in range(min(position.line, len(lines) - 1), -1, -1):
            ref = reference_at_line_start(lines[index])
            if ref is not None:
                return ref
        return None


class SharedStateReferenceSource:
    """Reference published by another tool through a shared state store.

    ``get_state`` is the store's accessor; it is called with the key
    ``"verseRef"`` and returns an object with a ``verseRef`` field.
    """

    def __init__(self, get_state: Callable[[str], Awaitable[Any]]):
        self._get_state = get_state

    async def current_reference(
        self, document: DocumentSnapshot, position: Position
    ) -> Optional[VerseRef]:
        try:
            state = await self._get_state("verseRef")
        except Exception as e:
            logger.warning("shared_state_unavailable", error=str(e))
            return None
        value = state.get("verseRef") if isinstance(state, dict) else None
        return parse_reference(value) if isinstance(value, str) else None


class FirstAvailableReferenceSource:
    """Ask several sources in order and use the first answer."""

    def __init__(self, *sources: CurrentReferenceSource):
        self.sources = sources

    async def current_reference(
        self, document: DocumentSnapshot, position: Position
    ) -> Optional[VerseRef]:
        for source in self.sources:
            ref = await source.current_reference(document, position)
            if ref is not None:
                return ref
        return None

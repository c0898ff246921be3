"""Read-only index over a line-oriented source corpus.

Each line of the corpus starts with its reference followed by a space and the
verse text, e.g. ``GEN 1:1 In the beginning God created...``. Corpora are
third-party text: lines may be missing, reordered or malformed, so every
lookup degrades to "not found" or 0 instead of raising on bad input.
"""

import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import structlog

from verse_copilot.errors import NotFoundError
from verse_copilot.scripture.references import VerseRef, chapter_prefix
from verse_copilot.utils.encoding import read_text

logger = structlog.get_logger()


@dataclass(frozen=True)
class FileIdentity:
    """What makes two reads of a path the same file."""

    path: str
    size: int
    mtime_ns: int
    inode: int

    @classmethod
    def of(cls, path: Path) -> "FileIdentity":
        stat = os.stat(path)
        return cls(
            path=str(path.resolve()),
            size=stat.st_size,
            mtime_ns=stat.st_mtime_ns,
            inode=stat.st_ino,
        )


def _prefix_matches(line: str, prefix: str) -> bool:
    """True if ``line`` starts with the whole reference ``prefix``.

    ``GEN 1:1`` must not match a line for ``GEN 1:10``.
    """
    if not line.startswith(prefix):
        return False
    return len(line) == len(prefix) or line[len(prefix)].isspace()


def _number_after(line: str, start: int, stop_char: Optional[str]) -> Optional[int]:
    """Parse the run of digits at ``line[start:]`` up to ``stop_char``."""
    end = start
    while end < len(line) and line[end].isdigit():
        end += 1
    if end == start:
        return None
    if stop_char is not None and (end >= len(line) or line[end] != stop_char):
        return None
    return int(line[start:end])


def _find_line_offset(text: str, prefix: str, after: int = 0) -> Optional[int]:
    """Character offset of the first line at or after ``after`` starting with ``prefix``."""
    offset = 0
    for raw in text.splitlines(keepends=True):
        if offset >= after and _prefix_matches(raw.rstrip("\r\n"), prefix):
            return offset
        offset += len(raw)
    return None


class CorpusIndex:
    """Verse, chapter and bound lookups over one corpus file.

    Lines are cached per session and keyed on the file identity, so an edited
    or replaced corpus is re-read on the next lookup.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._identity: Optional[FileIdentity] = None
        self._text: str = ""
        self._lines: list[str] = []
        self._lock = threading.Lock()

    def _snapshot(self) -> tuple[str, list[str]]:
        """Current (text, lines), re-reading the file if its identity changed."""
        try:
            identity = FileIdentity.of(self.path)
        except OSError as e:
            raise NotFoundError(f"Source corpus not readable: {self.path}") from e

        with self._lock:
            if identity != self._identity:
                text = read_text(self.path)
                self._text = text
                self._lines = text.splitlines()
                self._identity = identity
                logger.debug("corpus_loaded", path=str(self.path), lines=len(self._lines))
            return self._text, self._lines

    def refresh(self) -> None:
        """Drop cached contents; the next lookup re-reads the file."""
        with self._lock:
            self._identity = None
            self._text = ""
            self._lines = []

    @property
    def lines(self) -> list[str]:
        return self._snapshot()[1]

    def find_unit(self, ref: VerseRef) -> str:
        """Return the full corpus line for ``ref``, reference included.

        Raises:
            NotFoundError: if no line starts with the reference
        """
        prefix = str(ref)
        for line in self.lines:
            if _prefix_matches(line, prefix):
                return line.strip()
        raise NotFoundError(f"Verse {prefix} not found in {self.path.name}")

    def find_chapter_text(self, book: str, chapter: int) -> str:
        """Return the text from verse 1 of a chapter up to verse 1 of the next.

        The last chapter of a book has no following marker, so the text then
        runs to the end of the corpus.

        Raises:
            NotFoundError: if the chapter's first verse is absent
        """
        text, _ = self._snapshot()
        start = _find_line_offset(text, f"{book} {chapter}:1")
        if start is None:
            raise NotFoundError(f"Chapter start not found for {book} {chapter}")

        end = _find_line_offset(text, f"{book} {chapter + 1}:1", after=start)
        return text[start:end] if end is not None else text[start:]

    def _lines_or_empty(self) -> list[str]:
        try:
            return self.lines
        except NotFoundError as e:
            logger.warning("corpus_unreadable", path=str(self.path), error=str(e))
            return []

    def last_verse(self, book: str, chapter: int) -> int:
        """Highest verse number of a chapter, 0 if the chapter is absent."""
        prefix = chapter_prefix(book, chapter)
        last = 0
        for line in self._lines_or_empty():
            if not line.startswith(prefix):
                continue
            verse = _number_after(line, len(prefix), None)
            if verse is not None:
                last = max(last, verse)
        return last

    def last_chapter(self, book: str) -> int:
        """Highest chapter number of a book, 0 if the book is absent."""
        prefix = f"{book} "
        last = 0
        for line in self._lines_or_empty():
            if not line.startswith(prefix):
                continue
            chapter = _number_after(line, len(prefix), ":")
            if chapter is not None:
                last = max(last, chapter)
        return last

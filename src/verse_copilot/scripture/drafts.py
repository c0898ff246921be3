"""Target-side draft documents, one notebook per book.

A draft lives at ``<project>/files/target/<BOOK>.codex`` and is a JSON
notebook whose ``cells`` hold one chapter each. Verse lines inside a chapter
cell start with their reference, exactly like corpus lines.
"""

import json
from pathlib import Path
from typing import Any, Optional

import structlog

from verse_copilot.scripture.references import VerseRef, chapter_prefix
from verse_copilot.utils.encoding import read_text

logger = structlog.get_logger()

DRAFT_SUFFIX = ".codex"
MARKUP_CELL_KIND = 2
SCRIPTURE_LANGUAGE = "scripture"


def _is_chapter_cell(cell: Any, prefix: str) -> bool:
    if not isinstance(cell, dict):
        return False
    value = cell.get("value")
    return (
        cell.get("kind") == MARKUP_CELL_KIND
        and cell.get("language") == SCRIPTURE_LANGUAGE
        and isinstance(value, str)
        and prefix in value
    )


class DraftStore:
    """Lookup of already-translated verses in the project's drafts."""

    def __init__(self, target_dir: Path):
        self.target_dir = Path(target_dir)

    @classmethod
    def for_project(cls, project_dir: Path) -> "DraftStore":
        return cls(Path(project_dir) / "files" / "target")

    def draft_path(self, book: str) -> Path:
        return self.target_dir / f"{book}{DRAFT_SUFFIX}"

    def load_cells(self, book: str) -> list[Any]:
        """Return the cells of a book's draft, empty if the draft is missing or malformed."""
        path = self.draft_path(book)
        if not path.exists():
            return []
        try:
            notebook = json.loads(read_text(path))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("draft_unreadable", path=str(path), error=str(e))
            return []
        cells = notebook.get("cells") if isinstance(notebook, dict) else None
        return cells if isinstance(cells, list) else []

    def find_translated_unit(self, ref: VerseRef) -> Optional[str]:
        """Return the translated verse line for ``ref``, or None if untranslated.

        A line holding only its reference has no translated words yet and is
        reported as untranslated.
        """
        prefix = chapter_prefix(ref.book, ref.chapter)
        cell = next((c for c in self.load_cells(ref.book) if _is_chapter_cell(c, prefix)), None)
        if cell is None:
            logger.debug("draft_chapter_missing", book=ref.book, chapter=ref.chapter)
            return None

        verse_prefix = str(ref)
        for line in cell["value"].splitlines():
            if not line.startswith(verse_prefix):
                continue
            rest = line[len(verse_prefix):]
            if rest and not rest[0].isspace():
                # GEN 1:1 must not pick up GEN 1:10
                continue
            translated = line.strip()
            if translated == verse_prefix:
                return None
            return translated
        return None

"""Reference parsing, source corpus and draft lookups."""

from verse_copilot.scripture.corpus import CorpusIndex
from verse_copilot.scripture.drafts import DraftStore
from verse_copilot.scripture.references import (
    BOOK_CATALOG,
    VerseRef,
    format_reference,
    next_book,
    parse_reference,
    previous_book,
)

__all__ = [
    "BOOK_CATALOG",
    "CorpusIndex",
    "DraftStore",
    "VerseRef",
    "format_reference",
    "next_book",
    "parse_reference",
    "previous_book",
]

"""Verse references and the ordered book catalog.

A reference is the canonical ``"BOOK CH:VS"`` string that prefixes every line
of a source corpus and every verse line of a draft document. The catalog order
defines which book comes before or after another when a neighborhood rolls
over a book boundary.
"""

import re
from dataclasses import dataclass
from typing import Optional

# USFM book codes in canonical Protestant order.
BOOK_CATALOG: tuple[str, ...] = (
    # Pentateuch
    "GEN", "EXO", "LEV", "NUM", "DEU",
    # History
    "JOS", "JDG", "RUT", "1SA", "2SA", "1KI", "2KI", "1CH", "2CH", "EZR", "NEH", "EST",
    # Poetry/Wisdom
    "JOB", "PSA", "PRO", "ECC", "SNG",
    # Major Prophets
    "ISA", "JER", "LAM", "EZK", "DAN",
    # Minor Prophets
    "HOS", "JOL", "AMO", "OBA", "JON", "MIC", "NAM", "HAB", "ZEP", "HAG", "ZEC", "MAL",
    # Gospels/Acts
    "MAT", "MRK", "LUK", "JHN", "ACT",
    # Epistles
    "ROM", "1CO", "2CO", "GAL", "EPH", "PHP", "COL", "1TH", "2TH", "1TI", "2TI", "TIT",
    "PHM", "HEB", "JAS", "1PE", "2PE", "1JN", "2JN", "3JN", "JUD",
    # Apocalypse
    "REV",
)

_BOOK_INDEX: dict[str, int] = {code: i for i, code in enumerate(BOOK_CATALOG)}

REFERENCE_PATTERN = re.compile(r"^([A-Z0-9]{3})\s(\d+):(\d+)")
# Looser form used to spot a reference at the start of an editor line.
LINE_REFERENCE_PATTERN = re.compile(r"^(\w{3}\s\d+:\d+)")


@dataclass(frozen=True)
class VerseRef:
    """A single verse address."""

    book: str
    chapter: int
    verse: int

    def __str__(self) -> str:
        return format_reference(self)

    @property
    def book_index(self) -> int:
        return _BOOK_INDEX[self.book]

    def sort_key(self) -> tuple[int, int, int]:
        """Chronological ordering key: catalog position, chapter, verse."""
        return (self.book_index, self.chapter, self.verse)

    def __lt__(self, other: "VerseRef") -> bool:
        return self.sort_key() < other.sort_key()

    def __le__(self, other: "VerseRef") -> bool:
        return self.sort_key() <= other.sort_key()

    def __gt__(self, other: "VerseRef") -> bool:
        return self.sort_key() > other.sort_key()

    def __ge__(self, other: "VerseRef") -> bool:
        return self.sort_key() >= other.sort_key()


def parse_reference(text: Optional[str]) -> Optional[VerseRef]:
    """Parse ``"BOOK CH:VS"`` into a VerseRef.

    Returns None for anything that is not a catalog reference. Chapter and
    verse numbers are not range-checked here; the corpus decides what exists.
    """
    if not text:
        return None
    match = REFERENCE_PATTERN.match(text)
    if not match:
        return None
    book, chapter, verse = match.group(1), int(match.group(2)), int(match.group(3))
    if not is_known_book(book) or chapter < 1 or verse < 1:
        return None
    return VerseRef(book=book, chapter=chapter, verse=verse)


def format_reference(ref: VerseRef) -> str:
    """Serialize a reference exactly as corpus lines spell it."""
    return f"{ref.book} {ref.chapter}:{ref.verse}"


def chapter_prefix(book: str, chapter: int) -> str:
    """Prefix shared by every verse line of a chapter, e.g. ``"GEN 1:"``."""
    return f"{book} {chapter}:"


def is_known_book(book: str) -> bool:
    return book in _BOOK_INDEX


def previous_book(book: str) -> Optional[str]:
    """Book before ``book`` in catalog order, or None for the first book."""
    index = _BOOK_INDEX.get(book)
    if index is None or index == 0:
        return None
    return BOOK_CATALOG[index - 1]


def next_book(book: str) -> Optional[str]:
    """Book after ``book`` in catalog order, or None for the last book."""
    index = _BOOK_INDEX.get(book)
    if index is None or index == len(BOOK_CATALOG) - 1:
        return None
    return BOOK_CATALOG[index + 1]


def reference_at_line_start(line: str) -> Optional[VerseRef]:
    """Return the reference that begins an editor line, if any."""
    match = LINE_REFERENCE_PATTERN.match(line.lstrip("\ufeff"))
    if not match:
        return None
    return parse_reference(match.group(1))

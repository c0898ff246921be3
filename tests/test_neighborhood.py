"""Tests for neighborhood expansion across chapter and book boundaries."""

import pytest

from conftest import write_corpus
from verse_copilot.context.neighborhood import NeighborhoodExpander
from verse_copilot.scripture.corpus import CorpusIndex
from verse_copilot.scripture.references import VerseRef, parse_reference


def refs(*texts):
    return [parse_reference(t) for t in texts]


@pytest.fixture
def expander(corpus):
    return NeighborhoodExpander(corpus)


def test_within_chapter(expander):
    assert expander.expand(VerseRef("GEN", 1, 2), 1) == refs("GEN 1:1", "GEN 1:2")


def test_backward_over_chapter_boundary(expander):
    result = expander.expand(VerseRef("GEN", 2, 1), 2)
    assert result == refs("GEN 1:2", "GEN 1:3", "GEN 2:1", "GEN 2:2")
    # Immediately preceding verse is the last verse of the previous chapter
    assert result[result.index(VerseRef("GEN", 2, 1)) - 1] == VerseRef("GEN", 1, 3)


def test_backward_over_book_boundary(expander):
    result = expander.expand(VerseRef("EXO", 1, 1), 2)
    assert result == refs("GEN 2:1", "GEN 2:2", "EXO 1:1", "EXO 1:2")


def test_stops_at_first_book(expander):
    assert expander.expand(VerseRef("GEN", 1, 1), 3) == refs("GEN 1:1", "GEN 1:2")


def test_stops_at_end_of_corpus(expander):
    result = expander.expand(VerseRef("EXO", 1, 2), 4)
    assert result == refs("GEN 1:3", "GEN 2:1", "GEN 2:2", "EXO 1:1", "EXO 1:2")


def test_skips_books_absent_from_corpus(tmp_path):
    lines = ["GEN 1:1 a", "GEN 1:2 b", "LEV 1:1 c", "LEV 1:2 d"]
    expander = NeighborhoodExpander(CorpusIndex(write_corpus(tmp_path / "c.bible", lines)))
    assert expander.expand(VerseRef("LEV", 1, 1), 1) == refs("GEN 1:2", "LEV 1:1")
    assert expander.expand(VerseRef("GEN", 1, 2), 2) == refs("GEN 1:1", "GEN 1:2", "LEV 1:1")


def test_skips_chapters_absent_from_corpus(tmp_path):
    lines = ["GEN 1:1 a", "GEN 1:2 b", "GEN 3:1 c"]
    expander = NeighborhoodExpander(CorpusIndex(write_corpus(tmp_path / "c.bible", lines)))
    assert expander.expand(VerseRef("GEN", 3, 1), 1) == refs("GEN 1:2", "GEN 3:1")
    assert expander.expand(VerseRef("GEN", 1, 2), 2) == refs("GEN 1:1", "GEN 1:2", "GEN 3:1")


@pytest.mark.parametrize("pivot", ["GEN 1:1", "GEN 1:3", "GEN 2:1", "EXO 1:1", "EXO 1:2"])
@pytest.mark.parametrize("window", [0, 1, 2, 3, 7])
def test_result_is_strictly_increasing_and_bounded(expander, pivot, window):
    ref = parse_reference(pivot)
    result = expander.expand(ref, window)
    assert result.count(ref) == 1
    assert all(a < b for a, b in zip(result, result[1:]))
    assert len(result) <= window + 1 + window // 2

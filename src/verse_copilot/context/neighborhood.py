"""Neighboring verse references across chapter and book boundaries."""

from typing import Optional

from verse_copilot.scripture.corpus import CorpusIndex
from verse_copilot.scripture.references import VerseRef, next_book, previous_book


class NeighborhoodExpander:
    """Compute the verses around a pivot using the corpus for bounds.

    More context is taken before the pivot than after it: following verses
    are usually still untranslated.
    """

    def __init__(self, corpus: CorpusIndex):
        self.corpus = corpus

    def expand(self, ref: VerseRef, window: int) -> list[VerseRef]:
        """Return ``window`` preceding refs, ``ref``, then ``window // 2`` following refs.

        The result is in chronological order. It is shorter than requested
        only when the first or last book of the catalog is reached.
        """
        before: list[VerseRef] = []
        current = ref
        for _ in range(max(window, 0)):
            step = self._step_back(current)
            if step is None:
                break
            before.append(step)
            current = step
        before.reverse()

        after: list[VerseRef] = []
        current = ref
        for _ in range(max(window, 0) // 2):
            step = self._step_forward(current)
            if step is None:
                break
            after.append(step)
            current = step

        return [*before, ref, *after]

    def _step_back(self, ref: VerseRef) -> Optional[VerseRef]:
        book, chapter, verse = ref.book, ref.chapter, ref.verse - 1
        if verse >= 1:
            return VerseRef(book, chapter, verse)

        chapter -= 1
        while True:
            if chapter < 1:
                book = previous_book(book)
                if book is None:
                    return None
                # An absent book has last_chapter 0 and is skipped
                chapter = self.corpus.last_chapter(book)
                continue
            last = self.corpus.last_verse(book, chapter)
            if last >= 1:
                return VerseRef(book, chapter, last)
            chapter -= 1

    def _step_forward(self, ref: VerseRef) -> Optional[VerseRef]:
        book, chapter, verse = ref.book, ref.chapter, ref.verse + 1
        if verse <= self.corpus.last_verse(book, chapter):
            return VerseRef(book, chapter, verse)

        chapter += 1
        while True:
            if chapter > self.corpus.last_chapter(book):
                book = next_book(book)
                if book is None:
                    return None
                chapter = 1
                continue
            if self.corpus.last_verse(book, chapter) >= 1:
                return VerseRef(book, chapter, 1)
            chapter += 1

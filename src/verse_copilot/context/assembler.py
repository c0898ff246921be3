"""Assembly of the context bundle for one completion request.

Every signal the prompt uses is fetched on its own and comes back as
``Ok(value)`` or ``Degraded(placeholder, reason)``. A degraded signal is
recorded in ``missing_resources`` and never blocks the completion.
"""

import asyncio
import re
from pathlib import Path
from typing import Any, Awaitable, Optional

import structlog

from verse_copilot.cancellation import CancellationToken
from verse_copilot.config import AppConfig, context_size_counts
from verse_copilot.context.bundle import (
    ADDITIONAL_RESOURCES,
    CURRENT_VERSE,
    SIMILAR_PAIRS,
    SOURCE_CHAPTER,
    SOURCE_LANGUAGE,
    SOURCE_TEXT_FILE,
    SOURCE_VERSE,
    SURROUNDING_CONTEXT,
    ContextBundle,
    Degraded,
    FetchResult,
    Ok,
    VersePair,
    degraded,
)
from verse_copilot.context.document import (
    CurrentReferenceSource,
    CursorLineReferenceSource,
    DocumentSnapshot,
    Position,
)
from verse_copilot.context.neighborhood import NeighborhoodExpander
from verse_copilot.context.resources import scan_additional_resources
from verse_copilot.context.similarity import CachedSimilarityClient
from verse_copilot.errors import NotFoundError, RequestCancelledError
from verse_copilot.host import EditorHost
from verse_copilot.scripture.corpus import CorpusIndex
from verse_copilot.scripture.drafts import DraftStore
from verse_copilot.scripture.project import (
    language_name,
    read_metadata,
    require_project_dir,
    resolve_source_text,
)
from verse_copilot.scripture.references import VerseRef

logger = structlog.get_logger()

_WHITESPACE = re.compile(r"\s+")


def extract_current_verse(text_before_cursor: str, ref: VerseRef) -> str:
    """The partial translation: the reference and everything typed after it.

    Whitespace is collapsed first, so the result is a single line.
    """
    text = _WHITESPACE.sub(" ", text_before_cursor).strip()
    prefix = str(ref)
    position = text.rfind(prefix)
    if position == -1:
        return ""
    return text[position:]


def _strip_reference(line: str, ref: VerseRef) -> str:
    prefix = str(ref)
    return line[len(prefix):].strip() if line.startswith(prefix) else line.strip()


class ContextAssembler:
    """Build one immutable ContextBundle per completion request."""

    def __init__(
        self,
        similarity: CachedSimilarityClient,
        reference_source: Optional[CurrentReferenceSource] = None,
        host: Optional[EditorHost] = None,
    ):
        self.similarity = similarity
        self.reference_source = reference_source or CursorLineReferenceSource()
        self.host = host
        self._corpora: dict[Path, CorpusIndex] = {}

    def corpus_for(self, path: Path) -> CorpusIndex:
        """Session-cached index for a corpus file."""
        path = Path(path)
        if path not in self._corpora:
            self._corpora[path] = CorpusIndex(path)
        return self._corpora[path]

    def reset(self) -> None:
        """Forget cached corpus indexes."""
        for corpus in self._corpora.values():
            corpus.refresh()
        self._corpora.clear()

    async def assemble(
        self,
        document: DocumentSnapshot,
        position: Position,
        config: AppConfig,
        token: Optional[CancellationToken] = None,
    ) -> ContextBundle:
        """Gather every signal for the verse under the cursor.

        Raises:
            ConfigurationInvalidError: if the project directory is unusable
            NotFoundError: if no verse reference can be found at the cursor
            RequestCancelledError: if ``token`` is cancelled meanwhile
        """
        token = token or CancellationToken()
        project_dir = require_project_dir(config.project_dir)

        ref = await self.reference_source.current_reference(document, position)
        token.raise_if_cancelled()
        if ref is None:
            raise NotFoundError("No verse reference found at the cursor")

        window, pair_count = context_size_counts(config.completion.context_size)
        source_path = resolve_source_text(project_dir, config.completion.source_text)
        corpus = self.corpus_for(source_path) if source_path else None
        drafts = DraftStore.for_project(project_dir)

        logger.info("assembling_context", ref=str(ref), context_size=config.completion.context_size)

        (
            language,
            source_verse,
            current_verse,
            source_chapter,
            surrounding,
            similar,
            resources,
        ) = await asyncio.gather(
            self._fetch(SOURCE_LANGUAGE, asyncio.to_thread(self._source_language, project_dir)),
            self._fetch(SOURCE_VERSE, self._source_verse(corpus, ref)),
            self._fetch(CURRENT_VERSE, self._current_verse(document, position, ref)),
            self._fetch(SOURCE_CHAPTER, self._source_chapter(corpus, ref)),
            self._fetch(SURROUNDING_CONTEXT, self._surrounding(corpus, drafts, ref, window)),
            self._fetch(SIMILAR_PAIRS, self.similarity.get_similar(ref, pair_count, token)),
            self._fetch(ADDITIONAL_RESOURCES, self._resources(config, project_dir, ref)),
        )
        token.raise_if_cancelled()

        results: dict[str, FetchResult[Any]] = {
            SOURCE_LANGUAGE: language,
            SOURCE_VERSE: source_verse,
            CURRENT_VERSE: current_verse,
            SOURCE_CHAPTER: source_chapter,
            SURROUNDING_CONTEXT: surrounding,
            SIMILAR_PAIRS: similar,
            ADDITIONAL_RESOURCES: resources,
        }
        missing = {name for name, result in results.items() if isinstance(result, Degraded)}
        if corpus is None:
            missing.add(SOURCE_TEXT_FILE)

        bundle = ContextBundle(
            verse_ref=str(ref),
            source_language_name=_value(language),
            source_verse=_value(source_verse),
            current_verse=_value(current_verse),
            similar_pairs=_value(similar),
            source_chapter=_value(source_chapter),
            surrounding_context=_value(surrounding),
            other_resources=_value(resources),
            missing_resources=frozenset(missing),
        )

        if bundle.is_degraded:
            logger.warning("context_degraded", ref=str(ref), missing=sorted(missing))
            if self.host is not None:
                self.host.show_warning(bundle.advisory())
        return bundle

    async def _fetch(self, resource: str, pending: Awaitable[Any]) -> FetchResult[Any]:
        """Await one sub-resource, turning any failure into a placeholder."""
        try:
            return Ok(await pending)
        except RequestCancelledError:
            raise
        except Exception as e:
            logger.warning("resource_unavailable", resource=resource, error=str(e))
            return degraded(resource, str(e))

    @staticmethod
    def _require_corpus(corpus: Optional[CorpusIndex]) -> CorpusIndex:
        if corpus is None:
            raise NotFoundError("Source text file not found")
        return corpus

    async def _source_verse(self, corpus: Optional[CorpusIndex], ref: VerseRef) -> str:
        return await asyncio.to_thread(self._require_corpus(corpus).find_unit, ref)

    async def _source_chapter(self, corpus: Optional[CorpusIndex], ref: VerseRef) -> str:
        return await asyncio.to_thread(
            self._require_corpus(corpus).find_chapter_text, ref.book, ref.chapter
        )

    async def _surrounding(
        self, corpus: Optional[CorpusIndex], drafts: DraftStore, ref: VerseRef, window: int
    ) -> list[VersePair]:
        return await asyncio.to_thread(
            self._surrounding_pairs, self._require_corpus(corpus), drafts, ref, window
        )

    async def _current_verse(
        self, document: DocumentSnapshot, position: Position, ref: VerseRef
    ) -> str:
        return extract_current_verse(document.text_before(position), ref)

    async def _resources(self, config: AppConfig, project_dir: Path, ref: VerseRef) -> str:
        if not config.completion.resources_dir:
            return ""
        directory = Path(config.completion.resources_dir)
        if not directory.is_absolute():
            directory = project_dir / directory
        return await asyncio.to_thread(scan_additional_resources, directory, ref)

    @staticmethod
    def _source_language(project_dir: Path) -> str:
        return language_name(read_metadata(project_dir), "source")

    @staticmethod
    def _surrounding_pairs(
        corpus: CorpusIndex, drafts: DraftStore, ref: VerseRef, window: int
    ) -> list[VersePair]:
        """Neighbors that have both a source line and a translated draft line."""
        pairs: list[VersePair] = []
        for neighbor in NeighborhoodExpander(corpus).expand(ref, window):
            if neighbor == ref:
                continue
            try:
                source = corpus.find_unit(neighbor)
            except NotFoundError:
                continue
            target = drafts.find_translated_unit(neighbor)
            if target is None:
                continue
            pairs.append(
                VersePair(
                    ref=str(neighbor),
                    source=_strip_reference(source, neighbor),
                    target=_strip_reference(target, neighbor),
                )
            )
        return pairs


def _value(result: FetchResult[Any]) -> Any:
    return result.value if isinstance(result, Ok) else result.placeholder

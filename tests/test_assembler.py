"""Tests for context bundle assembly."""

import json

import pytest

from verse_copilot.cancellation import CancellationToken
from verse_copilot.context.assembler import ContextAssembler, extract_current_verse
from verse_copilot.context.bundle import (
    ADDITIONAL_RESOURCES,
    PLACEHOLDERS,
    SIMILAR_PAIRS,
    SOURCE_LANGUAGE,
    SOURCE_TEXT_FILE,
    SOURCE_VERSE,
    SURROUNDING_CONTEXT,
)
from verse_copilot.context.cache import ResultCache
from verse_copilot.context.document import (
    CursorLineReferenceSource,
    DocumentSnapshot,
    FirstAvailableReferenceSource,
    NoReferenceSource,
    Position,
    SharedStateReferenceSource,
)
from verse_copilot.context.similarity import (
    CachedSimilarityClient,
    NullSimilarityBackend,
    SimilarityClient,
)
from verse_copilot.errors import ConfigurationInvalidError, NotFoundError, RequestCancelledError
from verse_copilot.host import RecordingHost
from verse_copilot.scripture.references import VerseRef

PAIRS = [{"ref": "GEN 1:2", "source": "Now the earth...", "target": "The land had no shape."}]

DOCUMENT = DocumentSnapshot(
    text="GEN 1:1 At the start God made the sky and the land.\nGEN 1:2 The land had no shape.\nGEN 1:3 Then God"
)
CURSOR = Position(line=2, character=len("GEN 1:3 Then God"))


class StaticBackend:
    def __init__(self, results=None):
        self.results = results if results is not None else PAIRS

    async def get_similar_drafts(self, ref, limit):
        return self.results


def make_assembler(backend=None, host=None, reference_source=None):
    similarity = CachedSimilarityClient(SimilarityClient(backend or StaticBackend(), timeout=1), ResultCache())
    return ContextAssembler(similarity, reference_source=reference_source, host=host)


class TestExtractCurrentVerse:
    """Test extract_current_verse."""

    def test_from_last_occurrence_of_reference(self):
        text = "GEN 1:3 earlier mention\nGEN 1:3   Then\n  God"
        assert extract_current_verse(text, VerseRef("GEN", 1, 3)) == "GEN 1:3 Then God"

    def test_reference_absent(self):
        assert extract_current_verse("no refs here", VerseRef("GEN", 1, 3)) == ""


class TestAssemble:
    """Test ContextAssembler.assemble."""

    @pytest.mark.asyncio
    async def test_complete_bundle(self, app_config):
        bundle = await make_assembler().assemble(DOCUMENT, CURSOR, app_config)

        assert bundle.verse_ref == "GEN 1:3"
        assert bundle.source_language_name == "English"
        assert bundle.source_verse == "GEN 1:3 And God said, Let there be light."
        assert bundle.current_verse == "GEN 1:3 Then God"
        assert bundle.similar_pairs == PAIRS
        assert bundle.source_chapter.startswith("GEN 1:1 In the beginning")
        assert bundle.other_resources == ""
        assert bundle.missing_resources == frozenset()

    @pytest.mark.asyncio
    async def test_surrounding_context_only_has_translated_neighbors(self, app_config):
        bundle = await make_assembler().assemble(DOCUMENT, CURSOR, app_config)

        # small tier: 3 before, 1 after; GEN 2:1 after the pivot is translated too
        assert [p.ref for p in bundle.surrounding_context] == ["GEN 1:1", "GEN 1:2", "GEN 2:1"]
        first = bundle.surrounding_context[0]
        assert first.source == "In the beginning God created the heavens and the earth."
        assert first.target == "At the start God made the sky and the land."

    @pytest.mark.asyncio
    async def test_missing_similarity_service_degrades(self, app_config):
        host = RecordingHost()
        assembler = make_assembler(backend=NullSimilarityBackend(), host=host)

        bundle = await assembler.assemble(DOCUMENT, CURSOR, app_config)

        assert bundle.similar_pairs == PLACEHOLDERS[SIMILAR_PAIRS]
        assert SIMILAR_PAIRS in bundle.missing_resources
        assert bundle.source_verse.startswith("GEN 1:3")
        assert host.warnings == [bundle.advisory()]
        assert "similar pairs" in host.warnings[0]

    @pytest.mark.asyncio
    async def test_missing_source_text_degrades_corpus_signals(self, app_config, project_dir):
        (project_dir / ".project" / "sourceTextBibles" / "eng.bible").unlink()

        bundle = await make_assembler().assemble(DOCUMENT, CURSOR, app_config)

        assert {SOURCE_TEXT_FILE, SOURCE_VERSE, SURROUNDING_CONTEXT} <= bundle.missing_resources
        assert bundle.source_verse == PLACEHOLDERS[SOURCE_VERSE]
        assert bundle.current_verse == "GEN 1:3 Then God"

    @pytest.mark.asyncio
    async def test_missing_metadata_degrades_language(self, app_config, project_dir):
        (project_dir / "metadata.json").unlink()

        bundle = await make_assembler().assemble(DOCUMENT, CURSOR, app_config)

        assert bundle.source_language_name == "Unknown"
        assert SOURCE_LANGUAGE in bundle.missing_resources

    @pytest.mark.asyncio
    async def test_metadata_without_source_language_defaults_silently(self, app_config, project_dir):
        (project_dir / "metadata.json").write_text(
            json.dumps({"languages": [{"refName": "Tok Pisin", "projectStatus": "target"}]}),
            encoding="utf-8",
        )

        bundle = await make_assembler().assemble(DOCUMENT, CURSOR, app_config)

        assert bundle.source_language_name == "Unknown"
        assert SOURCE_LANGUAGE not in bundle.missing_resources

    @pytest.mark.asyncio
    async def test_additional_resources(self, app_config, project_dir):
        resources = project_dir / "resources"
        resources.mkdir()
        (resources / "notes.txt").write_text("GEN 1:3 light: use the word for day\n", encoding="utf-8")
        config = app_config.model_copy(
            update={"completion": app_config.completion.model_copy(update={"resources_dir": "resources"})}
        )

        bundle = await make_assembler().assemble(DOCUMENT, CURSOR, config)

        assert bundle.other_resources == "notes.txt: GEN 1:3 light: use the word for day"

    @pytest.mark.asyncio
    async def test_unlistable_resources_dir_degrades(self, app_config):
        config = app_config.model_copy(
            update={"completion": app_config.completion.model_copy(update={"resources_dir": "absent"})}
        )

        bundle = await make_assembler().assemble(DOCUMENT, CURSOR, config)

        assert ADDITIONAL_RESOURCES in bundle.missing_resources
        assert bundle.other_resources == PLACEHOLDERS[ADDITIONAL_RESOURCES]

    @pytest.mark.asyncio
    async def test_no_reference_at_cursor_fails(self, app_config):
        document = DocumentSnapshot(text="just some prose")
        with pytest.raises(NotFoundError):
            await make_assembler().assemble(document, Position(0, 4), app_config)

    @pytest.mark.asyncio
    async def test_missing_project_dir_fails(self, app_config, tmp_path):
        config = app_config.model_copy(update={"project_dir": tmp_path / "nowhere"})
        with pytest.raises(ConfigurationInvalidError):
            await make_assembler().assemble(DOCUMENT, CURSOR, config)

    @pytest.mark.asyncio
    async def test_cancelled_token_stops_assembly(self, app_config):
        token = CancellationToken()
        token.cancel("document changed")
        with pytest.raises(RequestCancelledError):
            await make_assembler().assemble(DOCUMENT, CURSOR, app_config, token)


class TestReferenceSources:
    """Test injected current-reference sources."""

    @pytest.mark.asyncio
    async def test_shared_state_reference_wins(self, app_config):
        async def get_state(key):
            assert key == "verseRef"
            return {"verseRef": "GEN 1:2"}

        source = SharedStateReferenceSource(get_state)
        bundle = await make_assembler(reference_source=source).assemble(DOCUMENT, CURSOR, app_config)
        assert bundle.verse_ref == "GEN 1:2"

    @pytest.mark.asyncio
    async def test_falls_back_when_shared_state_fails(self):
        async def get_state(key):
            raise RuntimeError("extension not installed")

        source = FirstAvailableReferenceSource(
            SharedStateReferenceSource(get_state), CursorLineReferenceSource()
        )
        assert await source.current_reference(DOCUMENT, CURSOR) == VerseRef("GEN", 1, 3)

    @pytest.mark.asyncio
    async def test_no_reference_source(self):
        assert await NoReferenceSource().current_reference(DOCUMENT, CURSOR) is None

"""Pytest configuration and fixtures."""

import json
from pathlib import Path

import pytest

from verse_copilot.config import AppConfig, CompletionConfig, LLMConfig, SimilarityConfig
from verse_copilot.scripture.corpus import CorpusIndex

CORPUS_LINES = [
    "GEN 1:1 In the beginning God created the heavens and the earth.",
    "GEN 1:2 Now the earth was formless and empty.",
    "GEN 1:3 And God said, Let there be light.",
    "GEN 2:1 Thus the heavens and the earth were completed.",
    "GEN 2:2 By the seventh day God had finished his work.",
    "EXO 1:1 These are the names of the sons of Israel.",
    "EXO 1:2 Reuben, Simeon, Levi and Judah;",
]

GEN_DRAFT_CELLS = [
    {"kind": 1, "language": "markdown", "value": "GEN 1: notes, not scripture"},
    {
        "kind": 2,
        "language": "scripture",
        "value": "GEN 1:1 At the start God made the sky and the land.\n"
        "GEN 1:2 The land had no shape.\n"
        "GEN 1:3",
    },
    {
        "kind": 2,
        "language": "scripture",
        "value": "GEN 2:1 So the sky and the land were finished.\nGEN 2:2",
    },
]

METADATA = {
    "languages": [
        {"refName": "English", "projectStatus": "source"},
        {"refName": "Tok Pisin", "projectStatus": "target"},
    ]
}


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: mark test as integration test")


def write_corpus(path: Path, lines: list[str]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def corpus_path(tmp_path):
    """A small corpus spanning a chapter and a book boundary."""
    return write_corpus(tmp_path / "eng.bible", CORPUS_LINES)


@pytest.fixture
def corpus(corpus_path):
    return CorpusIndex(corpus_path)


@pytest.fixture
def project_dir(tmp_path):
    """A translation project with source text, metadata and a GEN draft."""
    project = tmp_path / "project"
    write_corpus(project / ".project" / "sourceTextBibles" / "eng.bible", CORPUS_LINES)
    (project / "metadata.json").write_text(json.dumps(METADATA), encoding="utf-8")
    target = project / "files" / "target"
    target.mkdir(parents=True)
    (target / "GEN.codex").write_text(json.dumps({"cells": GEN_DRAFT_CELLS}), encoding="utf-8")
    return project


@pytest.fixture
def app_config(project_dir):
    """Complete settings pointing at the fixture project."""
    return AppConfig(
        project_dir=project_dir,
        llm=LLMConfig(
            api_key="sk-test-key-123456",
            base_url="http://llm.invalid/v1",
            model="test-model",
            max_tokens=256,
            temperature=0.5,
        ),
        completion=CompletionConfig(
            context_size="small", source_text="", resources_dir="", dump_messages=False
        ),
        similarity=SimilarityConfig(url="", timeout_seconds=0.5),
    )

"""Tests for the additional-resources scan."""

import pytest

from verse_copilot.context.resources import scan_additional_resources
from verse_copilot.errors import UnavailableError
from verse_copilot.scripture.references import VerseRef


def test_lines_tagged_with_file_name(tmp_path):
    (tmp_path / "b_notes.txt").write_text("GEN 1:1 note on creation\nGEN 1:2 other\n", encoding="utf-8")
    (tmp_path / "a_terms.txt").write_text("heavens: see GEN 1:1\n", encoding="utf-8")

    result = scan_additional_resources(tmp_path, VerseRef("GEN", 1, 1))

    assert result.splitlines() == [
        "a_terms.txt: heavens: see GEN 1:1",
        "b_notes.txt: GEN 1:1 note on creation",
    ]


def test_longer_verse_numbers_do_not_match(tmp_path):
    (tmp_path / "notes.txt").write_text("GEN 1:10 ten\nGEN 1:1, one\n", encoding="utf-8")
    assert scan_additional_resources(tmp_path, VerseRef("GEN", 1, 1)) == "notes.txt: GEN 1:1, one"


def test_no_mentions_is_empty(tmp_path):
    (tmp_path / "notes.txt").write_text("nothing here\n", encoding="utf-8")
    assert scan_additional_resources(tmp_path, VerseRef("GEN", 1, 1)) == ""


def test_subdirectories_are_ignored(tmp_path):
    (tmp_path / "nested").mkdir()
    (tmp_path / "nested" / "notes.txt").write_text("GEN 1:1 hidden\n", encoding="utf-8")
    assert scan_additional_resources(tmp_path, VerseRef("GEN", 1, 1)) == ""


def test_missing_directory_is_unavailable(tmp_path):
    with pytest.raises(UnavailableError):
        scan_additional_resources(tmp_path / "absent", VerseRef("GEN", 1, 1))

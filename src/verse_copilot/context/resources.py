"""Scan of free-text resource files for lines about a verse."""

import re
from pathlib import Path

import structlog

from verse_copilot.errors import UnavailableError
from verse_copilot.scripture.references import VerseRef
from verse_copilot.utils.encoding import read_text

logger = structlog.get_logger()


def _reference_pattern(ref: VerseRef) -> re.Pattern:
    # GEN 1:1 must not match inside GEN 1:10
    return re.compile(re.escape(str(ref)) + r"(?!\d)")


def scan_additional_resources(directory: Path, ref: VerseRef) -> str:
    """Collect every line mentioning ``ref`` from the files in ``directory``.

    Each line is returned verbatim, prefixed with the name of the file it
    came from. Files are visited in name order. An empty string means no file
    mentions the verse.

    Raises:
        UnavailableError: if the directory is missing or cannot be listed
    """
    directory = Path(directory)
    try:
        files = sorted(p for p in directory.iterdir() if p.is_file())
    except OSError as e:
        raise UnavailableError(f"Resources directory unavailable: {directory}") from e

    pattern = _reference_pattern(ref)
    found: list[str] = []
    for path in files:
        try:
            text = read_text(path)
        except OSError as e:
            logger.warning("resource_unreadable", path=str(path), error=str(e))
            continue
        for line in text.splitlines():
            if pattern.search(line):
                found.append(f"{path.name}: {line}")

    logger.debug("resources_scanned", ref=str(ref), files=len(files), lines=len(found))
    return "\n".join(found)

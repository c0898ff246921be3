"""Translation project layout and metadata."""

import json
from pathlib import Path
from typing import Optional

import structlog

from verse_copilot.errors import ConfigurationInvalidError, NotFoundError

logger = structlog.get_logger()

SOURCE_TEXT_DIR = Path(".project") / "sourceTextBibles"
METADATA_FILE = "metadata.json"
UNKNOWN_LANGUAGE = "Unknown"


def read_metadata(project_dir: Path) -> dict:
    """Parse the project's metadata.json.

    Raises:
        NotFoundError: if the file is missing or not a JSON object
    """
    path = Path(project_dir) / METADATA_FILE
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise NotFoundError(f"Error reading {METADATA_FILE}: {e}") from e
    if not isinstance(data, dict):
        raise NotFoundError(f"{METADATA_FILE} is not a JSON object")
    return data


def language_name(metadata: dict, status: str) -> str:
    """Reference name of the language with the given ``projectStatus``."""
    for lang in metadata.get("languages") or []:
        if isinstance(lang, dict) and lang.get("projectStatus") == status:
            return lang.get("refName") or UNKNOWN_LANGUAGE
    return UNKNOWN_LANGUAGE


def resolve_source_text(project_dir: Path, source_text: str) -> Optional[Path]:
    """Locate the configured source corpus.

    ``source_text`` is either an absolute path or a file name under
    ``.project/sourceTextBibles``. When it is empty, the first ``*.bible`` file
    in that directory is used. Returns None if nothing exists.
    """
    bibles_dir = Path(project_dir) / SOURCE_TEXT_DIR
    if source_text:
        candidate = Path(source_text)
        if not candidate.is_absolute():
            candidate = bibles_dir / candidate
        return candidate if candidate.is_file() else None

    if not bibles_dir.is_dir():
        return None
    found = sorted(bibles_dir.glob("*.bible"))
    return found[0] if found else None


def require_project_dir(project_dir: Optional[Path]) -> Path:
    """Return the project directory or fail the request."""
    if project_dir is None:
        raise ConfigurationInvalidError("No project directory is configured")
    path = Path(project_dir)
    if not path.is_dir():
        raise ConfigurationInvalidError(f"Project directory not found: {path}")
    return path

"""Encoding detection for third-party corpora and resource files."""

from pathlib import Path
from typing import Optional

import chardet


def detect_encoding(content: bytes) -> str:
    """Detect the encoding of byte content.

    Args:
        content: Raw bytes content

    Returns:
        Detected encoding name, 'utf-8' when detection gives up
    """
    result = chardet.detect(content)
    encoding = result.get("encoding") or "utf-8"

    # ASCII is a strict subset; decoding as UTF-8 keeps stray high bytes readable
    if encoding.lower() == "ascii":
        return "utf-8"
    return encoding


def decode_content(content: bytes, encoding: Optional[str] = None) -> str:
    """Decode byte content, trying UTF-8 before falling back to detection.

    Args:
        content: Raw bytes content
        encoding: Optional explicit encoding, auto-detect if None

    Returns:
        Decoded string content
    """
    if encoding is None:
        try:
            return content.decode("utf-8-sig")
        except UnicodeDecodeError:
            encoding = detect_encoding(content)

    try:
        return content.decode(encoding)
    except (UnicodeDecodeError, LookupError):
        pass

    for fallback in ("utf-8", "cp1252", "latin-1"):
        if fallback.lower() != encoding.lower():
            try:
                return content.decode(fallback)
            except (UnicodeDecodeError, LookupError):
                continue

    # Last resort: decode with errors ignored
    return content.decode("utf-8", errors="ignore")


def read_text(path: Path) -> str:
    """Read a text file of unknown provenance."""
    return decode_content(path.read_bytes())

"""Post-processing of raw backend responses into insertable text."""

import re

_LEADING_FENCE = re.compile(r"^```[\s\S]*?```")


def strip_leading_fence(text: str) -> str:
    """Drop a fenced block at the start of the response, then trim."""
    if not text.startswith("```"):
        return text
    return _LEADING_FENCE.sub("", text, count=1).strip()


def format_completion_response(text: str, current_verse: str) -> str:
    """Turn a backend response into the text to insert after the cursor.

    Models sometimes echo the partial translation, optionally in quotes.
    When the raw response starts with it, exactly that prefix is removed,
    along with the closing quote in the quoted case.
    """
    formatted = strip_leading_fence(text)

    if not current_verse:
        return formatted

    if text.startswith(current_verse):
        return text[len(current_verse):]

    if text.startswith('"' + current_verse):
        rest = text[len(current_verse) + 1:]
        return rest[:-1] if rest.endswith('"') else rest

    return formatted

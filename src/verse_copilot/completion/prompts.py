"""Prompt construction for verse completion.

The same bundle always renders to the same messages: sections appear in a
fixed order and empty sections are left out.
"""

import json
from typing import Union

from verse_copilot.context.bundle import ContextBundle, VersePair

SYSTEM_TEMPLATE = """# Biblical Translation Expert

You are an expert biblical translator working on translating from {source_language} to the target language. Your task is to learn the target language and complete a partial translation of a verse.

## Guidelines

1. Prioritize accuracy to the source text while maintaining natural expression in the target language.
2. Maintain consistency with previously translated portions and the overall style of the project.
3. Use provided similar translations and surrounding context for guidance, but don't simply copy them.
4. Only complete the missing part of the verse; do not modify already translated portions.
5. Do not add explanatory content or commentary.
6. If crucial information is missing, provide the best possible translation based on available context.
7. Preserve any formatting or verse numbering present in the partial translation.

Use the data provided by the user to understand how the target language relates to {source_language}, then translate the 'Verse to Complete'."""

INSTRUCTIONS = """## Instructions

1. Analyze the provided reference data to understand the translation patterns and style.
2. Complete the partial translation of the verse.
3. Ensure your translation fits seamlessly with the existing partial translation.
4. Provide only the completed translation without any additional commentary or quotation marks."""


def format_similar_pairs(similar_pairs: Union[list[dict], str]) -> str:
    """Render similar pairs as JSON blocks separated by blank lines."""
    if isinstance(similar_pairs, str):
        return similar_pairs
    return "\n\n".join(json.dumps(pair, indent=2, ensure_ascii=False) for pair in similar_pairs)


def format_surrounding_context(context: Union[list[VersePair], str]) -> str:
    """Render neighboring translated verses as a ``verse_pairs`` JSON object."""
    if isinstance(context, str):
        return context
    if not context:
        return ""
    pairs = [pair.model_dump() for pair in context]
    return json.dumps({"verse_pairs": pairs}, indent=2, ensure_ascii=False)


def build_system_prompt(bundle: ContextBundle) -> str:
    return SYSTEM_TEMPLATE.format(source_language=bundle.source_language_name)


def build_user_prompt(bundle: ContextBundle) -> str:
    parts = [
        "# Translation Task",
        "## Verse to Complete\n\n"
        f"Reference: {bundle.verse_ref}\n"
        f"Source: {bundle.source_verse}\n"
        f"Partial Translation: {bundle.current_verse}",
        "## Reference Data",
    ]

    sections = [
        ("Similar Pairs of Translations", format_similar_pairs(bundle.similar_pairs)),
        ("Translations of Surrounding Verses", format_surrounding_context(bundle.surrounding_context)),
        ("Source Chapter", bundle.source_chapter.strip()),
        ("Additional Resources", bundle.other_resources),
    ]
    for title, body in sections:
        if body:
            parts.append(f"### {title}\n\n{body}")

    parts.append(INSTRUCTIONS)
    return "\n\n".join(parts) + "\n"


def build_verse_messages(bundle: ContextBundle) -> list[dict[str, str]]:
    """System and user messages for one completion request."""
    return [
        {"role": "system", "content": build_system_prompt(bundle)},
        {"role": "user", "content": build_user_prompt(bundle)},
    ]

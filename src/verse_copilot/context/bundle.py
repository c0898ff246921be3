"""Context bundle and the tagged results its parts are fetched as."""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

# Resource names as they appear in missing_resources and the user advisory.
VERSE_REFERENCE = "verse reference"
SOURCE_TEXT_FILE = "source text file"
SOURCE_VERSE = "source verse"
CURRENT_VERSE = "current verse"
SOURCE_CHAPTER = "source chapter"
SURROUNDING_CONTEXT = "surrounding context"
SIMILAR_PAIRS = "similar pairs"
ADDITIONAL_RESOURCES = "additional resources"
SOURCE_LANGUAGE = "source language"

PLACEHOLDERS: dict[str, str] = {
    SOURCE_VERSE: "Source verse unavailable",
    CURRENT_VERSE: "",
    SOURCE_CHAPTER: "Source chapter unavailable",
    SURROUNDING_CONTEXT: "Surrounding context unavailable",
    SIMILAR_PAIRS: "Similar pairs unavailable",
    ADDITIONAL_RESOURCES: "Additional resources unavailable",
    SOURCE_LANGUAGE: "Unknown",
}


@dataclass(frozen=True)
class Ok(Generic[T]):
    """A sub-resource that was fetched."""

    value: T


@dataclass(frozen=True)
class Degraded:
    """A sub-resource replaced by a placeholder."""

    resource: str
    placeholder: str
    reason: str


FetchResult = Union[Ok[T], Degraded]


def degraded(resource: str, reason: str) -> Degraded:
    return Degraded(resource=resource, placeholder=PLACEHOLDERS.get(resource, ""), reason=reason)


class VersePair(BaseModel):
    """A neighboring verse with both source and translated text."""

    model_config = ConfigDict(frozen=True)

    ref: str
    source: str
    target: str


class ContextBundle(BaseModel):
    """Everything the prompt builder knows about one completion request.

    Fields that could not be fetched hold a placeholder string and are named
    in ``missing_resources``.
    """

    model_config = ConfigDict(frozen=True)

    verse_ref: str
    source_language_name: str = "Unknown"
    source_verse: str = ""
    current_verse: str = ""
    similar_pairs: Union[list[dict], str] = Field(default_factory=list)
    source_chapter: str = ""
    surrounding_context: Union[list[VersePair], str] = Field(default_factory=list)
    other_resources: str = ""
    missing_resources: frozenset[str] = frozenset()

    @property
    def is_degraded(self) -> bool:
        return bool(self.missing_resources)

    def advisory(self) -> str:
        """User-facing note listing what was unavailable."""
        names = ", ".join(sorted(self.missing_resources))
        return f"Some resources are unavailable: {names}. Completion may be less accurate."

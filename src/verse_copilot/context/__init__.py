"""Context gathering for a verse completion."""

from verse_copilot.context.assembler import ContextAssembler, extract_current_verse
from verse_copilot.context.bundle import ContextBundle, Degraded, Ok, VersePair
from verse_copilot.context.cache import ResultCache
from verse_copilot.context.document import DocumentSnapshot, Position
from verse_copilot.context.neighborhood import NeighborhoodExpander
from verse_copilot.context.similarity import (
    CachedSimilarityClient,
    SimilarityClient,
    build_similarity_client,
)

__all__ = [
    "CachedSimilarityClient",
    "ContextAssembler",
    "ContextBundle",
    "Degraded",
    "DocumentSnapshot",
    "NeighborhoodExpander",
    "Ok",
    "Position",
    "ResultCache",
    "SimilarityClient",
    "VersePair",
    "build_similarity_client",
    "extract_current_verse",
]

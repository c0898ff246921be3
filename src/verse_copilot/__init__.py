"""Context-aware verse completion for Bible translation projects."""

__version__ = "0.3.0"

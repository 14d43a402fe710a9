"""ctxslice package initialization."""

from __future__ import annotations

from .api import (
    ContextExtractor,
    ContextResult,
    DeclarationsResult,
    ExtractorError,
    ParserSetupError,
    RankedSections,
    RelevantBlocksResult,
    TreeStatus,
)
from .buffer import ContentChange, ContentChangedEvent, Position, Range, TextDocument
from .config import ContextOptions, TestCallPattern, TierPercents

__all__ = [
    "__version__",
    "ContentChange",
    "ContentChangedEvent",
    "ContextExtractor",
    "ContextOptions",
    "ContextResult",
    "DeclarationsResult",
    "ExtractorError",
    "ParserSetupError",
    "Position",
    "Range",
    "RankedSections",
    "RelevantBlocksResult",
    "TestCallPattern",
    "TextDocument",
    "TierPercents",
    "TreeStatus",
    "get_version",
]

__version__ = "0.1.0"


def get_version() -> str:
    """Return the current package version."""
    return __version__

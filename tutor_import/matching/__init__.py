"""Fuzzy matching of free text against reference entities."""

from .normalize import core_text, normalize_text
from .resolver import (
    MultiResolution,
    Ranker,
    SimilarityRanker,
    best_match,
    resolve_many,
    top_match,
)

__all__ = [
    "normalize_text",
    "core_text",
    "Ranker",
    "SimilarityRanker",
    "MultiResolution",
    "best_match",
    "resolve_many",
    "top_match",
]

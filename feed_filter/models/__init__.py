"""
Models package for the feed filter.

This package contains the Pydantic DTOs shared by the pipeline stages.
"""

from .dtos import (
    FilterConfig,
    FilterMark,
    Item,
    RelayResponse,
    ScoreCacheEntry,
    ScoredItem,
    TopicEntry,
    ViewCountEntry,
    WrapperMark,
)

__all__ = [
    "FilterConfig",
    "FilterMark",
    "Item",
    "RelayResponse",
    "ScoreCacheEntry",
    "ScoredItem",
    "TopicEntry",
    "ViewCountEntry",
    "WrapperMark",
]

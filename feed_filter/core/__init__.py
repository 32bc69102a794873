"""
Core components for the feed filter.
"""

from .applier import FilterApplier
from .cache import ScoreCache
from .context import PipelineContext
from .extractor import extract
from .ledger import TopicLedger, ViewLedger
from .pipeline import FeedPipeline
from .scheduler import LoopClock, ReactiveScheduler
from .scoring import ItemScorer

__all__ = [
    "FilterApplier",
    "ScoreCache",
    "PipelineContext",
    "extract",
    "TopicLedger",
    "ViewLedger",
    "FeedPipeline",
    "LoopClock",
    "ReactiveScheduler",
    "ItemScorer",
]

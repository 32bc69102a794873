"""
Feed Filter - heuristic and model-scored filtering of rendered media feeds.

The package classifies feed items with local heuristics, scores survivors
through an external scoring service and hides or annotates each item.
"""

__version__ = "0.1.0"

"""External service integrations."""

from .relay import RelayError, ScoringRelay

__all__ = ["RelayError", "ScoringRelay"]

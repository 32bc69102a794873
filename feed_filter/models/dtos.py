"""
Pydantic Data Transfer Objects (DTOs) for the feed filter.

These models describe feed items as they move through the pipeline, the
persisted ledger entries, the user-facing configuration blob and the relay
envelope.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class FilterMark(str, Enum):
    """Classification marker stamped on a feed item handle."""

    UNSET = ""
    SPONSORED = "sponsored"
    SHORT = "short"
    BLACKLISTED = "blacklisted"
    SEEN_TOO_OFTEN = "seen-too-often"
    SCORED = "scored"


class WrapperMark(str, Enum):
    """Marker for feed-level wrappers hidden wholesale."""

    SHORTS_SHELF = "shorts-shelf"
    AD = "ad"


class Item(BaseModel):
    """
    A normalized feed entry derived from a rendered handle.

    The handle is the live ``bs4`` tag the item was extracted from; it is kept
    out of serialised output.
    """
    id: str
    title: str
    channel: str = "Unknown"
    handle: Any = Field(default=None, exclude=True, repr=False)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def with_score(self, score: int, reason: str) -> "ScoredItem":
        return ScoredItem(
            id=self.id,
            title=self.title,
            channel=self.channel,
            handle=self.handle,
            score=score,
            reason=reason,
        )


class ScoredItem(Item):
    """An Item merged with its quality score."""
    score: int = Field(..., ge=0, le=100)
    reason: str = ""


class ScoreCacheEntry(BaseModel):
    """Session-scoped scoring result for one item id."""
    score: int = Field(..., ge=0, le=100)
    reason: str = ""


class ViewCountEntry(BaseModel):
    """Persisted exposure counter for one item id."""
    count: int = Field(default=0, ge=0)
    last_seen: float = Field(default=0.0, alias="lastSeen")

    model_config = ConfigDict(populate_by_name=True)


class TopicEntry(BaseModel):
    """Persisted click-through counter for one topic label."""
    count: int = Field(default=0, ge=0)
    last_seen: float = Field(default=0.0, alias="lastSeen")

    model_config = ConfigDict(populate_by_name=True)


class FilterConfig(BaseModel):
    """
    User configuration blob, stored camelCase under the ``filterConfig`` key.

    Partial blobs are merged over these defaults by ``merged``.
    """
    api_endpoint: str = Field(default="http://localhost:11434/api/generate", alias="apiEndpoint")
    enabled: bool = True
    show_scores: bool = Field(default=True, alias="showScores")
    threshold: int = Field(default=60, ge=0, le=100)
    topic_cooldown_days: int = Field(default=14, ge=0, alias="topicCooldownDays")
    max_topic_videos: int = Field(default=4, ge=0, alias="maxTopicVideos")
    watched_endpoint: Optional[str] = Field(default=None, alias="watchedEndpoint")
    health_endpoint: Optional[str] = Field(default=None, alias="healthEndpoint")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def topic_endpoint(self) -> str:
        """Click-through topic endpoint, co-located with the scoring endpoint unless set."""
        return self.watched_endpoint or self.api_endpoint.rstrip("/") + "/watched"

    @property
    def status_endpoint(self) -> str:
        return self.health_endpoint or self.api_endpoint.rstrip("/") + "/health"

    def merged(self, blob: Optional[Dict[str, Any]]) -> "FilterConfig":
        """Return a new config with ``blob`` (camelCase or snake_case keys) applied on top."""
        if not blob:
            return self.model_copy()
        data = self.model_dump(by_alias=False)
        for key, value in blob.items():
            field_name = _ALIASES.get(key, key)
            if field_name in FilterConfig.model_fields:
                data[field_name] = value
        return FilterConfig.model_validate(data)


_ALIASES = {
    field.alias: name
    for name, field in FilterConfig.model_fields.items()
    if field.alias
}


class RelayResponse(BaseModel):
    """Envelope returned by the scoring relay."""
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def response_text(self) -> str:
        if not self.data:
            return ""
        value = self.data.get("response")
        return value if isinstance(value, str) else ""

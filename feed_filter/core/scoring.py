"""
Scoring cache and relay-backed item scoring.

Every item id costs at most one successful relay round trip per session: a
cached result short-circuits the network. Failed or unparseable calls yield a
neutral score that is not cached, so the item is retried on a later pass.
"""

import json
import logging
import re
from typing import Iterable, Optional, Tuple

from feed_filter.config.settings import settings
from feed_filter.core.context import PipelineContext
from feed_filter.models.dtos import Item, ScoreCacheEntry, ScoredItem

logger = logging.getLogger(__name__)

NOT_SCORED_REASON = "Not scored"

_SCORE_FRAGMENT = re.compile(r"\{[^}]+\}")

PROMPT_TEMPLATE = """Score this YouTube video 0-100 for quality.

SCORING:
- 80-100: Educational, technical, informative
- 60-79: Decent, interesting
- 40-59: Mediocre, clickbait
- 20-39: Low quality, fear-mongering, speculation
- 0-19: Pure clickbait, panic, rage-bait

FILTER OUT: Fear headlines, speculation, AI slop, clickbait (ALL CAPS, !!!)
KEEP: Technical content, tutorials, thoughtful analysis

{saturated}

VIDEO: [{channel}] {title}

Respond ONLY with JSON: {{"score": 75, "reason": "brief reason"}}"""


def build_prompt(item: Item, saturated_topics: Iterable[str]) -> str:
    topics = sorted(saturated_topics)
    saturated = "SATURATED TOPICS (score lower): " + ", ".join(topics) if topics else ""
    return PROMPT_TEMPLATE.format(saturated=saturated, channel=item.channel, title=item.title)


def parse_score(text: str, default_score: int = settings.NEUTRAL_SCORE) -> Optional[Tuple[int, str]]:
    """
    Pull a ``{score, reason}`` fragment out of free-form model output.

    Args:
        text: Raw response text, possibly wrapped in prose
        default_score: Score used when the fragment has no usable score

    Returns:
        (score, reason) clamped to 0-100, or None when no fragment parses
    """
    match = _SCORE_FRAGMENT.search(text or "")
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None

    raw_score = parsed.get("score")
    try:
        score = default_score if raw_score is None else int(round(float(raw_score)))
    except (TypeError, ValueError):
        score = default_score
    reason = parsed.get("reason") or ""
    return max(0, min(100, score)), str(reason)


class ItemScorer:
    """
    Scores one item at a time through the context's relay.
    """

    def __init__(self, context: PipelineContext):
        self.context = context

    def _request_body(self, item: Item) -> dict:
        saturated = self.context.topic_ledger.saturated_topics(self.context.config.max_topic_videos)
        return {
            "model": self.context.settings.SCORING_MODEL,
            "prompt": build_prompt(item, saturated),
            "stream": False,
        }

    def _fallback(self, item: Item) -> ScoredItem:
        neutral = self.context.settings.NEUTRAL_SCORE
        if self.context.settings.CACHE_FALLBACK_SCORES:
            self.context.score_cache.put(item.id, ScoreCacheEntry(score=neutral, reason=NOT_SCORED_REASON))
        return item.with_score(neutral, NOT_SCORED_REASON)

    async def score(self, item: Item) -> ScoredItem:
        """
        Score ``item``, using the session cache when possible.

        Never raises: relay failures and malformed responses produce the
        neutral fallback score.
        """
        cached = self.context.score_cache.get(item.id)
        if cached is not None:
            return item.with_score(cached.score, cached.reason)

        try:
            result = await self.context.relay.send(self.context.config.api_endpoint, self._request_body(item))
        except Exception as e:
            logger.warning(f"Relay error for '{item.title[:20]}': {e}")
            return self._fallback(item)

        if not result.success:
            logger.warning(f"Scoring failed for '{item.title[:20]}': {result.error}")
            return self._fallback(item)

        parsed = parse_score(result.response_text, self.context.settings.NEUTRAL_SCORE)
        if parsed is None:
            logger.warning(f"No score fragment in response for '{item.title[:20]}'")
            return self._fallback(item)

        score, reason = parsed
        self.context.score_cache.put(item.id, ScoreCacheEntry(score=score, reason=reason))
        logger.info(f"{item.title[:25]} -> {score}")
        return item.with_score(score, reason)

"""
Pipeline context shared by every stage.

The context owns the mutable state of a page session: the user configuration,
the persistent ledgers, the score cache, the relay and the live document.
"""

import logging
from typing import Any, Dict, Optional

from bs4 import BeautifulSoup
from bs4.element import Tag

from feed_filter.config.settings import Settings, settings as default_settings
from feed_filter.core.cache import ScoreCache
from feed_filter.core.ledger import TopicLedger, ViewLedger
from feed_filter.integrations.relay import ScoringRelay
from feed_filter.models.dtos import FilterConfig
from feed_filter.storage.kv_store import CONFIG_KEY, KeyValueStore

logger = logging.getLogger(__name__)

# Attribute holding the FilterMark (or wrapper mark) on a handle
MARK_ATTR = "data-feed-filter"


def get_mark(tag: Tag) -> str:
    return tag.get(MARK_ATTR) or ""


def set_mark(tag: Tag, mark: str) -> None:
    tag[MARK_ATTR] = mark


def clear_marks(root: Tag) -> int:
    """Remove every mark at or below ``root``. Returns the number cleared."""
    cleared = 0
    if root.has_attr(MARK_ATTR):
        del root[MARK_ATTR]
        cleared += 1
    for tag in root.find_all(attrs={MARK_ATTR: True}):
        del tag[MARK_ATTR]
        cleared += 1
    return cleared


class PipelineContext:
    """
    Explicitly constructed state for one page session.

    Call ``load`` once before the first pass; configuration changes go through
    ``apply_config``.
    """

    def __init__(
        self,
        document: BeautifulSoup,
        store: KeyValueStore,
        relay: ScoringRelay,
        config: Optional[FilterConfig] = None,
        app_settings: Optional[Settings] = None,
        view_ledger: Optional[ViewLedger] = None,
        topic_ledger: Optional[TopicLedger] = None,
    ):
        self.document = document
        self.store = store
        self.relay = relay
        self.settings = app_settings or default_settings
        self.config = config or FilterConfig()
        self.score_cache = ScoreCache()
        self.view_ledger = view_ledger or ViewLedger(store, ttl_days=self.settings.VIEW_TTL_DAYS)
        self.topic_ledger = topic_ledger or TopicLedger(store, cooldown_days=self.config.topic_cooldown_days)

    async def load(self) -> None:
        """Apply the stored configuration over defaults and load both ledgers."""
        stored = await self.store.get([CONFIG_KEY])
        blob = stored.get(CONFIG_KEY)
        if blob:
            try:
                self.config = self.config.merged(blob)
            except ValueError as e:
                logger.error(f"Ignoring invalid stored configuration: {e}")
        self.topic_ledger.cooldown_days = self.config.topic_cooldown_days
        await self.view_ledger.load()
        await self.topic_ledger.load()
        logger.info(
            f"Context loaded (enabled={self.config.enabled}, threshold={self.config.threshold})"
        )

    def apply_config(self, blob: Dict[str, Any]) -> FilterConfig:
        """
        Merge a configuration change and invalidate classification marks.

        Re-prunes topics when the cooldown changed.

        Returns:
            The new configuration
        """
        previous = self.config
        self.config = previous.merged(blob)
        if self.config.topic_cooldown_days != previous.topic_cooldown_days:
            removed = self.topic_ledger.prune(self.config.topic_cooldown_days)
            logger.info(f"Topic cooldown changed, pruned {removed} topics")
        cleared = clear_marks(self.document)
        logger.info(f"Configuration changed, cleared {cleared} marks")
        return self.config

    async def flush(self) -> None:
        await self.view_ledger.flush()
        await self.topic_ledger.flush()

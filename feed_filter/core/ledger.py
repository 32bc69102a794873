"""
Persisted exposure and topic counters.

Both ledgers keep their state in memory and mirror it to the key-value store
with fire-and-forget writes: the in-memory value is authoritative for the
session and a lost write only costs an approximate increment.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from feed_filter.config.settings import settings
from feed_filter.models.dtos import TopicEntry, ViewCountEntry
from feed_filter.storage.kv_store import TOPICS_KEY, VIEW_COUNTS_KEY, KeyValueStore

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


class _PersistedLedger:
    """Shared fire-and-forget persistence for the ledgers."""

    store_key: str = ""

    def __init__(self, store: KeyValueStore, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock
        self._pending: Set[asyncio.Task] = set()

    def _snapshot(self) -> Dict[str, Any]:
        raise NotImplementedError

    def _persist(self) -> None:
        """Schedule a store write without awaiting it."""
        payload = {self.store_key: self._snapshot()}
        try:
            task = asyncio.get_running_loop().create_task(self.store.set(payload))
        except RuntimeError:
            logger.warning(f"No running event loop; {self.store_key} not persisted")
            return
        self._pending.add(task)
        task.add_done_callback(self._on_write_done)

    def _on_write_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Failed to persist {self.store_key}: {exc}")

    async def flush(self) -> None:
        """Wait for outstanding store writes to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


class ViewLedger(_PersistedLedger):
    """Per-item view counts, counted at most once per item per session."""

    store_key = VIEW_COUNTS_KEY

    def __init__(
        self,
        store: KeyValueStore,
        ttl_days: int = settings.VIEW_TTL_DAYS,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(store, clock)
        self.ttl_days = ttl_days
        self.entries: Dict[str, ViewCountEntry] = {}
        self.session_counted: Set[str] = set()

    def _snapshot(self) -> Dict[str, Any]:
        return {k: v.model_dump(by_alias=True) for k, v in self.entries.items()}

    async def load(self) -> None:
        """Load persisted counts and purge entries older than the TTL."""
        stored = await self.store.get([self.store_key])
        raw = stored.get(self.store_key) or {}
        self.entries = {}
        for item_id, value in raw.items():
            try:
                self.entries[item_id] = ViewCountEntry.model_validate(value)
            except ValueError:
                logger.warning(f"Dropping malformed view count entry for {item_id}")
        self.session_counted = set()
        if self.prune():
            self._persist()
        logger.info(f"Loaded {len(self.entries)} view count entries")

    def prune(self) -> int:
        """Remove entries not seen within the TTL. Returns the number removed."""
        max_age = self.ttl_days * SECONDS_PER_DAY
        now = self.clock()
        stale = [k for k, v in self.entries.items() if now - v.last_seen > max_age]
        for item_id in stale:
            del self.entries[item_id]
        if stale:
            logger.debug(f"Pruned {len(stale)} stale view count entries")
        return len(stale)

    def record_view(self, item_id: str) -> int:
        """
        Count one exposure of ``item_id`` for this session.

        Repeated calls within the session return the current count unchanged.
        The store write is scheduled, not awaited.

        Returns:
            The updated view count
        """
        if item_id in self.session_counted:
            return self.get_view_count(item_id)
        self.session_counted.add(item_id)

        entry = self.entries.setdefault(item_id, ViewCountEntry(count=0, last_seen=self.clock()))
        entry.count += 1
        entry.last_seen = self.clock()
        self._persist()
        return entry.count

    def get_view_count(self, item_id: str) -> int:
        entry = self.entries.get(item_id)
        return entry.count if entry else 0


class TopicLedger(_PersistedLedger):
    """Click-through counts per topic, decayed after a cooldown window."""

    store_key = TOPICS_KEY

    def __init__(
        self,
        store: KeyValueStore,
        cooldown_days: int,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(store, clock)
        self.cooldown_days = cooldown_days
        self.entries: Dict[str, TopicEntry] = {}

    def _snapshot(self) -> Dict[str, Any]:
        return {k: v.model_dump(by_alias=True) for k, v in self.entries.items()}

    async def load(self) -> None:
        stored = await self.store.get([self.store_key])
        raw = stored.get(self.store_key) or {}
        self.entries = {}
        for topic, value in raw.items():
            try:
                self.entries[topic] = TopicEntry.model_validate(value)
            except ValueError:
                logger.warning(f"Dropping malformed topic entry for {topic!r}")
        if raw:
            self.prune()
        logger.info(f"Loaded {len(self.entries)} tracked topics")

    def prune(self, cooldown_days: Optional[int] = None) -> int:
        """
        Remove topics whose last click is older than the cooldown window.

        Args:
            cooldown_days: New cooldown to adopt before pruning, if it changed

        Returns:
            Number of topics removed
        """
        if cooldown_days is not None:
            self.cooldown_days = cooldown_days
        cooldown = self.cooldown_days * SECONDS_PER_DAY
        now = self.clock()
        stale = [k for k, v in self.entries.items() if now - v.last_seen > cooldown]
        for topic in stale:
            del self.entries[topic]
        self._persist()
        return len(stale)

    def record_topic_click(self, topic: str) -> int:
        entry = self.entries.setdefault(topic, TopicEntry(count=0, last_seen=self.clock()))
        entry.count += 1
        entry.last_seen = self.clock()
        self._persist()
        logger.info(f'Topic "{topic}" count: {entry.count}')
        return entry.count

    def saturated_topics(self, max_count: int) -> Set[str]:
        """Topics clicked at least ``max_count`` times."""
        return {topic for topic, entry in self.entries.items() if entry.count >= max_count}

    def topics_by_count(self) -> List[Tuple[str, int]]:
        return sorted(
            ((topic, entry.count) for topic, entry in self.entries.items()),
            key=lambda pair: pair[1],
            reverse=True,
        )

    def clear(self, topic: Optional[str] = None) -> int:
        """Forget one topic, or every topic when ``topic`` is None."""
        if topic is None:
            removed = len(self.entries)
            self.entries = {}
        else:
            removed = 1 if self.entries.pop(topic, None) is not None else 0
        self._persist()
        return removed

"""Session-scoped score cache."""

from typing import Dict, Optional

from feed_filter.models.dtos import ScoreCacheEntry


class ScoreCache:
    """
    In-memory score cache keyed by item id.

    Entries live for the whole session and are never evicted. Concurrent
    passes may write the same id twice; the last write wins.
    """

    def __init__(self):
        self._entries: Dict[str, ScoreCacheEntry] = {}

    def get(self, item_id: str) -> Optional[ScoreCacheEntry]:
        return self._entries.get(item_id)

    def put(self, item_id: str, entry: ScoreCacheEntry) -> None:
        self._entries[item_id] = entry

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

"""Key-value store backends for configuration and ledger persistence."""

import asyncio
import copy
import json
import logging
import os
import tempfile
from typing import Any, Callable, Dict, Iterable, List, Protocol

logger = logging.getLogger(__name__)

ChangeListener = Callable[[Dict[str, Any]], None]

CONFIG_KEY = "filterConfig"
VIEW_COUNTS_KEY = "viewCounts"
TOPICS_KEY = "watchedTopics"


class StoreError(Exception):
    """Raised when a store backend cannot read or write its data."""


class KeyValueStore(Protocol):
    """
    A protocol that defines the interface for persistent stores.

    There are no transactions: each ``set`` is independent and callers must
    tolerate a write being lost between two calls.
    """

    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        """Return the stored values for ``keys``; missing keys are omitted."""
        ...

    async def set(self, entries: Dict[str, Any]) -> None:
        """Store every entry, notifying change listeners."""
        ...

    def add_listener(self, listener: ChangeListener) -> None:
        """Register a callback invoked with the entries of every ``set``."""
        ...


class _ListenerMixin:
    def __init__(self) -> None:
        self._listeners: List[ChangeListener] = []

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def _notify(self, entries: Dict[str, Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(entries)
            except Exception as e:
                logger.error(f"Store change listener failed: {e}", exc_info=True)


class InMemoryStore(_ListenerMixin):
    """Process-local store; values are deep-copied in and out."""

    def __init__(self, initial: Dict[str, Any] = None):
        super().__init__()
        self._data: Dict[str, Any] = copy.deepcopy(initial or {})

    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        return {k: copy.deepcopy(self._data[k]) for k in keys if k in self._data}

    async def set(self, entries: Dict[str, Any]) -> None:
        self._data.update(copy.deepcopy(entries))
        self._notify(entries)


class JsonFileStore(_ListenerMixin):
    """
    Store backed by a single JSON document on disk.

    Writes are serialised and go to a per-write temporary file that replaces
    the target, so a crash leaves either the old or the new document.
    """

    def __init__(self, path: str):
        """
        Initialize the store with a file path.

        Args:
            path: Path to the JSON file
        """
        super().__init__()
        self.path = path
        self._write_lock = asyncio.Lock()
        self._ensure_directory()

    def _ensure_directory(self) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    def _read(self) -> Dict[str, Any]:
        if not os.path.exists(self.path) or os.path.getsize(self.path) == 0:
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Failed to read store {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StoreError(f"Store {self.path} does not contain a JSON object")
        return data

    def _write(self, entries: Dict[str, Any]) -> None:
        data = self._read()
        data.update(entries)
        directory = os.path.dirname(self.path) or "."
        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=directory, suffix=".tmp", delete=False
            ) as f:
                tmp_path = f.name
                json.dump(data, f, ensure_ascii=False, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StoreError(f"Failed to write store {self.path}: {e}") from e

    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        data = await asyncio.to_thread(self._read)
        return {k: data[k] for k in keys if k in data}

    async def set(self, entries: Dict[str, Any]) -> None:
        # Read-modify-write, one at a time and in call order.
        async with self._write_lock:
            await asyncio.to_thread(self._write, copy.deepcopy(entries))
        self._notify(entries)

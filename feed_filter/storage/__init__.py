"""Persistent store adapters."""

from .kv_store import (
    CONFIG_KEY,
    TOPICS_KEY,
    VIEW_COUNTS_KEY,
    InMemoryStore,
    JsonFileStore,
    KeyValueStore,
    StoreError,
)

__all__ = [
    "CONFIG_KEY",
    "TOPICS_KEY",
    "VIEW_COUNTS_KEY",
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueStore",
    "StoreError",
]

import json
import logging

import pytest

from feed_filter.core.ledger import TopicLedger, ViewLedger
from feed_filter.storage.kv_store import (
    CONFIG_KEY,
    TOPICS_KEY,
    VIEW_COUNTS_KEY,
    InMemoryStore,
    JsonFileStore,
    StoreError,
)


@pytest.mark.asyncio
async def test_memory_store_copies_values():
    original = {"count": 1}
    store = InMemoryStore({"viewCounts": {"a": original}})

    fetched = await store.get(["viewCounts", "missing"])
    fetched["viewCounts"]["a"]["count"] = 99
    original["count"] = 42

    assert await store.get(["viewCounts"]) == {"viewCounts": {"a": {"count": 1}}}


@pytest.mark.asyncio
async def test_memory_store_notifies_listeners():
    store = InMemoryStore()
    received = []
    store.add_listener(received.append)

    await store.set({CONFIG_KEY: {"threshold": 70}})

    assert received == [{CONFIG_KEY: {"threshold": 70}}]


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_set(caplog):
    store = InMemoryStore()
    received = []

    def broken(entries):
        raise RuntimeError("listener bug")

    store.add_listener(broken)
    store.add_listener(received.append)

    with caplog.at_level(logging.ERROR, logger="feed_filter"):
        await store.set({"k": 1})

    assert received == [{"k": 1}]
    assert await store.get(["k"]) == {"k": 1}
    assert "listener bug" in caplog.text


@pytest.mark.asyncio
async def test_json_store_round_trip(tmp_path):
    path = tmp_path / "nested" / "store.json"
    store = JsonFileStore(str(path))

    assert await store.get([CONFIG_KEY]) == {}

    await store.set({CONFIG_KEY: {"threshold": 70}})
    await store.set({"watchedTopics": {"Rust": {"count": 1, "lastSeen": 1.0}}})

    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert on_disk == {
        CONFIG_KEY: {"threshold": 70},
        "watchedTopics": {"Rust": {"count": 1, "lastSeen": 1.0}},
    }
    assert await JsonFileStore(str(path)).get([CONFIG_KEY]) == {CONFIG_KEY: {"threshold": 70}}


@pytest.mark.asyncio
async def test_json_store_corrupt_file(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{not valid", encoding="utf-8")

    with pytest.raises(StoreError):
        await JsonFileStore(str(path)).get([CONFIG_KEY])


@pytest.mark.asyncio
async def test_json_store_rejects_non_object(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("[1, 2]", encoding="utf-8")

    with pytest.raises(StoreError):
        await JsonFileStore(str(path)).get([CONFIG_KEY])


@pytest.mark.asyncio
async def test_json_store_survives_concurrent_ledger_writes(tmp_path):
    path = tmp_path / "store.json"
    store = JsonFileStore(str(path))
    await store.set({CONFIG_KEY: {"threshold": 70}})
    views = ViewLedger(store, ttl_days=30)
    topics = TopicLedger(store, cooldown_days=14)

    for i in range(40):
        views.record_view(f"video{i}")
    for topic in ("Rust", "Go", "Rust", "Databases"):
        topics.record_topic_click(topic)
    await views.flush()
    await topics.flush()

    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert on_disk[CONFIG_KEY] == {"threshold": 70}
    assert set(on_disk[VIEW_COUNTS_KEY]) == {f"video{i}" for i in range(40)}
    assert on_disk[TOPICS_KEY]["Rust"]["count"] == 2
    assert set(on_disk[TOPICS_KEY]) == {"Rust", "Go", "Databases"}
    assert [p.name for p in tmp_path.iterdir()] == ["store.json"]

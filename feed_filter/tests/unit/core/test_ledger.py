import pytest

from feed_filter.core.ledger import SECONDS_PER_DAY, TopicLedger, ViewLedger
from feed_filter.storage.kv_store import InMemoryStore, TOPICS_KEY, VIEW_COUNTS_KEY

NOW = 1_700_000_000.0


def fixed_clock():
    return NOW


@pytest.mark.asyncio
async def test_record_view_counts_once_per_session():
    store = InMemoryStore()
    ledger = ViewLedger(store, ttl_days=30, clock=fixed_clock)
    await ledger.load()

    assert ledger.record_view("abc") == 1
    assert ledger.record_view("abc") == 1
    assert ledger.get_view_count("abc") == 1

    await ledger.flush()
    stored = await store.get([VIEW_COUNTS_KEY])
    assert stored[VIEW_COUNTS_KEY]["abc"] == {"count": 1, "lastSeen": NOW}


@pytest.mark.asyncio
async def test_new_session_counts_again():
    store = InMemoryStore({VIEW_COUNTS_KEY: {"abc": {"count": 2, "lastSeen": NOW - 60}}})
    ledger = ViewLedger(store, ttl_days=30, clock=fixed_clock)
    await ledger.load()

    assert ledger.record_view("abc") == 3
    assert ledger.get_view_count("missing") == 0


@pytest.mark.asyncio
async def test_load_prunes_entries_older_than_ttl():
    store = InMemoryStore({
        VIEW_COUNTS_KEY: {
            "old": {"count": 5, "lastSeen": NOW - 31 * SECONDS_PER_DAY},
            "recent": {"count": 1, "lastSeen": NOW - 29 * SECONDS_PER_DAY},
        }
    })
    ledger = ViewLedger(store, ttl_days=30, clock=fixed_clock)

    await ledger.load()
    await ledger.flush()

    assert set(ledger.entries) == {"recent"}
    stored = await store.get([VIEW_COUNTS_KEY])
    assert set(stored[VIEW_COUNTS_KEY]) == {"recent"}


@pytest.mark.asyncio
async def test_load_drops_malformed_entries():
    store = InMemoryStore({
        VIEW_COUNTS_KEY: {
            "bad": {"count": -1, "lastSeen": NOW},
            "good": {"count": 1, "lastSeen": NOW},
        }
    })
    ledger = ViewLedger(store, ttl_days=30, clock=fixed_clock)

    await ledger.load()

    assert set(ledger.entries) == {"good"}


@pytest.mark.asyncio
async def test_failed_write_does_not_lose_in_memory_count(mocker):
    store = InMemoryStore()
    mocker.patch.object(store, "set", side_effect=OSError("disk full"))
    ledger = ViewLedger(store, ttl_days=30, clock=fixed_clock)

    assert ledger.record_view("abc") == 1
    await ledger.flush()

    assert ledger.get_view_count("abc") == 1


def test_record_view_without_event_loop_keeps_count():
    ledger = ViewLedger(InMemoryStore(), ttl_days=30, clock=fixed_clock)

    assert ledger.record_view("abc") == 1


@pytest.mark.asyncio
async def test_topic_clicks_and_saturation():
    store = InMemoryStore()
    ledger = TopicLedger(store, cooldown_days=14, clock=fixed_clock)
    await ledger.load()

    for _ in range(4):
        ledger.record_topic_click("Rust")
    ledger.record_topic_click("Cooking")
    await ledger.flush()

    assert ledger.saturated_topics(4) == {"Rust"}
    assert ledger.topics_by_count() == [("Rust", 4), ("Cooking", 1)]
    stored = await store.get([TOPICS_KEY])
    assert stored[TOPICS_KEY]["Rust"]["count"] == 4


@pytest.mark.asyncio
async def test_topic_load_prunes_outside_cooldown():
    store = InMemoryStore({
        TOPICS_KEY: {
            "stale": {"count": 9, "lastSeen": NOW - 15 * SECONDS_PER_DAY},
            "fresh": {"count": 2, "lastSeen": NOW - 1 * SECONDS_PER_DAY},
        }
    })
    ledger = TopicLedger(store, cooldown_days=14, clock=fixed_clock)

    await ledger.load()
    await ledger.flush()

    assert set(ledger.entries) == {"fresh"}
    stored = await store.get([TOPICS_KEY])
    assert set(stored[TOPICS_KEY]) == {"fresh"}


@pytest.mark.asyncio
async def test_topic_prune_with_shorter_cooldown():
    store = InMemoryStore({TOPICS_KEY: {"Rust": {"count": 3, "lastSeen": NOW - 3 * SECONDS_PER_DAY}}})
    ledger = TopicLedger(store, cooldown_days=14, clock=fixed_clock)
    await ledger.load()

    removed = ledger.prune(cooldown_days=2)

    assert removed == 1
    assert ledger.cooldown_days == 2
    assert ledger.entries == {}


@pytest.mark.asyncio
async def test_topic_clear():
    ledger = TopicLedger(InMemoryStore(), cooldown_days=14, clock=fixed_clock)
    ledger.record_topic_click("Rust")
    ledger.record_topic_click("Go")

    assert ledger.clear("Rust") == 1
    assert ledger.clear("Rust") == 0
    assert ledger.clear() == 1
    assert ledger.topics_by_count() == []
    await ledger.flush()

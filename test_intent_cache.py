"""
Tests for the intent cache: key shape, TTL expiry and LRU eviction
"""
from datetime import datetime

from conftest import NY, FakeClock
from orchestration.intent_cache import IntentCache, make_cache_key
from orchestration.types import (
    DirectRef,
    Intent,
    IntentCategory,
    OrchestrationContext,
    ScheduleState,
    TaskState,
)


def _intent(reason="x"):
    return Intent(
        category=IntentCategory.CONVERSATION,
        confidence=0.5,
        suggested_handler=DirectRef(reason=reason),
        reasoning=reason,
    )


def _context(hour=9, has_blocks=False, urgent_tasks=0):
    return OrchestrationContext(
        user_id="u1",
        current_time=datetime(2026, 10, 19, hour, 5, tzinfo=NY),
        timezone="America/New_York",
        schedule_state=ScheduleState(has_blocks_today=has_blocks),
        task_state=TaskState(urgent_count=urgent_tasks),
    )


def test_cache_key_normalizes_message_and_encodes_state():
    key = make_cache_key("  Plan My Day ", _context(hour=9, has_blocks=True, urgent_tasks=2))
    assert key == "plan my day_9_true_true_false"


def test_cache_key_changes_with_hour():
    assert make_cache_key("plan my day", _context(hour=9)) != make_cache_key("plan my day", _context(hour=10))


def test_get_returns_stored_intent():
    cache = IntentCache()
    intent = _intent()
    cache.set("k", intent)
    assert cache.get("k") is intent
    assert cache.get_stats()["hits"] == 1


def test_expired_entry_is_a_miss_and_removed():
    clock = FakeClock()
    cache = IntentCache(ttl_seconds=300, clock=clock)
    cache.set("k", _intent())

    clock.advance(299)
    assert cache.get("k") is not None

    clock.advance(2)
    assert cache.get("k") is None
    assert "k" not in cache


def test_oldest_inserted_entry_is_evicted_at_capacity():
    cache = IntentCache(max_size=2)
    cache.set("a", _intent("a"))
    cache.set("b", _intent("b"))
    cache.set("c", _intent("c"))

    assert len(cache) == 2
    assert "a" not in cache
    assert cache.get_stats()["evictions"] == 1


def test_resetting_a_key_makes_it_newest():
    cache = IntentCache(max_size=2)
    cache.set("a", _intent("a"))
    cache.set("b", _intent("b"))
    cache.set("a", _intent("a2"))
    cache.set("c", _intent("c"))

    assert "a" in cache
    assert "b" not in cache


def test_reads_do_not_refresh_eviction_order():
    cache = IntentCache(max_size=2)
    cache.set("a", _intent("a"))
    cache.set("b", _intent("b"))
    cache.get("a")
    cache.set("c", _intent("c"))

    assert "a" not in cache


def test_clear_resets_entries_and_counters():
    cache = IntentCache()
    cache.set("a", _intent())
    cache.get("a")
    cache.get("missing")
    cache.clear()

    stats = cache.get_stats()
    assert stats["size"] == 0
    assert stats["hits"] == 0
    assert stats["misses"] == 0

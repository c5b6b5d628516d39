"""
Intent Cache
TTL + insertion-ordered LRU cache for classified intents, shared by every
request. All access goes through one lock; nothing slow happens under it.
"""
import time
from collections import OrderedDict
from threading import Lock
from typing import Callable, Optional

from utils import get_logger
from .types import Intent, IntentCacheEntry, OrchestrationContext

logger = get_logger(__name__)


def make_cache_key(message: str, context: OrchestrationContext) -> str:
    """
    Message text plus the coarse state that changes routing: hour of day,
    whether there is a schedule, and task / email pressure.
    """
    return "_".join([
        message.lower().strip(),
        str(context.current_time.hour),
        str(context.has_schedule).lower(),
        str(context.task_pressure).lower(),
        str(context.email_pressure).lower(),
    ])


class IntentCache:
    """
    Oldest-inserted entries are evicted first once max_size is reached.
    Entries older than ttl_seconds are misses and are removed on access.
    """

    def __init__(
        self,
        max_size: int = 1000,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: OrderedDict[str, IntentCacheEntry] = OrderedDict()
        self._lock = Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> Optional[Intent]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self.clock() - entry.timestamp > self.ttl_seconds:
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return entry.intent

    def set(self, key: str, intent: Intent) -> None:
        with self._lock:
            if key in self._entries:
                # Re-insert so a refreshed key counts as newest
                del self._entries[key]
            elif len(self._entries) >= self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug(f"Evicted cached intent: {evicted[:50]}")
            self._entries[key] = IntentCacheEntry(intent=intent, timestamp=self.clock(), context_hash=key)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def get_stats(self) -> dict:
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "ttl_seconds": self.ttl_seconds,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "hit_rate": round(self._hits / total, 3) if total else 0.0,
            }

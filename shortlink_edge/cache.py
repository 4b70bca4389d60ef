"""In-process TTL cache of resolved short links.

Each running instance owns one TTLCache, constructed at startup and injected
into the redirect router. Nothing is shared across processes and nothing
survives a restart.

Flow Diagram — put()
====================
::
    ┌─────────────┐
    │ put(id, url, │
    │ ttl)         │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Acquire lock │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Drop old key │
    │ re-insert at │
    │ newest slot  │
    └──────┬──────┘
           ▼
    size > capacity?
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────────┐
│ Return  │  │ Evict oldest │
│ entry   │  │ batch in one │
└─────────┘  │ pass         │
             └─────────────┘

Key Behaviours
===============
- Expired entries are invisible to get() and removed when touched.
- Eviction is by insertion order, not recency of access. Expiry alone
  decides whether a URL may still be served; eviction only bounds memory.
- All access goes through a single lock, so a reader never observes a
  half-written entry and an insert plus its eviction is atomic.
"""

import itertools
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from prometheus_client import Counter, Gauge

__all__ = [
    "CacheEntry",
    "DEFAULT_CACHE_CAPACITY",
    "DEFAULT_EVICTION_BATCH",
    "TTLCache",
]

DEFAULT_CACHE_CAPACITY = 10_000
DEFAULT_EVICTION_BATCH = 1_000

CACHE_EVICTIONS_TOTAL = Counter(
    "shortlink_edge_cache_evictions_total",
    "Total cache entries removed by batch eviction",
)
CACHE_ENTRIES = Gauge(
    "shortlink_edge_cache_entries",
    "Number of entries currently held in the link cache",
)


@dataclass(frozen=True, slots=True)
class CacheEntry:
    short_id: str
    long_url: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def remaining(self, now: float) -> float:
        """Seconds left before the entry expires, never negative."""
        return max(0.0, self.expires_at - now)


class TTLCache:
    """Bounded short-id → long-URL mapping with per-entry expiry.

    Args:
        capacity: Entry count above which a batch eviction runs.
        eviction_batch: How many of the oldest-inserted keys one eviction removes.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CACHE_CAPACITY,
        eviction_batch: int = DEFAULT_EVICTION_BATCH,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        if eviction_batch < 1:
            raise ValueError("eviction_batch must be positive")
        if eviction_batch > capacity:
            raise ValueError("eviction_batch must not exceed capacity")
        self.capacity = capacity
        self.eviction_batch = eviction_batch
        self._clock = clock
        # dict keeps insertion order, which doubles as the eviction queue
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def now(self) -> float:
        return self._clock()

    def get(self, short_id: str) -> CacheEntry | None:
        """Return the live entry for ``short_id`` or ``None`` if missing/expired."""
        with self._lock:
            entry = self._entries.get(short_id)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[short_id]
                CACHE_ENTRIES.set(len(self._entries))
                return None
            return entry

    def put(self, short_id: str, long_url: str, ttl_seconds: float) -> CacheEntry:
        """Insert or replace ``short_id``; may trigger one batch eviction."""
        with self._lock:
            entry = CacheEntry(
                short_id=short_id,
                long_url=long_url,
                expires_at=self._clock() + ttl_seconds,
            )
            # A refresh counts as a new insertion for eviction order.
            self._entries.pop(short_id, None)
            self._entries[short_id] = entry
            if len(self._entries) > self.capacity:
                self._evict_oldest()
            CACHE_ENTRIES.set(len(self._entries))
            return entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            CACHE_ENTRIES.set(0)

    def _evict_oldest(self) -> None:
        """Remove the oldest ``eviction_batch`` keys (caller must hold lock)."""
        victims = list(itertools.islice(self._entries, self.eviction_batch))
        for key in victims:
            del self._entries[key]
        CACHE_EVICTIONS_TOTAL.inc(len(victims))

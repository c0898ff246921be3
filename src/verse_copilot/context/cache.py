"""Time-bounded cache of similar-pair results."""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger()

DEFAULT_TTL_SECONDS = 600.0
DEFAULT_SWEEP_INTERVAL_SECONDS = 120.0

CacheKey = tuple[str, int]


@dataclass(frozen=True)
class CacheEntry:
    """One stored result. Replaced, never mutated, on refresh."""

    key: CacheKey
    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass
class CacheStats:
    """Mutable counters for cache operations."""

    hits: int = 0
    misses: int = 0
    stores: int = 0
    evictions: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "stores": self.stores,
            "evictions": self.evictions,
        }


class ResultCache:
    """TTL cache keyed by (reference, requested count).

    Expired entries are never returned. Memory is reclaimed by a sweep that
    runs at most once per ``sweep_interval`` rather than on every read.
    Accessed only from the event loop thread, so no lock is held.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._last_sweep = clock()
        self._sweeper: Optional[asyncio.Task] = None
        self.stats = CacheStats()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: CacheKey) -> Optional[Any]:
        now = self._clock()
        self._maybe_sweep(now)
        entry = self._entries.get(key)
        if entry is None or entry.is_expired(now):
            self.stats.misses += 1
            return None
        self.stats.hits += 1
        return entry.value

    def put(self, key: CacheKey, value: Any) -> None:
        now = self._clock()
        self._entries[key] = CacheEntry(key=key, value=value, expires_at=now + self.ttl)
        self.stats.stores += 1
        self._maybe_sweep(now)

    def sweep(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        now = self._clock()
        self._last_sweep = now
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        self.stats.evictions += len(expired)
        if expired:
            logger.debug("similarity_cache_swept", evicted=len(expired), remaining=len(self._entries))
        return len(expired)

    def _maybe_sweep(self, now: float) -> None:
        if now - self._last_sweep >= self.sweep_interval:
            self.sweep()

    def invalidate(self) -> None:
        """Forget everything, e.g. after similarity settings changed."""
        count = len(self._entries)
        self._entries.clear()
        logger.info("similarity_cache_invalidated", dropped=count)

    def start_sweeper(self) -> asyncio.Task:
        """Run the sweep on a timer in the current event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_forever())
        return self._sweeper

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.sweep()

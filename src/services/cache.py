"""Generic in-memory TTL cache with bounded size.

One :class:`TTLCache` instance exists per external lookup kind (hazard-zone
resolution, emergency-contact lookup).  Entries expire a fixed duration after
insertion; expired entries are purged lazily on access and eagerly by
:meth:`TTLCache.purge_expired`, which the :class:`CacheSweeper` calls on a
schedule.  A slot is never rewritten in place: a miss followed by a fresh
fetch replaces it.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Hashable
from typing import Generic, TypeVar

import structlog

logger = structlog.get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Clock = Callable[[], float]


def coordinate_key(latitude: float, longitude: float, precision: int) -> str:
    """Round a coordinate pair into a stable cache key, e.g. ``"40.713,-74.006"``."""
    return f"{latitude:.{precision}f},{longitude:.{precision}f}"


# ---------------------------------------------------------------------------
# Cache entry
# ---------------------------------------------------------------------------


class CacheEntry(Generic[V]):
    """Single cache entry with an absolute expiry time."""

    __slots__ = ("expires_at", "value")

    def __init__(self, value: V, expires_at: float) -> None:
        self.value = value
        self.expires_at = expires_at

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


# ---------------------------------------------------------------------------
# TTLCache
# ---------------------------------------------------------------------------


class TTLCache(Generic[K, V]):
    """OrderedDict-based TTL cache with LRU eviction at capacity.

    Safe under cooperative scheduling via :class:`asyncio.Lock`, which also
    guards read-modify-write in :meth:`get_or_set` should evaluations ever
    run concurrently.

    Parameters
    ----------
    ttl_seconds:
        Time-to-live applied to every entry unless overridden per ``set``.
    max_size:
        Maximum number of entries before the least-recently-used is evicted.
    name:
        Label used in log events.
    clock:
        Monotonic time source in seconds.  Injectable for deterministic tests.
    """

    __slots__ = ("_clock", "_data", "_key_locks", "_lock", "_max_size", "_name", "_ttl")

    def __init__(
        self,
        ttl_seconds: float,
        *,
        max_size: int = 1_000,
        name: str = "cache",
        clock: Clock = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self._ttl = ttl_seconds
        self._max_size = max_size
        self._name = name
        self._clock = clock
        self._data: OrderedDict[K, CacheEntry[V]] = OrderedDict()
        self._lock = asyncio.Lock()
        self._key_locks: dict[K, asyncio.Lock] = {}

    # -- Properties ------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @property
    def size(self) -> int:
        """Return the current number of (possibly expired) entries."""
        return len(self._data)

    # -- Core operations -------------------------------------------------------

    async def get(self, key: K) -> V | None:
        async with self._lock:
            return self._get_locked(key)

    async def set(self, key: K, value: V, ttl_seconds: float | None = None) -> None:
        async with self._lock:
            self._set_locked(key, value, ttl_seconds)

    async def delete(self, key: K) -> None:
        async with self._lock:
            self._data.pop(key, None)

    async def contains(self, key: K) -> bool:
        async with self._lock:
            return self._get_locked(key) is not None

    async def get_or_set(
        self,
        key: K,
        factory_fn: Callable[[], Awaitable[V | None]],
        ttl_seconds: float | None = None,
    ) -> V | None:
        """Cache-aside: return the cached value or populate it from *factory_fn*.

        A ``None`` result from the factory is returned but never cached, so
        callers can signal "do not remember this" (e.g. a fallback value).
        Concurrent misses on the same key share one factory call; other
        keys are not blocked while the factory is awaited.
        """
        key_lock = self._key_locks.setdefault(key, asyncio.Lock())
        async with key_lock:
            cached = await self.get(key)
            if cached is not None:
                return cached
            value = await factory_fn()
            if value is not None:
                await self.set(key, value, ttl_seconds)
            return value

    async def purge_expired(self) -> int:
        """Remove every expired entry and return how many were purged."""
        async with self._lock:
            now = self._clock()
            stale = [key for key, entry in self._data.items() if entry.expired(now)]
            for key in stale:
                del self._data[key]
            idle_locks = [k for k, lock in self._key_locks.items() if k not in self._data and not lock.locked()]
            for key in idle_locks:
                del self._key_locks[key]
        if stale:
            logger.debug("cache.purged", cache=self._name, purged=len(stale), remaining=len(self._data))
        return len(stale)

    async def clear(self) -> None:
        async with self._lock:
            self._data.clear()

    # -- Internal helpers (caller holds the lock) -----------------------------

    def _get_locked(self, key: K) -> V | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry.expired(self._clock()):
            del self._data[key]
            return None
        # Move to end (most-recently-used)
        self._data.move_to_end(key)
        return entry.value

    def _set_locked(self, key: K, value: V, ttl_seconds: float | None) -> None:
        if key in self._data:
            del self._data[key]
        while len(self._data) >= self._max_size:
            evicted, _ = self._data.popitem(last=False)
            logger.debug("cache.evicted", cache=self._name, key=evicted)
        ttl = self._ttl if ttl_seconds is None else ttl_seconds
        self._data[key] = CacheEntry(value, self._clock() + ttl)


# ---------------------------------------------------------------------------
# CacheSweeper  --  scheduled purge of expired entries
# ---------------------------------------------------------------------------


class CacheSweeper:
    """Background task that periodically purges expired entries.

    Parameters
    ----------
    caches:
        The caches to sweep.
    interval_seconds:
        Delay between sweeps.
    """

    def __init__(self, caches: list[TTLCache], interval_seconds: float = 300.0) -> None:
        self._caches = list(caches)
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep_once(self) -> int:
        """Purge every registered cache once; return the total purged."""
        total = 0
        for cache in self._caches:
            total += await cache.purge_expired()
        return total

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._loop(), name="cache-sweeper")
        logger.info("cache_sweeper.started", interval_seconds=self._interval, caches=len(self._caches))

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("cache_sweeper.stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                purged = await self.sweep_once()
            except Exception:
                logger.warning("cache_sweeper.sweep_failed", exc_info=True)
                continue
            if purged:
                logger.info("cache_sweeper.swept", purged=purged)

"""In-memory TTL cache with LRU eviction for dashboard computations."""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from loguru import logger

from callassist_analytics.config import (
    CACHE_MAX_ENTRIES,
    CACHE_SWEEP_INTERVAL,
    DASHBOARD_CACHE_TTL,
)


@dataclass
class CacheEntry:
    data: Any
    expires_at: float
    last_accessed: float


def _retrieve_failure(task: asyncio.Task) -> None:
    # marks the failure retrieved even when every waiter was cancelled
    if not task.cancelled() and task.exception() is not None:
        logger.debug("Shared computation failed: {!r}", task.exception())


def build_cache_key(
    domain: str,
    tenant_id: str,
    granularity: str,
    category: str | None = None,
) -> str:
    """Cache key shared by all analyzers: ``{domain}_{tenant}_{granularity}_{category|all}``."""
    return f"{domain}_{tenant_id}_{granularity}_{category or 'all'}"


class AnalysisCache:
    """Bounded key -> value cache with per-entry expiry.

    Meant to be constructed once per process and handed to every analyzer.
    All access happens on one event loop, so no locking is needed.

    Concurrent ``get_or_compute`` calls for the same cold key share one
    in-flight computation instead of each invoking the producer.
    """

    def __init__(
        self,
        max_entries: int = CACHE_MAX_ENTRIES,
        default_ttl: float = DASHBOARD_CACHE_TTL,
        sweep_interval: float = CACHE_SWEEP_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_entries = max_entries
        self._default_ttl = default_ttl
        self._sweep_interval = sweep_interval
        self._clock = clock
        self._store: dict[str, CacheEntry] = {}
        self._inflight: dict[str, asyncio.Task] = {}
        self._sweeper: asyncio.Task | None = None
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        return key in self._store

    @property
    def max_entries(self) -> int:
        return self._max_entries

    # ── basic operations ─────────────────────────────────────────────────

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        if key not in self._store and len(self._store) >= self._max_entries:
            self._evict_least_recently_used()

        now = self._clock()
        self._store[key] = CacheEntry(
            data=value,
            expires_at=now + (self._default_ttl if ttl is None else ttl),
            last_accessed=now,
        )

    def get(self, key: str) -> Any | None:
        entry = self._lookup(key)
        return entry.data if entry is not None else None

    def delete(self, key: str) -> bool:
        return self._store.pop(key, None) is not None

    def clear(self) -> None:
        self._store.clear()

    def invalidate(self, prefix: str = "") -> int:
        """Drop every entry whose key starts with *prefix* (all entries if empty)."""
        if not prefix:
            n = len(self._store)
            self._store.clear()
            return n
        keys = [k for k in self._store if k.startswith(prefix)]
        for k in keys:
            del self._store[k]
        return len(keys)

    def stats(self) -> dict[str, int]:
        return {
            "size": len(self._store),
            "max_entries": self._max_entries,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "inflight": len(self._inflight),
        }

    # ── fetch-or-compute ─────────────────────────────────────────────────

    async def get_or_compute(
        self,
        key: str,
        producer: Callable[[], Awaitable[Any]],
        ttl: float | None = None,
    ) -> Any:
        """Return the cached value for *key*, or await *producer* and cache its result.

        A producer failure propagates unchanged and leaves nothing cached.
        A failing lookup is treated as a miss.
        """
        try:
            entry = self._lookup(key)
        except Exception:
            logger.opt(exception=True).warning("Cache lookup failed for {}, recomputing", key)
            entry = None

        if entry is not None:
            self.hits += 1
            logger.debug("Cache HIT: {}", key)
            return entry.data

        task = self._inflight.get(key)
        if task is None:
            self.misses += 1
            logger.debug("Cache MISS: {}", key)
            task = asyncio.ensure_future(self._compute(key, producer, ttl))
            task.add_done_callback(_retrieve_failure)
            self._inflight[key] = task
        else:
            logger.debug("Cache JOIN: {}", key)

        # shield: one cancelled caller must not cancel the shared computation
        return await asyncio.shield(task)

    async def _compute(
        self,
        key: str,
        producer: Callable[[], Awaitable[Any]],
        ttl: float | None,
    ) -> Any:
        try:
            value = await producer()
            try:
                self.set(key, value, ttl)
            except Exception:
                logger.opt(exception=True).warning("Cache store failed for {}", key)
            return value
        finally:
            self._inflight.pop(key, None)

    # ── expiry / eviction ────────────────────────────────────────────────

    def _lookup(self, key: str) -> CacheEntry | None:
        entry = self._store.get(key)
        if entry is None:
            return None

        now = self._clock()
        if now > entry.expires_at:
            del self._store[key]
            return None

        entry.last_accessed = now
        return entry

    def _evict_least_recently_used(self) -> None:
        oldest_key: str | None = None
        oldest_access = float("inf")
        for key, entry in self._store.items():
            if entry.last_accessed < oldest_access:
                oldest_access = entry.last_accessed
                oldest_key = key

        if oldest_key is not None:
            del self._store[oldest_key]
            self.evictions += 1
            logger.debug("Cache EVICT: {}", oldest_key)

    def sweep_expired(self) -> int:
        """Remove every expired entry; returns how many were removed."""
        now = self._clock()
        expired = [k for k, e in self._store.items() if now > e.expires_at]
        for k in expired:
            del self._store[k]
        return len(expired)

    def start_sweeper(self) -> None:
        """Start the periodic expiry sweep. Idempotent."""
        if self._sweeper is not None and not self._sweeper.done():
            return
        self._sweeper = asyncio.create_task(self._sweep_loop(), name="analysis-cache-sweeper")
        logger.info("[cache] Expiry sweep every {:.0f}s", self._sweep_interval)

    async def stop_sweeper(self) -> None:
        if self._sweeper is not None and not self._sweeper.done():
            self._sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweeper
            logger.info("[cache] Expiry sweep stopped")
        self._sweeper = None

    async def _sweep_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._sweep_interval)
                removed = self.sweep_expired()
                if removed:
                    logger.debug("[cache] Swept {} expired entries", removed)
        except asyncio.CancelledError:
            logger.debug("[cache] Sweep loop cancelled")
            raise

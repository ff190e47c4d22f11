"""
Core Module - TTL Cache.

============================================================
PURPOSE
============================================================
Small time-bounded cache for collaborator lookups (user tier,
KYC status).

- Keys are tuples built from request parameters, hashed natively
- One instance per cached query shape, each with its own lock
- Entries expire against the injected clock
- Loader failures are never cached

============================================================
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Tuple

from .clock import ClockFactory, ClockProtocol


logger = logging.getLogger(__name__)


CacheKey = Tuple[Hashable, ...]


class TTLCache:
    """
    Async-safe TTL cache.

    ============================================================
    USAGE
    ============================================================
        cache = TTLCache("user_tier", ttl_seconds=30)
        tier = await cache.get_or_load((user_id,), lambda: source.get_user_tier(user_id))

    ============================================================
    """

    def __init__(
        self,
        name: str,
        ttl_seconds: float,
        clock: Optional[ClockProtocol] = None,
        max_entries: int = 10_000,
    ):
        self._name = name
        self._ttl = ttl_seconds
        self._clock = clock or ClockFactory.get_clock()
        self._max_entries = max_entries
        self._entries: Dict[CacheKey, Tuple[float, Any]] = {}
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def enabled(self) -> bool:
        return self._ttl > 0

    async def get(self, key: CacheKey) -> Tuple[bool, Any]:
        """Return (found, value) for a live entry."""
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False, None
            expires_at, value = entry
            if self._clock.monotonic() >= expires_at:
                del self._entries[key]
                return False, None
            return True, value

    async def set(self, key: CacheKey, value: Any) -> None:
        if not self.enabled:
            return
        async with self._lock:
            if len(self._entries) >= self._max_entries:
                self._evict_expired()
            if len(self._entries) >= self._max_entries:
                # Still full: drop the entry closest to expiry
                oldest = min(self._entries, key=lambda k: self._entries[k][0])
                del self._entries[oldest]
            self._entries[key] = (self._clock.monotonic() + self._ttl, value)

    async def get_or_load(
        self,
        key: CacheKey,
        loader: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Return the cached value or await the loader and cache its result.

        The lock is not held while the loader runs, so two concurrent
        misses for the same key may both load. Both results are equal
        for a deterministic source.
        """
        if self.enabled:
            found, value = await self.get(key)
            if found:
                self._hits += 1
                logger.debug(f"Cache hit: {self._name} {key}")
                return value

        self._misses += 1
        value = await loader()
        await self.set(key, value)
        return value

    async def invalidate(self, key: CacheKey) -> None:
        async with self._lock:
            self._entries.pop(key, None)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    def _evict_expired(self) -> None:
        now = self._clock.monotonic()
        expired = [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]
        for k in expired:
            del self._entries[k]

    def stats(self) -> Dict[str, Any]:
        return {
            "name": self._name,
            "ttl_seconds": self._ttl,
            "entries": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
        }

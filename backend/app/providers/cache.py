"""Keyed in-memory TTL cache for provider responses.

Each provider instance owns (or is handed) its own cache, so tests can inject
a fresh one and nothing leaks through module globals.
"""

import asyncio
import time
from typing import Any, Callable, Optional


class TTLCache:
    """TTL cache with a per-key mutex for thundering herd protection."""

    def __init__(self, ttl: int, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._data: dict[str, dict[str, Any]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value if still fresh, else None."""
        entry = self._data.get(key)
        if not entry:
            return None
        if (self._clock() - entry["timestamp"]) >= self.ttl:
            return None
        return entry["data"]

    def set(self, key: str, data: Any) -> None:
        self._data[key] = {"data": data, "timestamp": self._clock()}
        self._cleanup()

    def invalidate(self, key: Optional[str] = None) -> None:
        if key is None:
            self._data.clear()
            self._locks.clear()
            return
        self._data.pop(key, None)
        self._locks.pop(key, None)

    def _cleanup(self) -> None:
        """Remove expired entries to prevent unbounded memory growth."""
        now = self._clock()
        expired = [k for k, v in self._data.items() if (now - v["timestamp"]) > self.ttl * 10]
        for k in expired:
            del self._data[k]
            self._locks.pop(k, None)

    def get_lock(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    async def get_or_fetch(self, key: str, fetch: Callable[[], Any]) -> Any:
        """Serve fresh cache, otherwise run ``fetch`` once per key and cache its result.

        Exceptions from ``fetch`` propagate and nothing is cached, so a
        failed request is retried on the next call.
        """
        cached = self.get(key)
        if cached is not None:
            return cached
        async with self.get_lock(key):
            cached = self.get(key)
            if cached is not None:
                return cached
            data = await fetch()
            self.set(key, data)
            return data

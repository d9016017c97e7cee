"""
backend/app/services/provider_rate_limiter.py

Purpose:
    Process-local requests-per-minute limiter keyed by provider name. Both
    data feeds are billed per request, so every HTTP call of a settlement
    pass draws a token from its provider's bucket first.

Dependencies:
    - asyncio
    - time
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field


@dataclass
class _Bucket:
    capacity: float
    refill_per_second: float
    tokens: float
    updated_at: float = field(default_factory=time.monotonic)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def refill(self, now: float) -> None:
        elapsed = max(0.0, now - self.updated_at)
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_per_second)
        self.updated_at = now


class ProviderRateLimiter:
    """Token bucket per provider; ``rpm`` of None/0 disables limiting."""

    def __init__(self) -> None:
        self._buckets: dict[str, _Bucket] = {}

    def _bucket_for(self, provider: str, rpm: int) -> _Bucket:
        capacity = max(1.0, float(rpm))
        bucket = self._buckets.get(provider)
        if bucket is None or bucket.capacity != capacity:
            bucket = _Bucket(
                capacity=capacity,
                refill_per_second=capacity / 60.0,
                tokens=capacity if bucket is None else min(bucket.tokens, capacity),
            )
            self._buckets[provider] = bucket
        return bucket

    async def acquire(self, provider: str, rpm: int | None) -> None:
        if not rpm or int(rpm) <= 0:
            return
        key = str(provider or "").strip().lower()
        if not key:
            return

        bucket = self._bucket_for(key, int(rpm))
        while True:
            async with bucket.lock:
                bucket.refill(time.monotonic())
                if bucket.tokens >= 1.0:
                    bucket.tokens -= 1.0
                    return
                wait_seconds = (1.0 - bucket.tokens) / bucket.refill_per_second
            await asyncio.sleep(wait_seconds)

    def available(self, provider: str) -> float | None:
        bucket = self._buckets.get(str(provider or "").strip().lower())
        if bucket is None:
            return None
        bucket.refill(time.monotonic())
        return bucket.tokens


provider_rate_limiter = ProviderRateLimiter()

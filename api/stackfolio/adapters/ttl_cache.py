"""In-memory TTL cache with per-key single-flight loading.

Each instance owns one namespace (``packages``, ``files``, ``platforms``,
``repositories``); keys are prefixed with it so that entries from different
datasets never collide even when instances share a backing dict in tests.
Instances live on ``app.state`` for the whole process and are passed to the
services that need them.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

log = logging.getLogger(__name__)


class CacheKeyError(LookupError):
    """Raised for keys that are not non-empty strings. Indicates a bug."""


class TTLCache:
    def __init__(
        self,
        namespace: str,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not namespace:
            raise ValueError("namespace must be non-empty")
        self.namespace = namespace
        self.ttl_seconds = max(0.0, float(ttl_seconds))
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._inflight: dict[str, asyncio.Future] = {}

    def _key(self, key: str) -> str:
        if not isinstance(key, str) or not key.strip():
            raise CacheKeyError(f"invalid cache key {key!r} for namespace {self.namespace}")
        return f"{self.namespace}:{key}"

    def get(self, key: str) -> Any:
        """Return the live value for ``key`` or None when missing or expired."""
        full_key = self._key(key)
        entry = self._entries.get(full_key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            self._entries.pop(full_key, None)
            return None
        return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else max(0.0, float(ttl_seconds))
        self._entries[self._key(key)] = (self._clock() + ttl, value)

    def delete(self, key: str) -> bool:
        return self._entries.pop(self._key(key), None) is not None

    def flush(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for expires_at, _ in self._entries.values() if expires_at > now)

    async def get_or_load(
        self,
        key: str,
        loader: Callable[[], Awaitable[Any]],
        ttl_seconds: Optional[float] = None,
        ttl_for: Optional[Callable[[Any], Optional[float]]] = None,
    ) -> Any:
        """Return the cached value, or run ``loader`` once for all concurrent callers.

        None results are returned but not stored. A loader exception reaches
        every waiter and leaves the key uncached. ``ttl_for`` picks the TTL
        from the loaded value and overrides ``ttl_seconds`` when it returns
        a number.
        """
        cached = self.get(key)
        if cached is not None:
            return cached
        full_key = self._key(key)
        pending = self._inflight.get(full_key)
        if pending is None:
            pending = asyncio.ensure_future(self._load(key, full_key, loader, ttl_seconds, ttl_for))
            self._inflight[full_key] = pending
        else:
            log.debug("cache_join_inflight namespace=%s key=%s", self.namespace, key)
        return await asyncio.shield(pending)

    async def _load(
        self,
        key: str,
        full_key: str,
        loader: Callable[[], Awaitable[Any]],
        ttl_seconds: Optional[float],
        ttl_for: Optional[Callable[[Any], Optional[float]]],
    ) -> Any:
        try:
            log.info("cache_miss namespace=%s key=%s", self.namespace, key)
            value = await loader()
            if value is not None:
                chosen = ttl_for(value) if ttl_for is not None else None
                self.set(key, value, ttl_seconds=ttl_seconds if chosen is None else chosen)
            return value
        finally:
            self._inflight.pop(full_key, None)

"""Adapters for process-local storage: TTL cache."""

from stackfolio.adapters.ttl_cache import CacheKeyError, TTLCache

__all__ = ["CacheKeyError", "TTLCache"]

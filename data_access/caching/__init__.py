"""
Caching package.

Provides the bounded TTL cache store and the cache-aside fetch helper built
on it. Stores are constructed explicitly and passed to their consumers.
"""

from .cache_store import CacheEntry, CacheStore, DEFAULT_MAX_SIZE, DEFAULT_TTL
from .cache_aside import CacheAside

__all__ = [
    "CacheEntry",
    "CacheStore",
    "CacheAside",
    "DEFAULT_MAX_SIZE",
    "DEFAULT_TTL",
]

"""
Bounded in-memory cache store with per-entry TTL.
"""

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING

from shared.errors import ConfigurationError
from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.config import DataAccessConfig
    from shared.metrics import MetricsCollector


DEFAULT_MAX_SIZE = 100
DEFAULT_TTL = 5 * 60  # seconds

EVICTION_POLICIES = ("fifo", "lru")


@dataclass(frozen=True)
class CacheEntry:
    """A single cache entry with TTL."""
    data: Any
    inserted_at: float
    ttl: float  # TTL in seconds

    def is_expired(self, now: float) -> bool:
        return now - self.inserted_at > self.ttl


class CacheStore:
    """In-memory cache bounded by ``max_size`` with TTL expiry.

    Entries expire lazily on ``get`` and are swept before every ``set``.
    When the store is full the oldest entry is evicted. With the default
    ``"fifo"`` policy reads do not change eviction order; with ``"lru"``
    a successful ``get`` moves the entry to the back.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        default_ttl: float = DEFAULT_TTL,
        eviction_policy: str = "fifo",
        *,
        clock: Callable[[], float] = time.monotonic,
        metrics: Optional["MetricsCollector"] = None,
    ):
        if max_size < 1:
            raise ConfigurationError("max_size must be >= 1", details={"max_size": max_size})
        if eviction_policy not in EVICTION_POLICIES:
            raise ConfigurationError(
                f"Unknown eviction policy: {eviction_policy}",
                details={"eviction_policy": eviction_policy, "supported": list(EVICTION_POLICIES)}
            )

        self.max_size = max_size
        self.default_ttl = default_ttl
        self.eviction_policy = eviction_policy
        self.metrics = metrics
        self.logger = get_logger("data_access.cache_store")

        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()

    @classmethod
    def from_config(cls, config: "DataAccessConfig", **kwargs) -> "CacheStore":
        """Build a store from settings."""
        return cls(
            max_size=config.cache_max_size,
            default_ttl=config.cache_default_ttl,
            eviction_policy=config.cache_eviction_policy,
            **kwargs
        )

    def set(self, key: str, data: Any, ttl: Optional[float] = None) -> None:
        """Store ``data`` under ``key``, evicting the oldest entry when full."""
        self._sweep_expired()

        if key in self._entries:
            # Overwrite counts as a fresh insertion
            del self._entries[key]
        elif len(self._entries) >= self.max_size:
            oldest_key, _ = self._entries.popitem(last=False)
            self.logger.debug("Evicted cache entry", key=oldest_key, max_size=self.max_size)
            if self.metrics:
                self.metrics.record_eviction("capacity")

        self._entries[key] = CacheEntry(
            data=data,
            inserted_at=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl
        )

    def get(self, key: str) -> Optional[Any]:
        """Get cached data if present and not expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if entry.is_expired(self._clock()):
            del self._entries[key]
            self.logger.debug("Expired cache entry", key=key)
            if self.metrics:
                self.metrics.record_eviction("expired")
            return None

        if self.eviction_policy == "lru":
            self._entries.move_to_end(key)

        return entry.data

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def delete(self, key: str) -> bool:
        """Remove ``key``; returns whether an entry was removed."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Clear all cache entries."""
        self._entries.clear()

    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        return {
            "size": len(self._entries),
            "max_size": self.max_size,
            "keys": list(self._entries.keys()),
        }

    def _sweep_expired(self) -> None:
        """Drop every expired entry."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]

        if expired:
            self.logger.debug("Swept expired cache entries", count=len(expired))
            if self.metrics:
                for _ in expired:
                    self.metrics.record_eviction("expired")

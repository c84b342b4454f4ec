"""Short-lived memoization for enrichment lookups."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, Optional, TypeVar

logger = logging.getLogger("nearsky.ttl_cache")

V = TypeVar("V")


@dataclass
class CacheEntry(Generic[V]):
    value: V
    expires_at: float


class TTLCache(Generic[V]):
    """Map with a per-entry absolute expiry.

    Expired entries are evicted lazily on read; there is no background sweep
    and no size bound.
    """

    def __init__(self, name: str = "cache", *, clock: Callable[[], float] = time.monotonic):
        self.name = name
        self._clock = clock
        self._entries: dict[Hashable, CacheEntry[V]] = {}

    def get(self, key: Hashable) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() > entry.expires_at:
            del self._entries[key]
            logger.debug("%s cache entry expired: %s", self.name, key)
            return None
        return entry.value

    def set(self, key: Hashable, value: V, ttl: float) -> None:
        """Store ``value`` until ``ttl`` seconds from now."""

        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

    def __contains__(self, key: Hashable) -> bool:
        # raw inspection, does not evict
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["CacheEntry", "TTLCache"]

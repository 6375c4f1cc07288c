"""Time-bounded in-memory cache for reader results."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ohmydashboard import config


@dataclass
class _CacheEntry:
    expires_at: float
    data: Any


class TTLCache:
    """Key/value store whose entries expire ``ttl`` seconds after being set.

    Expired entries are dropped lazily when read. Reads never extend an
    entry's lifetime, and concurrent writers to one key simply overwrite
    each other.
    """

    def __init__(self, ttl: float = config.CACHE_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl = float(ttl)
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() > entry.expires_at:
            self._entries.pop(key, None)
            return None
        return entry.data

    def set(self, key: str, data: Any) -> None:
        self._entries[key] = _CacheEntry(expires_at=self._clock() + self.ttl, data=data)

    def invalidate(self, key: str | None = None) -> None:
        if key:
            self._entries.pop(key, None)
        else:
            self._entries.clear()

    def keys(self) -> list[str]:
        """Return keys that have not expired yet, without purging anything."""
        now = self._clock()
        return [key for key, entry in self._entries.items() if now <= entry.expires_at]

"""
TTL response cache for registry clients.

Expired entries are kept until evicted so a client can fall back to the last
known rows when a registry rejects a query.
"""

import time
from typing import Any, Callable, Dict, Optional, Tuple


class ResponseCache:
    """Per-client cache of decoded JSON responses."""

    def __init__(self, ttl: float = 3600, max_entries: int = 500, clock: Callable[[], float] = time.time):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._stats = {"hits": 0, "misses": 0, "evictions": 0, "stale_hits": 0}

    def get(self, key: str, allow_stale: bool = False) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            self._stats["misses"] += 1
            return None
        expires_at, value = entry
        if expires_at < self._clock():
            if allow_stale:
                self._stats["stale_hits"] += 1
                return value
            self._stats["misses"] += 1
            return None
        self._stats["hits"] += 1
        return value

    def set(self, key: str, value: Any) -> None:
        if key not in self._entries and len(self._entries) >= self.max_entries:
            oldest_key = min(self._entries.items(), key=lambda item: item[1][0])[0]
            self._entries.pop(oldest_key, None)
            self._stats["evictions"] += 1
        self._entries[key] = (self._clock() + self.ttl, value)

    def clear(self) -> None:
        self._entries.clear()
        for name in self._stats:
            self._stats[name] = 0

    def stats(self) -> Dict[str, int]:
        return {**self._stats, "entries": len(self._entries)}

"""Key-value cache backends with per-key TTL.

``CacheBackend`` is the narrow interface the cache coordinator depends on
(get / set-with-TTL / delete).  ``InMemoryCache`` is the in-process
implementation used by default and in tests; a networked backend only has
to provide the same three coroutines.
"""

import json
import logging
import os
import time
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)

CACHE_MAX_ENTRIES = int(os.getenv("CACHE_MAX_ENTRIES", "1000"))


class CacheBackend(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> None: ...


class InMemoryCache:
    """Process-local TTL cache storing serialized payloads.

    Entries are ``key -> (payload, expires_at)`` on the monotonic clock.
    Expired entries are evicted lazily on read; when the cache grows past
    ``max_entries`` the entry closest to expiry is dropped.
    """

    def __init__(self, max_entries: int = CACHE_MAX_ENTRIES, clock=time.monotonic):
        self._entries: dict[str, tuple[str, float]] = {}
        self._max_entries = max_entries
        self._clock = clock

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        payload, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]  # Evict stale entry
            return None
        return payload

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if key not in self._entries and len(self._entries) >= self._max_entries:
            oldest_key = min(self._entries, key=lambda k: self._entries[k][1])
            del self._entries[oldest_key]
        self._entries[key] = (value, self._clock() + ttl_seconds)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


def dumps(payload: Any) -> str:
    return json.dumps(payload, default=str)


def loads(raw: str) -> Any:
    return json.loads(raw)

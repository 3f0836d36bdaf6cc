"""Read-through / invalidate-on-write cache for profile reads.

Key scheme:

- ``api:profiles``            -- aggregate listing of all profiles.  Carries a
  fixed TTL and is never invalidated by single-profile writes, so a listing
  may be stale for up to ``PROFILES_CACHE_TTL_SECONDS``.
- ``api:profile:{user_id}``   -- one profile plus its proposal account.
  Deleted by every write to that profile or account.

A failing backend is treated as a cache miss: reads fall through to the
loader and writes/invalidations are logged and skipped.  The coordinator
only ever touches the cache, never the entities themselves.

A read that misses loads the row and then stores it.  If an invalidation
for the same key lands between the load and the store, the loaded value
may predate the write, so it is returned but not stored.  The check uses a
per-key counter held by the coordinator, so it only covers writers in the
same process; a second process sharing the backend can still leave a
stale entry until its TTL runs out.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from gigboard.cache import CacheBackend, dumps, loads

logger = logging.getLogger(__name__)

PROFILE_CACHE_TTL_SECONDS = int(os.getenv("PROFILE_CACHE_TTL_SECONDS", "300"))
PROFILES_CACHE_TTL_SECONDS = int(os.getenv("PROFILES_CACHE_TTL_SECONDS", "1000"))

PROFILES_KEY = "api:profiles"

SOURCE_CACHE = "cache"
SOURCE_FRESH = "fresh"


def profile_key(user_id: Any) -> str:
    return f"api:profile:{user_id}"


@dataclass(frozen=True)
class CachedRead:
    """A payload tagged with where it came from."""

    source: str
    data: Any

    @property
    def from_cache(self) -> bool:
        return self.source == SOURCE_CACHE


class CacheCoordinator:
    """Serves cached profile reads and invalidates them on write."""

    def __init__(
        self,
        backend: CacheBackend,
        profile_ttl: int = PROFILE_CACHE_TTL_SECONDS,
        profiles_ttl: int = PROFILES_CACHE_TTL_SECONDS,
    ):
        self.backend = backend
        self.profile_ttl = profile_ttl
        self.profiles_ttl = profiles_ttl
        self._generations: dict[str, int] = {}

    async def get_all_profiles(
        self, loader: Callable[[], Awaitable[Any]]
    ) -> CachedRead:
        return await self._read_through(PROFILES_KEY, self.profiles_ttl, loader)

    async def get_profile(
        self, user_id: Any, loader: Callable[[], Awaitable[Any]]
    ) -> CachedRead:
        return await self._read_through(profile_key(user_id), self.profile_ttl, loader)

    async def invalidate_profile(self, user_id: Any) -> None:
        """Drop the single-profile key for *user_id*.

        Must be awaited before the write that caused it is acknowledged.
        The aggregate listing key is left to expire on its TTL.
        """
        key = profile_key(user_id)
        self._generations[key] = self._generations.get(key, 0) + 1
        try:
            await self.backend.delete(key)
            logger.debug("Invalidated cache key %s", key)
        except Exception as e:
            logger.warning("Cache delete failed for %s: %s", key, e)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _read_through(
        self, key: str, ttl: int, loader: Callable[[], Awaitable[Any]]
    ) -> CachedRead:
        cached = await self._safe_get(key)
        if cached is not None:
            return CachedRead(SOURCE_CACHE, cached)

        generation = self._generations.get(key, 0)
        data = await loader()
        if data is None:
            return CachedRead(SOURCE_FRESH, data)
        if self._generations.get(key, 0) != generation:
            logger.debug("Skipping cache store for %s, invalidated during load", key)
        else:
            await self._safe_set(key, data, ttl)
        return CachedRead(SOURCE_FRESH, data)

    async def _safe_get(self, key: str) -> Optional[Any]:
        try:
            raw = await self.backend.get(key)
        except Exception as e:
            logger.warning("Cache get failed for %s, treating as miss: %s", key, e)
            return None
        if raw is None:
            return None
        try:
            return loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable cache entry %s", key)
            return None

    async def _safe_set(self, key: str, data: Any, ttl: int) -> None:
        try:
            await self.backend.set(key, dumps(data), ttl)
        except Exception as e:
            logger.warning("Cache set failed for %s: %s", key, e)

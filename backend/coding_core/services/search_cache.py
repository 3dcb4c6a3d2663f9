"""Two-tier read-through cache for code search results.

Tier 1 is an in-process dict with wall-clock expiry. Tier 2 is Redis,
checked on a tier-1 miss and copied back into tier 1 on a hit. Both tiers
are best-effort: Redis errors are logged and reported as degraded
outcomes, never raised, and the database stays authoritative.

Values must be JSON-serializable (search results are stored as lists of
dicts).
"""

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from redis.asyncio import Redis

from coding_core.schemas.base import CodeSystemKind
from coding_core.schemas.coding import SearchOptions
from coding_core.services.outcome import Outcome

logger = logging.getLogger(__name__)

KEY_PREFIX = "codeSearch"
DEFAULT_TTL_SECONDS = 30


@dataclass
class CacheEntry:
    """A cached value with its absolute expiry time."""

    value: Any
    expires_at: float


class SearchCache:
    """In-process map backed by an optional Redis client.

    Usage:
        cache = SearchCache(get_redis(), ttl_seconds=30)
        key = SearchCache.build_key("cholera", CodeSystemKind.ICD10, 25, SearchOptions())
        lookup = await cache.get(key)
        if not lookup.ok:
            ...
            await cache.set(key, payload)
    """

    def __init__(
        self,
        redis_client: Redis | None = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._redis = redis_client
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    @property
    def local_size(self) -> int:
        """Number of entries currently held in the in-process tier."""
        return len(self._entries)

    @staticmethod
    def build_key(
        query: str,
        system_kind: CodeSystemKind | str | None,
        limit: int,
        options: SearchOptions,
    ) -> str:
        """Build the composite key for a search.

        Every parameter that changes the result set is part of the key, so
        distinct searches never collide and identical ones always hit.
        """
        kind = system_kind.value if isinstance(system_kind, CodeSystemKind) else system_kind
        sex = options.sex_restriction.value if options.sex_restriction else ""
        return ":".join(
            [
                KEY_PREFIX,
                kind or "ANY",
                "1" if options.fts else "0",
                options.chapter or "",
                sex,
                "1" if options.categories_only else "0",
                str(limit),
                query.strip().lower(),
            ]
        )

    def _get_local(self, key: str) -> Outcome[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return Outcome.miss()
        if self._clock() > entry.expires_at:
            del self._entries[key]
            return Outcome.miss()
        return Outcome.success(entry.value)

    def _set_local(self, key: str, value: Any) -> None:
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + self._ttl_seconds)

    async def get(self, key: str) -> Outcome[Any]:
        """Look a key up in the in-process tier, then in Redis.

        Returns a successful outcome on a hit (including a cached empty
        list), a miss when neither tier has the key, and a degraded outcome
        when Redis could not be read.
        """
        local = self._get_local(key)
        if local.ok:
            return local

        if self._redis is None:
            return Outcome.miss()

        try:
            raw = await self._redis.get(key)
        except Exception as e:
            logger.warning(f"Search cache read from Redis failed for {key!r}: {e}")
            return Outcome.failure(f"redis get failed: {e}")

        if raw is None:
            return Outcome.miss()

        try:
            value = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Discarding undecodable search cache entry {key!r}: {e}")
            return Outcome.failure(f"invalid cached payload: {e}")

        self._set_local(key, value)
        return Outcome.success(value)

    async def set(self, key: str, value: Any) -> Outcome[bool]:
        """Store a value in both tiers with the configured TTL."""
        self._set_local(key, value)

        if self._redis is None:
            return Outcome.success(False)

        try:
            await self._redis.setex(key, self._ttl_seconds, json.dumps(value, default=str))
        except Exception as e:
            logger.warning(f"Search cache write to Redis failed for {key!r}: {e}")
            return Outcome.failure(f"redis setex failed: {e}")

        return Outcome.success(True)

    def clear_local(self) -> None:
        """Drop every in-process entry."""
        self._entries.clear()

    async def invalidate_all(self) -> Outcome[int]:
        """Invalidate every cached search after a catalog change.

        The in-process tier is always cleared. Search keys in Redis are then
        deleted best-effort so a distributed hit cannot resurrect a
        pre-import result; the outcome carries the number of deleted keys.
        """
        self.clear_local()

        if self._redis is None:
            return Outcome.success(0)

        deleted = 0
        try:
            async for key in self._redis.scan_iter(match=f"{KEY_PREFIX}:*"):
                deleted += await self._redis.delete(key)
        except Exception as e:
            logger.warning(f"Search cache invalidation in Redis failed: {e}")
            return Outcome.failure(f"redis invalidation failed: {e}")

        return Outcome.success(deleted)

"""Best-effort Redis cache used for product browsing and search results."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Annotated, Any, TypeVar

import redis.asyncio as redis
from fastapi import Depends
from redis.exceptions import RedisError

from src.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

PRODUCT_CACHE_PATTERN = "cache:/products*"
SEARCH_CACHE_PATTERN = "search:*"
CATALOG_CACHE_PATTERNS = (PRODUCT_CACHE_PATTERN, SEARCH_CACHE_PATTERN)

# Connection and timeout failures both surface as one of these.
_BACKEND_ERRORS = (RedisError, OSError, asyncio.TimeoutError)

_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """Return a singleton Redis client for the current process."""

    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_timeout=settings.CACHE_TIMEOUT_SECONDS,
            socket_connect_timeout=settings.CACHE_TIMEOUT_SECONDS,
        )
    return _redis_client


def product_list_key(category: str | None = None) -> str:
    if category:
        return f"cache:/products?category={category.strip().lower()}"
    return "cache:/products"


def product_detail_key(product_id: str) -> str:
    return f"cache:/products/{product_id}"


def search_key(term: str) -> str:
    return f"search:{term.strip().lower()}"


class CacheService:
    """Read-through cache facade that never lets backend errors escape.

    Every method treats an unreachable or slow Redis as a miss (or a no-op for
    writes) and logs the failure. The cache is never consulted for values that
    decide what a buyer is charged.
    """

    def __init__(self, client: redis.Redis | None, *, enabled: bool = True) -> None:
        self._client = client
        self._enabled = enabled and client is not None
        self._pending: set[asyncio.Task[None]] = set()
        # Bumped by every invalidation; read-through fills computed across a
        # bump are not stored.
        self._generation = 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def get(self, key: str) -> Any | None:
        if not self._enabled:
            return None
        try:
            raw = await self._client.get(key)
        except _BACKEND_ERRORS as exc:
            logger.warning("Redis GET failed for %s: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable cache entry %s", key)
            return None

    async def set_with_ttl(self, key: str, value: Any, ttl: int) -> bool:
        if not self._enabled:
            return False
        try:
            await self._client.set(key, json.dumps(value, default=str), ex=ttl)
            return True
        except _BACKEND_ERRORS as exc:
            logger.warning("Redis SET failed for %s: %s", key, exc)
            return False

    async def delete(self, key: str) -> bool:
        if not self._enabled:
            return False
        try:
            await self._client.delete(key)
            return True
        except _BACKEND_ERRORS as exc:
            logger.warning("Redis DEL failed for %s: %s", key, exc)
            return False

    async def delete_by_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern; returns the number removed."""
        if not self._enabled:
            return 0
        try:
            keys = [key async for key in self._client.scan_iter(match=pattern)]
            if not keys:
                return 0
            return await self._client.delete(*keys)
        except _BACKEND_ERRORS as exc:
            logger.warning("Redis pattern delete failed for %s: %s", pattern, exc)
            return 0

    async def get_or_compute(
        self,
        key: str,
        ttl: int,
        compute: Callable[[], Awaitable[T]],
    ) -> T | Any:
        """Return the cached value for ``key`` or compute, store and return it."""

        cached = await self.get(key)
        if cached is not None:
            logger.debug("Cache HIT: %s", key)
            return cached

        logger.debug("Cache MISS: %s", key)
        generation = self._generation
        value = await compute()
        if generation != self._generation:
            logger.debug("Skipping cache fill for %s after invalidation", key)
            return value

        await self.set_with_ttl(key, value, ttl)
        if generation != self._generation:
            # An invalidation started while the fill was in flight.
            await self.delete(key)
        return value

    async def invalidate(self, pattern_or_key: str) -> int:
        self._generation += 1
        if any(ch in pattern_or_key for ch in "*?["):
            removed = await self.delete_by_pattern(pattern_or_key)
        else:
            removed = 1 if await self.delete(pattern_or_key) else 0
        logger.info(
            "Cache invalidated: %s",
            pattern_or_key,
            extra={"pattern": pattern_or_key, "removed": removed},
        )
        return removed

    def schedule_invalidation(self, *patterns: str) -> asyncio.Task[None] | None:
        """Invalidate patterns in the background without blocking the caller."""

        if not self._enabled or not patterns:
            return None

        task = asyncio.create_task(self._invalidate_all(patterns))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for outstanding background invalidations to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def ping(self) -> bool:
        if not self._enabled:
            return False
        try:
            return bool(await self._client.ping())
        except _BACKEND_ERRORS:
            return False

    async def _invalidate_all(self, patterns: tuple[str, ...]) -> None:
        for pattern in patterns:
            try:
                await self.invalidate(pattern)
            except Exception:
                logger.exception("Failed to invalidate cache pattern %s", pattern)


_cache_service: CacheService | None = None


def get_cache_service(
    client: Annotated[redis.Redis, Depends(get_redis_client)],
) -> CacheService:
    """FastAPI dependency returning the cache bound to the current Redis client."""

    global _cache_service
    if _cache_service is None or _cache_service._client is not client:
        _cache_service = CacheService(client, enabled=settings.CACHE_ENABLED)
    return _cache_service


CacheDependency = Annotated[CacheService, Depends(get_cache_service)]

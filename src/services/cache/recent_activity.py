"""Per-user recent searches and recently viewed products kept in Redis lists."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import UTC, datetime
from typing import Annotated, Any

import redis.asyncio as redis
from fastapi import Depends
from redis.exceptions import RedisError

from src.config import settings
from src.services.cache.cache_service import get_redis_client

logger = logging.getLogger(__name__)

_BACKEND_ERRORS = (RedisError, OSError, asyncio.TimeoutError)


class RecentActivityStore:
    """Capped, newest-first lists with a rolling expiration.

    These lists are conveniences only: every failure is logged and swallowed.
    """

    def __init__(self, client: redis.Redis):
        self._client = client
        self._ttl = settings.RECENT_ACTIVITY_TTL_SECONDS

    @staticmethod
    def _searches_key(user_id: str) -> str:
        return f"recent_searches:{user_id}"

    @staticmethod
    def _viewed_key(user_id: str) -> str:
        return f"recently_viewed:{user_id}"

    async def add_recent_search(
        self, user_id: str, query: str, max_results: int | None = None
    ) -> bool:
        limit = max_results or settings.RECENT_SEARCHES_MAX
        entry = json.dumps({"query": query, "timestamp": self._timestamp()})
        return await self._push(self._searches_key(user_id), entry, limit)

    async def get_recent_searches(
        self, user_id: str, limit: int | None = None
    ) -> list[dict[str, Any]]:
        return await self._range(
            self._searches_key(user_id), limit or settings.RECENT_SEARCHES_MAX
        )

    async def clear_recent_searches(self, user_id: str) -> bool:
        try:
            await self._client.delete(self._searches_key(user_id))
            return True
        except _BACKEND_ERRORS as exc:
            logger.warning("Failed to clear recent searches for %s: %s", user_id, exc)
            return False

    async def add_recently_viewed(
        self, user_id: str, product: dict[str, Any], max_products: int | None = None
    ) -> bool:
        """Record a product view, moving an earlier view of it to the front."""

        key = self._viewed_key(user_id)
        limit = max_products or settings.RECENTLY_VIEWED_MAX
        product_id = product.get("_id")
        try:
            for raw in await self._client.lrange(key, 0, -1):
                if self._decode(raw).get("_id") == product_id:
                    await self._client.lrem(key, 0, raw)
        except _BACKEND_ERRORS as exc:
            logger.warning("Failed to dedupe recently viewed for %s: %s", user_id, exc)
            return False

        entry = json.dumps({**product, "viewed_at": self._timestamp()}, default=str)
        return await self._push(key, entry, limit)

    async def get_recently_viewed(
        self, user_id: str, limit: int = 10
    ) -> list[dict[str, Any]]:
        return await self._range(self._viewed_key(user_id), limit)

    async def _push(self, key: str, entry: str, limit: int) -> bool:
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.lpush(key, entry)
                pipe.ltrim(key, 0, limit - 1)
                pipe.expire(key, self._ttl)
                await pipe.execute()
            return True
        except _BACKEND_ERRORS as exc:
            logger.warning("Failed to append to %s: %s", key, exc)
            return False

    async def _range(self, key: str, limit: int) -> list[dict[str, Any]]:
        try:
            raw_entries = await self._client.lrange(key, 0, limit - 1)
        except _BACKEND_ERRORS as exc:
            logger.warning("Failed to read %s: %s", key, exc)
            return []
        return [self._decode(raw) for raw in raw_entries]

    @staticmethod
    def _decode(raw: str | bytes) -> dict[str, Any]:
        try:
            return json.loads(raw)
        except ValueError:
            return {}

    @staticmethod
    def _timestamp() -> str:
        return datetime.now(UTC).isoformat()


def get_recent_activity_store(
    client: Annotated[redis.Redis, Depends(get_redis_client)],
) -> RecentActivityStore:
    return RecentActivityStore(client)


RecentActivityDependency = Annotated[
    RecentActivityStore, Depends(get_recent_activity_store)
]

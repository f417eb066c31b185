"""Redis-backed job store for multi-worker deployments.

Records are JSON strings written with ``SET ... EX``. Ordered sets (batch
membership, context indexes) are a Redis list guarded by a companion set:
``SADD`` decides whether a member is new, so concurrent appends of the
same id push it once.

Key pattern: magic_actions:<key>
"""

import json
from typing import Any, Optional

import structlog

from magic_actions.jobs.store import JobStore

logger = structlog.get_logger(__name__)


class RedisJobStore(JobStore):
    """Redis store shared by all API and worker processes."""

    def __init__(self, redis_url: str, prefix: str = "magic_actions:"):
        """
        Initialize Redis job store.

        Args:
            redis_url: Redis connection URL (redis://host:port/db or rediss://...)
            prefix: Namespace prepended to every key
        """
        self._redis_url = redis_url
        self._prefix = prefix
        self._redis: "redis.asyncio.Redis | None" = None

    async def _get_redis(self) -> "redis.asyncio.Redis":
        """Get or create Redis connection."""
        if self._redis is None:
            import redis.asyncio as redis_async

            self._redis = redis_async.from_url(
                self._redis_url,
                decode_responses=True,
                socket_connect_timeout=5.0,
                socket_keepalive=True,
            )
            await self._redis.ping()
            logger.info("redis_job_store_connected", url=self._redis_url[:30] + "...")

        return self._redis

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _set_keys(self, key: str) -> tuple[str, str]:
        base = self._key(key)
        return f"{base}:list", f"{base}:set"

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        redis = await self._get_redis()
        raw = await redis.get(self._key(key))
        if raw is None:
            return None
        return json.loads(raw)

    async def put(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        redis = await self._get_redis()
        await redis.set(self._key(key), json.dumps(value), ex=ttl_seconds)

    async def delete(self, key: str) -> None:
        redis = await self._get_redis()
        list_key, set_key = self._set_keys(key)
        await redis.delete(self._key(key), list_key, set_key)

    async def append_unique(self, key: str, member: str, ttl_seconds: int) -> bool:
        redis = await self._get_redis()
        list_key, set_key = self._set_keys(key)

        added = bool(await redis.sadd(set_key, member))
        async with redis.pipeline(transaction=True) as pipe:
            if added:
                pipe.rpush(list_key, member)
            pipe.expire(set_key, ttl_seconds)
            pipe.expire(list_key, ttl_seconds)
            await pipe.execute()

        logger.debug("redis_member_appended", key=key, member=member, added=added)
        return added

    async def members(self, key: str) -> list[str]:
        redis = await self._get_redis()
        list_key, _ = self._set_keys(key)
        return list(await redis.lrange(list_key, 0, -1))

    async def remove_member(self, key: str, member: str) -> None:
        redis = await self._get_redis()
        list_key, set_key = self._set_keys(key)
        async with redis.pipeline(transaction=True) as pipe:
            pipe.srem(set_key, member)
            pipe.lrem(list_key, 0, member)
            await pipe.execute()

    async def exists(self, key: str) -> bool:
        redis = await self._get_redis()
        return bool(await redis.exists(self._key(key)))

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("redis_job_store_closed")

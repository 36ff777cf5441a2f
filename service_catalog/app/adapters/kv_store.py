"""
Redis key-value store adapter.
"""

import json
from typing import Any, List, Optional, Sequence

import redis.asyncio as redis

from shared.logging import get_logger


class KVStore:
    """JSON-valued get/set/expiry/multi-get/set-membership over Redis.

    Store failures are logged and reported as a miss (reads) or ``False``
    (writes); they never propagate to callers.
    """

    def __init__(self, redis_url: Optional[str] = None, client: Optional[redis.Redis] = None):
        if redis_url is None and client is None:
            raise ValueError("KVStore needs a redis_url or a client")
        self.redis_url = redis_url
        self.logger = get_logger("catalog.kv_store")
        self._redis: Optional[redis.Redis] = client

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
            )
        return self._redis

    async def ping(self) -> bool:
        """Check connectivity; failures are logged, not raised."""
        try:
            client = await self._get_redis()
            await client.ping()
            self.logger.info("Redis store reachable")
            return True
        except Exception as e:
            self.logger.warning("Redis store unreachable", error=str(e))
            return False

    async def close(self):
        """Close the underlying connection pool."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    @staticmethod
    def _encode(value: Any) -> str:
        return json.dumps(value, separators=(",", ":"), default=str)

    def _decode(self, key: str, raw: Any) -> Optional[Any]:
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            return json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            self.logger.warning("Failed to deserialize cached payload", key=key)
            return None

    async def get(self, key: str) -> Optional[Any]:
        """Get a decoded value, or None on miss or store error."""
        try:
            client = await self._get_redis()
            raw = await client.get(key)
        except Exception as e:
            self.logger.error("Redis get error", key=key, error=str(e))
            return None
        return self._decode(key, raw)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store a value; with ``ttl`` the key expires after that many seconds."""
        if ttl is not None:
            return await self.set_with_expiry(key, value, ttl)
        try:
            client = await self._get_redis()
            await client.set(key, self._encode(value))
            return True
        except Exception as e:
            self.logger.error("Redis set error", key=key, error=str(e))
            return False

    async def set_with_expiry(self, key: str, value: Any, ttl: int) -> bool:
        """Store a value that expires after ``ttl`` seconds."""
        try:
            client = await self._get_redis()
            await client.setex(key, max(1, int(ttl)), self._encode(value))
            return True
        except Exception as e:
            self.logger.error("Redis setex error", key=key, ttl=ttl, error=str(e))
            return False

    async def mget(self, keys: Sequence[str]) -> List[Optional[Any]]:
        """Multi-get; a store error yields all misses."""
        if not keys:
            return []
        try:
            client = await self._get_redis()
            raws = await client.mget(list(keys))
        except Exception as e:
            self.logger.error("Redis mget error", keys=len(keys), error=str(e))
            return [None] * len(keys)
        return [self._decode(key, raw) for key, raw in zip(keys, raws)]

    async def add_member(self, set_key: str, member: str) -> bool:
        """Add a member to a set."""
        try:
            client = await self._get_redis()
            await client.sadd(set_key, member)
            return True
        except Exception as e:
            self.logger.error("Redis sadd error", key=set_key, member=member, error=str(e))
            return False

    async def is_member(self, set_key: str, member: str) -> bool:
        """Set membership test; a store error reads as not a member."""
        try:
            client = await self._get_redis()
            return bool(await client.sismember(set_key, member))
        except Exception as e:
            self.logger.error("Redis sismember error", key=set_key, member=member, error=str(e))
            return False

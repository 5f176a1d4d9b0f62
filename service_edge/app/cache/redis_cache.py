"""
Redis-backed decision cache for tunnel admission.
"""

from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.logging import get_logger
from shared.errors import CacheError

from ..contracts import DecisionCache
from ..models import Decision


class RedisDecisionCache(DecisionCache):
    """Stores ``user:{id} -> valid|invalid`` with a per-key TTL."""

    def __init__(self, redis_url: str, client: Optional[redis.Redis] = None):
        self.redis_url = redis_url
        self.logger = get_logger("edge.cache.redis")
        self.redis: Optional[redis.Redis] = client

    async def start(self):
        """Start the Redis cache."""
        if self.redis is None:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                health_check_interval=30
            )

        try:
            await self.redis.ping()
        except (RedisError, OSError) as e:
            self.logger.error("Failed to start Redis cache", error=str(e))
            raise CacheError(f"Redis unavailable: {e}")

        self.logger.info("Redis cache started")

    async def stop(self):
        """Stop the Redis cache."""
        if self.redis:
            await self.redis.aclose()
            self.logger.info("Redis cache stopped")

    async def get(self, subscriber_id: str) -> Optional[Decision]:
        cache_key = self.key_for(subscriber_id)
        try:
            cached = await self.redis.get(cache_key)
        except (RedisError, OSError) as e:
            raise CacheError(f"Redis GET failed: {e}", details={"key": cache_key})

        if cached is None:
            return None

        if isinstance(cached, bytes):
            cached = cached.decode("utf-8")

        try:
            return Decision(cached)
        except ValueError:
            # Unknown payload is treated as a miss so the store decides.
            self.logger.warning("Ignoring unrecognized cached decision", cache_key=cache_key)
            return None

    async def put(self, subscriber_id: str, decision: Decision, ttl_seconds: int) -> None:
        cache_key = self.key_for(subscriber_id)
        try:
            await self.redis.setex(cache_key, max(1, int(ttl_seconds)), decision.value)
        except (RedisError, OSError) as e:
            raise CacheError(f"Redis SETEX failed: {e}", details={"key": cache_key})

        self.logger.debug("Cached admission decision", cache_key=cache_key, decision=decision.value, ttl=ttl_seconds)

    async def delete(self, subscriber_id: str) -> None:
        cache_key = self.key_for(subscriber_id)
        try:
            await self.redis.delete(cache_key)
        except (RedisError, OSError) as e:
            raise CacheError(f"Redis DEL failed: {e}", details={"key": cache_key})

    async def health_check(self) -> bool:
        """Check Redis health."""
        try:
            await self.redis.ping()
            return True
        except Exception:
            return False

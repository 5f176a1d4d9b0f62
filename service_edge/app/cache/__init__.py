"""
Cache package for the Edge Gateway Service.

Provides a Redis-backed decision cache that stores admission decisions
with TTLs tied to subscriber expiry.
"""

from .redis_cache import RedisDecisionCache

__all__ = ["RedisDecisionCache"]

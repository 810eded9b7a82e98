"""
Summary Cache
=============

Redis-backed memoization of analysis summaries with in-memory fallback.

Usage:
    from src.cache import RedisCache, review_fingerprint

    cache = RedisCache(redis_url, prefix="reviewpulse")
    key = cache.summary_key(business, review_fingerprint(reviews), config.to_dict())
"""

from .redis_cache import RedisCache, review_fingerprint

__all__ = ["RedisCache", "review_fingerprint"]

"""
Summary Cache
=============

Memoizes computed analysis summaries in Redis with an automatic in-memory
fallback. Entries are advisory: a miss, an expired entry or an unreachable
Redis only costs a recomputation.

Keys are namespaced ``<prefix>:summary:<hash>`` where the hash covers the
review-set fingerprint, the analysis config and the business name.

Usage:
    cache = RedisCache(prefix="reviewpulse", default_ttl_seconds=600)
    key = cache.summary_key(business, review_fingerprint(reviews), config.to_dict())
    cache.set(key, payload)
    payload = cache.get(key)

Environment variables (see src.orchestrator.config.CacheConfig):
    REDIS_URL - Full Redis URL (redis://host:port/db)
    REDIS_HOST / REDIS_PORT / REDIS_DB / REDIS_PASSWORD
    CACHE_PREFIX - Key prefix (default: reviewpulse)
    CACHE_TTL_SECONDS - Entry lifetime (default: 600)
"""

import json
import logging
import hashlib
import threading
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, Optional, Tuple

import redis

from ..reviews.review_models import Review

logger = logging.getLogger(__name__)


def review_fingerprint(reviews: Iterable[Review]) -> str:
    """
    Order-independent digest of a review set.

    Covers every field that feeds the analytics, so an edited review
    produces a different fingerprint.
    """
    digests = sorted(
        hashlib.sha256(json.dumps(r.to_dict(), sort_keys=True).encode()).hexdigest()
        for r in reviews
        if isinstance(r, Review)
    )
    return hashlib.sha256("".join(digests).encode()).hexdigest()[:32]


class RedisCache:
    """
    Redis-based cache with in-memory fallback.

    Falls back to the in-memory store when Redis is unreachable at
    connection time or when a Redis call fails.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        prefix: str = "reviewpulse",
        default_ttl_seconds: Optional[int] = 600,
        use_redis: bool = True,
    ):
        """
        Args:
            redis_url: Redis URL. None or use_redis=False means memory only.
            prefix: Key prefix for namespace isolation.
            default_ttl_seconds: TTL applied when set() gets none.
        """
        self.prefix = prefix
        self.default_ttl_seconds = default_ttl_seconds
        self._redis: Optional[redis.Redis] = None
        self._memory_cache: Dict[str, Tuple[Optional[datetime], Any]] = {}
        self._memory_lock = threading.Lock()

        if use_redis and redis_url:
            self._connect(redis_url)

    def _connect(self, redis_url: str) -> None:
        try:
            client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
            )
            client.ping()
            self._redis = client
            logger.info(f"Redis cache connected: {redis_url.split('@')[-1]}")
        except redis.RedisError as e:
            logger.warning(f"Redis connection failed: {e}. Using in-memory cache.")
            self._redis = None

    @property
    def backend(self) -> str:
        return "redis" if self._redis is not None else "memory"

    def _make_key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def summary_key(self, business_name: str, fingerprint: str, config: Dict[str, Any]) -> str:
        return f"summary:{self.compute_hash(business_name, fingerprint, config)}"

    def get(self, key: str) -> Optional[Any]:
        """Cached JSON value, or None if missing or expired."""
        full_key = self._make_key(key)

        if self._redis is None:
            return self._memory_get(full_key)

        try:
            value = self._redis.get(full_key)
            if value is None:
                return None
            return json.loads(value)
        except redis.RedisError as e:
            logger.warning(f"Redis get failed: {e}")
            return self._memory_get(full_key)

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        """Store a JSON-serializable value."""
        full_key = self._make_key(key)
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds

        if self._redis is None:
            return self._memory_set(full_key, value, ttl)

        try:
            serialized = json.dumps(value)
            if ttl:
                self._redis.setex(full_key, ttl, serialized)
            else:
                self._redis.set(full_key, serialized)
            return True
        except redis.RedisError as e:
            logger.warning(f"Redis set failed: {e}")
            return self._memory_set(full_key, value, ttl)

    def delete(self, key: str) -> bool:
        full_key = self._make_key(key)

        if self._redis is None:
            return self._memory_delete(full_key)

        try:
            return self._redis.delete(full_key) > 0
        except redis.RedisError as e:
            logger.warning(f"Redis delete failed: {e}")
            return self._memory_delete(full_key)

    def clear_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix``; returns the count."""
        full_prefix = self._make_key(prefix)

        if self._redis is None:
            with self._memory_lock:
                keys = [k for k in self._memory_cache if k.startswith(full_prefix)]
                for k in keys:
                    del self._memory_cache[k]
            return len(keys)

        try:
            keys = list(self._redis.scan_iter(match=f"{full_prefix}*"))
            return self._redis.delete(*keys) if keys else 0
        except redis.RedisError as e:
            logger.warning(f"Redis clear_prefix failed: {e}")
            return 0

    def get_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {"backend": self.backend}
        if self._redis is None:
            with self._memory_lock:
                stats["memory_keys"] = len(self._memory_cache)
        else:
            try:
                stats["redis_keys"] = self._redis.dbsize()
            except redis.RedisError as e:
                logger.warning(f"Redis stats failed: {e}")
        return stats

    # =========================================================================
    # MEMORY FALLBACK
    # =========================================================================

    def _memory_get(self, key: str) -> Optional[Any]:
        with self._memory_lock:
            if key not in self._memory_cache:
                return None
            expires_at, value = self._memory_cache[key]
            if expires_at and datetime.utcnow() > expires_at:
                del self._memory_cache[key]
                return None
            return value

    def _memory_set(self, key: str, value: Any, ttl_seconds: Optional[int]) -> bool:
        expires_at = None
        if ttl_seconds:
            expires_at = datetime.utcnow() + timedelta(seconds=ttl_seconds)
        with self._memory_lock:
            self._memory_cache[key] = (expires_at, value)
        return True

    def _memory_delete(self, key: str) -> bool:
        with self._memory_lock:
            return self._memory_cache.pop(key, None) is not None

    # =========================================================================
    # UTILITIES
    # =========================================================================

    @staticmethod
    def compute_hash(*args) -> str:
        """16-character SHA256 digest of the JSON-serialized arguments."""
        data = json.dumps(args, sort_keys=True, default=str)
        return hashlib.sha256(data.encode()).hexdigest()[:16]

    def close(self) -> None:
        if self._redis is not None:
            try:
                self._redis.close()
            except redis.RedisError as e:
                logger.debug(f"Redis close failed: {e}")
            self._redis = None

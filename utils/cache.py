import json
import logging
import pickle
import hashlib
from datetime import datetime, date, timedelta
from fnmatch import fnmatch
from functools import wraps
from typing import Any, Dict, Optional, Callable, List
from uuid import UUID

import redis.asyncio as redis

from utils.config import CacheConfig
from utils.logging import log_cache_hit, log_cache_miss

logger = logging.getLogger(__name__)


class InMemoryCache:
    """Simple in-memory LRU cache with TTL"""

    def __init__(self, max_size: int = 1000, default_ttl: int = 300):
        self.max_size = max_size
        self.default_ttl = default_ttl
        self._cache: Dict[str, Dict] = {}
        self._access_order: List[str] = []

    def _evict_expired(self):
        now = datetime.now()
        expired_keys = [
            key for key, entry in self._cache.items()
            if now > entry['expires_at']
        ]
        for key in expired_keys:
            self.delete(key)

    def _evict_lru(self):
        while len(self._cache) >= self.max_size and self._access_order:
            lru_key = self._access_order.pop(0)
            self._cache.pop(lru_key, None)

    def get(self, key: str) -> Optional[Any]:
        self._evict_expired()

        if key not in self._cache:
            return None

        if key in self._access_order:
            self._access_order.remove(key)
        self._access_order.append(key)

        return self._cache[key]['value']

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        self._evict_expired()
        self._evict_lru()

        self._cache[key] = {
            'value': value,
            'expires_at': datetime.now() + timedelta(seconds=ttl or self.default_ttl),
        }

        if key in self._access_order:
            self._access_order.remove(key)
        self._access_order.append(key)

    def delete(self, key: str) -> None:
        self._cache.pop(key, None)
        if key in self._access_order:
            self._access_order.remove(key)

    def keys(self) -> List[str]:
        return list(self._cache.keys())

    def stats(self) -> Dict[str, Any]:
        self._evict_expired()
        return {'size': len(self._cache), 'max_size': self.max_size}


class RedisCache:
    """Redis-based cache implementation"""

    def __init__(self, redis_url: str = CacheConfig.REDIS_URL, db: int = CacheConfig.REDIS_DB):
        self.redis_url = redis_url
        self.db = db
        self._redis: Optional[redis.Redis] = None
        self.connected = False

    async def connect(self):
        """Connect to Redis; the memory layer keeps working when this fails"""
        try:
            self._redis = redis.from_url(self.redis_url, db=self.db, decode_responses=False)
            await self._redis.ping()
            self.connected = True
            logger.info("Connected to Redis cache")
            return True
        except Exception as e:
            logger.warning(f"Redis unavailable, using memory cache only: {e}")
            self.connected = False
            return False

    async def disconnect(self):
        if self._redis:
            await self._redis.aclose()
            self.connected = False

    def _serialize(self, value: Any) -> bytes:
        try:
            return json.dumps(value, default=self._json_serializer).encode('utf-8')
        except TypeError:
            return pickle.dumps(value)

    def _json_serializer(self, obj):
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, UUID):
            return str(obj)
        raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")

    def _deserialize(self, data: bytes) -> Any:
        try:
            return json.loads(data.decode('utf-8'))
        except (json.JSONDecodeError, UnicodeDecodeError):
            return pickle.loads(data)

    async def get(self, key: str) -> Optional[Any]:
        if not self.connected or not self._redis:
            return None

        try:
            data = await self._redis.get(f"{CacheConfig.REDIS_KEY_PREFIX}{key}")
            if data is None:
                return None
            return self._deserialize(data)
        except Exception as e:
            logger.error(f"Redis get error for key {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self.connected or not self._redis:
            return False

        try:
            data = self._serialize(value)
            redis_key = f"{CacheConfig.REDIS_KEY_PREFIX}{key}"
            if ttl:
                await self._redis.setex(redis_key, ttl, data)
            else:
                await self._redis.set(redis_key, data)
            return True
        except Exception as e:
            logger.error(f"Redis set error for key {key}: {e}")
            return False

    async def clear_pattern(self, pattern: str) -> int:
        if not self.connected or not self._redis:
            return 0

        try:
            keys = await self._redis.keys(f"{CacheConfig.REDIS_KEY_PREFIX}{pattern}")
            if keys:
                return await self._redis.delete(*keys)
            return 0
        except Exception as e:
            logger.error(f"Redis clear pattern error for {pattern}: {e}")
            return 0


class HybridCache:
    """Hybrid cache using both memory and Redis"""

    def __init__(self):
        self.memory_cache = InMemoryCache(
            max_size=CacheConfig.MAX_MEMORY_CACHE_SIZE,
            default_ttl=CacheConfig.MEMORY_CACHE_TTL
        )
        self.redis_cache = RedisCache()
        self._stats = {
            'memory_hits': 0,
            'redis_hits': 0,
            'misses': 0,
            'sets': 0
        }

    async def initialize(self):
        await self.redis_cache.connect()

    async def close(self):
        await self.redis_cache.disconnect()

    def _generate_cache_key(self, prefix: str, *args, **kwargs) -> str:
        key_parts = [prefix]

        for arg in args:
            if isinstance(arg, (dict, list)):
                arg_str = json.dumps(arg, sort_keys=True, default=str)
                key_parts.append(hashlib.md5(arg_str.encode()).hexdigest()[:8])
            else:
                key_parts.append(str(arg))

        if kwargs:
            kwargs_str = json.dumps(sorted(kwargs.items()), default=str)
            key_parts.append(hashlib.md5(kwargs_str.encode()).hexdigest()[:8])

        return ":".join(key_parts)

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache (memory first, then Redis)"""
        value = self.memory_cache.get(key)
        if value is not None:
            self._stats['memory_hits'] += 1
            return value

        value = await self.redis_cache.get(key)
        if value is not None:
            self._stats['redis_hits'] += 1
            self.memory_cache.set(key, value, ttl=CacheConfig.MEMORY_CACHE_TTL)
            return value

        self._stats['misses'] += 1
        return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        self._stats['sets'] += 1

        memory_ttl = min(ttl or CacheConfig.MEMORY_CACHE_TTL, CacheConfig.MEMORY_CACHE_TTL)
        self.memory_cache.set(key, value, ttl=memory_ttl)
        await self.redis_cache.set(key, value, ttl=ttl)

    async def clear_pattern(self, pattern: str) -> None:
        """Clear keys matching a glob pattern from both caches"""
        for key in self.memory_cache.keys():
            if fnmatch(key, pattern):
                self.memory_cache.delete(key)

        await self.redis_cache.clear_pattern(pattern)

    def stats(self) -> Dict[str, Any]:
        total_requests = self._stats['memory_hits'] + self._stats['redis_hits'] + self._stats['misses']

        return {
            'memory_cache': self.memory_cache.stats(),
            'redis_connected': self.redis_cache.connected,
            'total_requests': total_requests,
            'overall_hit_rate': (self._stats['memory_hits'] + self._stats['redis_hits']) / max(total_requests, 1),
            'stats': self._stats
        }


# Global cache instance
cache = HybridCache()


def cached(ttl: Optional[int] = None, key_prefix: str = "default",
           key_builder: Optional[Callable[..., str]] = None):
    """Decorator for caching async function results

    key_builder gets the call arguments and returns the cache key. Methods
    need one so the instance is left out of the key.
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            if key_builder is not None:
                cache_key = key_builder(*args, **kwargs)
            else:
                cache_key = cache._generate_cache_key(key_prefix, *args, **kwargs)

            cached_result = await cache.get(cache_key)
            if cached_result is not None:
                log_cache_hit(cache_key, func.__name__)
                return cached_result

            log_cache_miss(cache_key, func.__name__)
            result = await func(*args, **kwargs)
            await cache.set(cache_key, result, ttl=ttl)
            return result
        return wrapper
    return decorator


class CacheKeys:
    """Predefined cache key patterns"""

    @staticmethod
    def owner_history(owner_id: str) -> str:
        return f"history:{owner_id}"

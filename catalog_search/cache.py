"""Analytics response cache.

Payloads are stored as JSON under ``catalog-search:<endpoint>:<digest>`` keys.
Redis is used when it answers a ping at startup; otherwise a process-local
store with the same interface takes over. Both backends hand back a fresh
copy on every hit.
"""
from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Tuple

import redis

from .config import Settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "catalog-search:"
MAX_MEMORY_ENTRIES = 256

Payload = Dict[str, Any]


class CacheBackend(Protocol):
    def get(self, key: str) -> Optional[Payload]: ...

    def set(self, key: str, value: Payload, ttl: int) -> None: ...

    def close(self) -> None: ...


def cache_key(endpoint: str, **params: Any) -> str:
    digest = hashlib.sha1(json.dumps(params, sort_keys=True, default=str).encode("utf-8")).hexdigest()
    return f"{KEY_PREFIX}{endpoint}:{digest}"


def _encode(value: Payload) -> str:
    return json.dumps(value, default=str)


def _decode(raw: str | bytes | None) -> Optional[Payload]:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Discarding undecodable cache entry")
        return None


@dataclass
class RedisCache:
    client: redis.Redis

    def get(self, key: str) -> Optional[Payload]:
        try:
            raw = self.client.get(key)
        except redis.RedisError as exc:
            logger.warning("Redis read of %s failed: %s", key, exc)
            return None
        return _decode(raw)

    def set(self, key: str, value: Payload, ttl: int) -> None:
        try:
            self.client.setex(key, ttl, _encode(value))
        except redis.RedisError as exc:
            logger.warning("Redis write of %s failed: %s", key, exc)

    def close(self) -> None:
        self.client.close()


class InMemoryCache:
    """Thread-safe TTL store holding at most ``max_entries`` payloads."""

    def __init__(self, max_entries: int = MAX_MEMORY_ENTRIES) -> None:
        self.max_entries = max_entries
        self._entries: Dict[str, Tuple[float, str]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Payload]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, raw = entry
            if expires_at <= time.monotonic():
                del self._entries[key]
                return None
        return _decode(raw)

    def set(self, key: str, value: Payload, ttl: int) -> None:
        now = time.monotonic()
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_entries:
                self._evict(now)
            self._entries[key] = (now + ttl, _encode(value))

    def _evict(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        if len(self._entries) >= self.max_entries:
            # Drop the entry closest to expiry.
            oldest = min(self._entries, key=lambda key: self._entries[key][0])
            del self._entries[oldest]

    def close(self) -> None:
        with self._lock:
            self._entries.clear()


def create_cache(settings: Settings) -> CacheBackend:
    client = redis.Redis(host=settings.redis_host, port=settings.redis_port, socket_connect_timeout=1)
    try:
        client.ping()
    except redis.RedisError as exc:
        logger.warning("Redis at %s:%s unavailable (%s); caching in memory", settings.redis_host, settings.redis_port, exc)
        client.close()
        return InMemoryCache()
    logger.info("Caching analytics in Redis at %s:%s", settings.redis_host, settings.redis_port)
    return RedisCache(client)

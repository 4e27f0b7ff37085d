import asyncio
import time
from typing import Any, Dict, Optional
from dataclasses import dataclass


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class TTLCache:
    """In-memory TTL cache with LRU eviction. Tracks recently pushed identities."""

    def __init__(self, default_ttl: int = 300, max_size: int = 1000):
        self.default_ttl = default_ttl
        self.max_size = max_size
        self._cache: Dict[str, CacheEntry] = {}
        self._access_order: list = []
        self._lock = asyncio.Lock()

    def _expire_locked(self, key: str, now: float) -> bool:
        entry = self._cache.get(key)
        if entry is None:
            return True
        if now > entry.expires_at:
            del self._cache[key]
            if key in self._access_order:
                self._access_order.remove(key)
            return True
        return False

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            if self._expire_locked(key, time.time()):
                return None

            # Update access order for LRU
            self._access_order.remove(key)
            self._access_order.append(key)
            return self._cache[key].value

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        async with self._lock:
            ttl = ttl or self.default_ttl
            self._cache[key] = CacheEntry(value=value, expires_at=time.time() + ttl)

            if key in self._access_order:
                self._access_order.remove(key)
            self._access_order.append(key)

            # Evict oldest if over max size
            while len(self._cache) > self.max_size:
                oldest_key = self._access_order.pop(0)
                self._cache.pop(oldest_key, None)

    async def clear(self) -> None:
        async with self._lock:
            self._cache.clear()
            self._access_order.clear()

    def size(self) -> int:
        return len(self._cache)

from abc import ABC, abstractmethod
import os
import threading
import time
from typing import Optional

from cachetools import TLRUCache

from mirror_proxy.mirror.models import CachedResponse


class CacheStoreBase(ABC):
    @abstractmethod
    async def get(self, key: str) -> Optional[CachedResponse]:
        pass

    @abstractmethod
    async def put(self, key: str, value: CachedResponse, ttl: int) -> None:
        pass


def cache_store(
    name: str = os.getenv("MIRROR_CACHE_STORE", "InMemoryCacheStore"), **kwargs
) -> CacheStoreBase:
    if name == "InMemoryCacheStore":
        return InMemoryCacheStore(**kwargs)
    cls = globals().get(name)
    if isinstance(cls, type) and issubclass(cls, CacheStoreBase):
        return cls(**kwargs)
    else:
        raise ValueError(f"Unknown cache store type: {name}")


def _expires_at(key, entry, now):
    return now + entry[1]


class InMemoryCacheStore(CacheStoreBase):
    """Process-local store; each entry expires after its own TTL."""

    def __init__(self, max_entries: int = 1024, timer=time.monotonic):
        self._entries: TLRUCache = TLRUCache(
            maxsize=max_entries, ttu=_expires_at, timer=timer
        )
        self._lock = threading.Lock()

    async def get(self, key: str) -> Optional[CachedResponse]:
        with self._lock:
            entry = self._entries.get(key)
        return entry[0] if entry else None

    async def put(self, key: str, value: CachedResponse, ttl: int) -> None:
        if ttl <= 0:
            return
        with self._lock:
            self._entries[key] = (value, ttl)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

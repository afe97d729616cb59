"""
Cache-aside acceleration in front of the upstream fetch.

Only GET requests are looked up, and only 2xx GET responses are stored. The
stored snapshot is built from the exact bytes returned to the caller: a
streamed body is teed while it is relayed and submitted once the stream has
completed; a materialized body is submitted right away. Population always
runs through the TaskScheduler so it never delays the response.
"""

import logging
from typing import AsyncIterator, Optional

from fastapi import Request
from opentelemetry import trace

from mirror_proxy.cache.scheduler import TaskScheduler
from mirror_proxy.cache.store import CacheStoreBase
from mirror_proxy.config import MirrorConfig
from mirror_proxy.mirror.fetcher import UpstreamFetcher
from mirror_proxy.mirror.models import CachedResponse, MirroredResponse
from mirror_proxy.mirror.url_mapper import get_inbound_url
from mirror_proxy.utils import is_success
from mirror_proxy.utils.exception_logging import log_exception_with_details

logger = logging.getLogger("uvicorn.error")

CACHEABLE_METHOD = "GET"


class CacheAccelerator:
    def __init__(
        self,
        config: MirrorConfig,
        fetcher: UpstreamFetcher,
        store: CacheStoreBase,
        scheduler: TaskScheduler,
    ):
        self.config = config
        self.fetcher = fetcher
        self.store = store
        self.scheduler = scheduler

    def cache_key(self, request: Request) -> str:
        key = f"{request.method} {get_inbound_url(request)}"
        for name in self.config.cache_key_headers:
            value = request.headers.get(name)
            if value is not None:
                key += f"|{name}={value}"
        return key

    def is_cacheable_request(self, request: Request) -> bool:
        return self.config.cache_enabled and request.method == CACHEABLE_METHOD

    async def handle(self, request: Request) -> MirroredResponse:
        span = trace.get_current_span()
        if not self.is_cacheable_request(request):
            span.set_attribute("mirror.cache", "bypass")
            return await self.fetcher.fetch(request)

        key = self.cache_key(request)
        cached = await self._lookup(key)
        if cached is not None:
            logger.debug(f"[Cache] Hit for {key}")
            span.set_attribute("mirror.cache", "hit")
            return cached.to_mirrored()

        logger.debug(f"[Cache] Miss for {key}")
        span.set_attribute("mirror.cache", "miss")
        mirrored = await self.fetcher.fetch(request)
        if is_success(mirrored.status_code):
            self._populate(key, mirrored)
        return mirrored

    async def _lookup(self, key: str) -> Optional[CachedResponse]:
        try:
            return await self.store.get(key)
        except Exception as e:
            log_exception_with_details(
                logger, f"[Cache] Lookup failed for {key}, treating as miss:", e,
                level=logging.WARNING,
            )
            return None

    def _populate(self, key: str, mirrored: MirroredResponse) -> None:
        if mirrored.is_streaming:
            mirrored.body = self._tee(key, mirrored, mirrored.body)
        else:
            self._submit(key, CachedResponse.from_mirrored(mirrored, bytes(mirrored.body)))

    async def _tee(
        self, key: str, mirrored: MirroredResponse, chunks: AsyncIterator[bytes]
    ) -> AsyncIterator[bytes]:
        relayed = bytearray()
        try:
            async for chunk in chunks:
                relayed.extend(chunk)
                yield chunk
        finally:
            aclose = getattr(chunks, "aclose", None)
            if aclose is not None:
                await aclose()
        # Only reached when the whole body went out
        self._submit(key, CachedResponse.from_mirrored(mirrored, bytes(relayed)))

    def _submit(self, key: str, snapshot: CachedResponse) -> None:
        ttl = self.config.cache_ttl

        async def write():
            await self.store.put(key, snapshot, ttl)
            logger.debug(f"[Cache] Stored {key} for {ttl}s")

        self.scheduler.spawn_detached(write)

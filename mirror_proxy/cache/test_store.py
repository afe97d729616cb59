
import pytest

from mirror_proxy.cache.store import CacheStoreBase, InMemoryCacheStore, cache_store
from mirror_proxy.mirror.models import CachedResponse


def snapshot(body: bytes = b"cached content") -> CachedResponse:
    return CachedResponse(
        status_code=200,
        headers=((b"Content-Type", b"text/html"),),
        body=body,
        reason_phrase="OK",
    )


class TestInMemoryCacheStore:
    @pytest.mark.asyncio
    async def test_put_then_get(self):
        store = InMemoryCacheStore()
        await store.put("GET https://git.ropean.org/", snapshot(), ttl=60)

        cached = await store.get("GET https://git.ropean.org/")

        assert cached == snapshot()

    @pytest.mark.asyncio
    async def test_miss(self):
        assert await InMemoryCacheStore().get("GET https://git.ropean.org/nope") is None

    @pytest.mark.asyncio
    async def test_entry_expires_after_its_ttl(self):
        clock = [1000.0]
        store = InMemoryCacheStore(timer=lambda: clock[0])
        await store.put("short", snapshot(b"a"), ttl=10)
        await store.put("long", snapshot(b"b"), ttl=1000)

        clock[0] += 11

        assert await store.get("short") is None
        assert (await store.get("long")).body == b"b"

    @pytest.mark.asyncio
    async def test_last_write_wins(self):
        store = InMemoryCacheStore()
        await store.put("k", snapshot(b"first"), ttl=60)
        await store.put("k", snapshot(b"second"), ttl=60)
        assert (await store.get("k")).body == b"second"

    @pytest.mark.asyncio
    async def test_non_positive_ttl_not_stored(self):
        store = InMemoryCacheStore()
        await store.put("k", snapshot(), ttl=0)
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_bounded_size(self):
        store = InMemoryCacheStore(max_entries=2)
        for i in range(5):
            await store.put(f"k{i}", snapshot(), ttl=60)
        assert len(store) == 2


class TestCacheStoreFactory:
    def test_default(self):
        assert isinstance(cache_store("InMemoryCacheStore"), InMemoryCacheStore)

    def test_passes_options(self):
        store = cache_store("InMemoryCacheStore", max_entries=3)
        assert store._entries.maxsize == 3

    def test_unknown(self):
        with pytest.raises(ValueError):
            cache_store("RedisCacheStore")

    def test_rejects_non_store_names(self):
        with pytest.raises(ValueError):
            cache_store("CachedResponse")

    def test_base_is_abstract(self):
        with pytest.raises(TypeError):
            CacheStoreBase()

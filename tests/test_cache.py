import asyncio

from voicehook.cache import CacheBackend, CarrierNameCache, InMemoryCache


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_entry_lives_until_ttl():
    """An entry is served just before its TTL and gone just after."""
    clock = FakeClock()
    cache = InMemoryCache(ttl_seconds=30, clock=clock)
    cache.set("rtx", [1, 2])

    clock.advance(29.9)
    assert cache.get("rtx") == [1, 2]

    clock.advance(0.2)
    assert cache.get("rtx") is None
    assert len(cache) == 0


def test_capacity_evicts_oldest_insertion():
    clock = FakeClock()
    cache = InMemoryCache(ttl_seconds=60, max_entries=2, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    # Reads do not refresh the eviction order.
    assert cache.get("a") == 1

    cache.set("c", 3)

    assert cache.get("a") is None
    assert cache.get("b") == 2
    assert cache.get("c") == 3
    assert len(cache) == 2


def test_resetting_key_moves_it_to_the_back():
    cache = InMemoryCache(ttl_seconds=60, max_entries=2, clock=FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)

    cache.set("c", 3)

    assert cache.get("a") == 10
    assert cache.get("b") is None


def test_get_or_fetch_does_not_store_none():
    cache = InMemoryCache(ttl_seconds=60, clock=FakeClock())
    calls = []

    async def missing():
        calls.append("missing")
        return None

    async def found():
        calls.append("found")
        return {"name": "Mouse"}

    assert asyncio.run(cache.get_or_fetch(1, missing)) is None
    assert asyncio.run(cache.get_or_fetch(1, missing)) is None
    assert asyncio.run(cache.get_or_fetch(2, found)) == {"name": "Mouse"}
    assert asyncio.run(cache.get_or_fetch(2, found)) == {"name": "Mouse"}

    assert calls == ["missing", "missing", "found"]


def test_service_caches_satisfy_backend_protocol(state):
    assert isinstance(state.search_cache, CacheBackend)
    assert isinstance(state.product_cache, CacheBackend)
    assert not isinstance(object(), CacheBackend)


def test_carrier_cache_cold_lookup_refreshes_inline():
    clock = FakeClock()
    cache = CarrierNameCache(ttl_seconds=3600, clock=clock)
    calls = []

    async def fetch():
        calls.append(1)
        return {1: "DHL Express", 2: "Pickup in store"}

    async def scenario():
        first = await cache.lookup(1, fetch)
        second = await cache.lookup(2, fetch)
        return first, second

    assert asyncio.run(scenario()) == ("DHL Express", "Pickup in store")
    assert len(calls) == 1
    assert len(cache) == 2


def test_carrier_cache_serves_stale_name_while_refreshing():
    clock = FakeClock()
    cache = CarrierNameCache(ttl_seconds=3600, clock=clock)
    names = {1: "DHL"}

    async def fetch():
        return dict(names)

    async def scenario():
        await cache.lookup(1, fetch)
        names[1] = "DHL Express"
        clock.advance(3601)
        stale = await cache.lookup(1, fetch)
        # Let the background refresh run.
        for _ in range(5):
            await asyncio.sleep(0)
        fresh = await cache.lookup(1, fetch)
        return stale, fresh

    assert asyncio.run(scenario()) == ("DHL", "DHL Express")


def test_carrier_cache_failure_falls_back_to_default():
    cache = CarrierNameCache(ttl_seconds=3600, clock=FakeClock())

    async def broken():
        raise RuntimeError("shop down")

    assert asyncio.run(cache.lookup(5, broken)) == CarrierNameCache.default_name


def test_carrier_cache_unknown_id_uses_default():
    cache = CarrierNameCache(ttl_seconds=3600, clock=FakeClock())

    async def fetch():
        return {1: "DHL"}

    assert asyncio.run(cache.lookup(99, fetch)) == "Standard shipping"

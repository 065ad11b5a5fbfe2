import asyncio

from tsi.schemas import Chain
from tsi.services.cache import (
    EdgeCache,
    MemoryEdgeCache,
    check_rate_limit,
    get_cached_report,
    put_cached_report,
)

from conftest import TOKEN

class Clock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

class OfflineCache(EdgeCache):
    async def incr(self, key, ttl):
        raise ConnectionError("offline")

def test_values_expire_after_ttl():
    clock = Clock()
    cache = MemoryEdgeCache(timer=clock)
    asyncio.run(cache.put("k", {"a": 1}, 10))
    assert asyncio.run(cache.get("k")) == {"a": 1}
    clock.now += 11
    assert asyncio.run(cache.get("k")) is None

def test_get_returns_a_copy():
    cache = MemoryEdgeCache()
    asyncio.run(cache.put("k", {"a": [1]}, 10))
    first = asyncio.run(cache.get("k"))
    first["a"].append(2)
    assert asyncio.run(cache.get("k")) == {"a": [1]}

def test_counter_keeps_fixed_window():
    clock = Clock()
    cache = MemoryEdgeCache(timer=clock)
    assert asyncio.run(cache.incr("c", 60)) == 1
    clock.now += 59
    assert asyncio.run(cache.incr("c", 60)) == 2
    clock.now += 2
    assert asyncio.run(cache.incr("c", 60)) == 1

def test_report_freshness_and_residency():
    clock = Clock()
    cache = MemoryEdgeCache(timer=clock)
    asyncio.run(put_cached_report(cache, Chain.ETH, TOKEN.upper().replace("0X", "0x"), {"ok": True}, clock.now, 200))
    entry = asyncio.run(get_cached_report(cache, Chain.ETH, TOKEN))
    assert entry.payload == {"ok": True}
    assert entry.is_fresh(clock.now + 99, 100)
    assert not entry.is_fresh(clock.now + 100, 100)

def test_rate_limit_allows_ten_then_blocks():
    cache = MemoryEdgeCache()
    now = 6_000_000.0
    decisions = [asyncio.run(check_rate_limit(cache, "1.2.3.4", 10, 60, now)) for _ in range(11)]
    assert all(d.allowed for d in decisions[:10])
    assert not decisions[10].allowed
    assert decisions[10].retry_after == 60
    assert asyncio.run(check_rate_limit(cache, "5.6.7.8", 10, 60, now)).allowed
    assert asyncio.run(check_rate_limit(cache, "1.2.3.4", 10, 60, now + 60)).allowed

def test_rate_limit_fails_open_when_counter_unavailable():
    decision = asyncio.run(check_rate_limit(OfflineCache(), "1.2.3.4", 10, 60))
    assert decision.allowed and decision.count is None

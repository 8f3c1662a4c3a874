from transit_alerts.services.position_cache import PositionCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_lru_eviction_respects_recency():
    cache = PositionCache(capacity=2)
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.get("a") == 1
    cache.set("c", 3)
    assert cache.keys() == ["a", "c"]
    assert cache.get("b") is None
    stats = cache.stats()
    assert stats["evictions"] == 1
    assert stats["hits"] == 1 and stats["misses"] == 1


def test_ttl_expiry_counts_as_miss():
    clock = FakeClock()
    cache = PositionCache(capacity=10, ttl_seconds=10, clock=clock)
    cache.set("k", "v")
    clock.now = 5
    assert cache.get("k") == "v"
    clock.now = 16
    assert cache.get("k") is None
    assert "k" not in cache
    assert cache.stats()["expirations"] == 1


def test_items_skip_expired_entries():
    clock = FakeClock()
    cache = PositionCache(capacity=10, ttl_seconds=10, clock=clock)
    cache.set("old", 1)
    clock.now = 8
    cache.set("new", 2)
    clock.now = 12
    assert cache.items() == [("new", 2)]


def test_clear():
    cache = PositionCache(capacity=3)
    cache.set(1, 1)
    cache.clear()
    assert len(cache) == 0


def test_set_existing_key_does_not_evict():
    cache = PositionCache(capacity=2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)
    assert cache.get("a") == 10
    assert cache.get("b") == 2
    assert cache.stats()["evictions"] == 0

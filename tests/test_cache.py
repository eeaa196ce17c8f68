"""TTL caches."""
from mitr.infrastructure.data.cache import AnalysisCache, MessageCache, TTLStore, make_cache_key


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_get_returns_value_before_expiry():
    clock = FakeClock()
    store = TTLStore(ttl_seconds=10, clock=clock)
    store.set("a", {"x": 1})
    clock.now += 10
    assert store.get("a") == {"x": 1}


def test_expired_entry_dropped_on_read():
    clock = FakeClock()
    store = TTLStore(ttl_seconds=10, clock=clock)
    store.set("a", 1)
    clock.now += 11
    assert store.get("a") is None
    assert len(store) == 0


def test_write_sweeps_expired_entries():
    clock = FakeClock()
    store = TTLStore(ttl_seconds=10, clock=clock)
    store.set("old", 1)
    clock.now += 20
    store.set("new", 2)
    assert len(store) == 1
    assert store.get("new") == 2


def test_last_write_wins():
    store = AnalysisCache()
    store.set("k", "first")
    store.set("k", "second")
    assert store.get("k") == "second"


def test_cleanup_and_remove():
    clock = FakeClock()
    store = TTLStore(ttl_seconds=5, clock=clock)
    store.set("a", 1)
    store.set("b", 2)
    store.remove("b")
    clock.now += 6
    assert store.cleanup() == 1
    assert len(store) == 0


def test_message_cache_orders_by_write_time():
    clock = FakeClock()
    cache = MessageCache(clock=clock)
    cache.store_message("m2", "second")
    clock.now -= 5
    cache.store_message("m1", "first")
    assert cache.get_messages() == ["first", "second"]


def test_cache_key_depends_on_message_and_context():
    key = make_cache_key("hello", {"history": ["a"]})
    assert key.startswith("response_")
    assert key == make_cache_key("hello", {"history": ["a"]})
    assert key != make_cache_key("hello", {"history": ["b"]})
    assert key != make_cache_key("hello")
    assert make_cache_key("hello", prefix="fast").startswith("fast_")

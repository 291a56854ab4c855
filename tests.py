import io
import json

import pytest

from cache import NEVER, Cache, EvictionPolicy, FIFOCache, LRUCache, create_cache
from demo import run_demo
from expiry import ExpiryIndex


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, sec: float):
        self.now += sec


both = pytest.mark.parametrize("cls", [FIFOCache, LRUCache])


def check_invariants(c):
    # store bounded, index mirrors finite deadlines, index ascending
    assert len(c.map) <= c.capacity
    index = c._expiry.items()
    finite = {k: e.expire_at for k, e in c.map.items() if e.expire_at != NEVER}
    assert dict(index) == finite
    deadlines = [exp for _, exp in index]
    assert deadlines == sorted(deadlines)


# --- expiry index ---

def test_index_pops_in_deadline_order_and_stops_early():
    idx = ExpiryIndex()
    idx.add("c", 30.0)
    idx.add("a", 10.0)
    idx.add("b", 20.0)
    assert list(idx.pop_expired(20.0)) == ["a", "b"]
    assert "c" in idx
    assert len(idx) == 1


def test_index_tolerates_duplicate_deadlines():
    idx = ExpiryIndex()
    idx.add("x", 5.0)
    idx.add("y", 5.0)
    assert len(idx) == 2
    assert list(idx.pop_expired(5.0)) == ["x", "y"]


def test_index_discard_and_readd_skip_stale_nodes():
    idx = ExpiryIndex()
    idx.add("k", 1.0)
    idx.add("k", 50.0)
    assert idx.deadline_of("k") == 50.0
    assert list(idx.pop_expired(10.0)) == []
    assert idx.discard("k") is True
    assert idx.discard("k") is False
    assert idx.deadline_of("k") is None
    assert list(idx.pop_expired(100.0)) == []


def test_index_compacts_stale_nodes():
    idx = ExpiryIndex()
    for i in range(100):
        idx.add(f"k{i}", float(i))
    for i in range(99):
        idx.discard(f"k{i}")
    assert len(idx) == 1
    assert len(idx._heap) < 100
    assert list(idx.pop_expired(1000.0)) == ["k99"]


# --- contract ---

@both
def test_basic(cls):
    c = cls(4)
    c.put("a", "1")
    assert c.get("a") == "1"
    assert c.remove("a") is True
    assert c.get("a") is None
    assert c.get("a", "dflt") == "dflt"
    check_invariants(c)


def test_strategies_satisfy_contract():
    assert isinstance(FIFOCache(1), Cache)
    assert isinstance(LRUCache(1), Cache)


@both
@pytest.mark.parametrize("bad", [0, -3])
def test_non_positive_capacity_rejected(cls, bad):
    with pytest.raises(ValueError):
        cls(bad)


@both
@pytest.mark.parametrize("bad", [1.5, "2", True, None])
def test_non_int_capacity_rejected(cls, bad):
    with pytest.raises(TypeError):
        cls(bad)


@both
def test_remove_is_idempotent(cls):
    c = cls(2)
    assert c.remove("missing") is False
    c.put("k", 1, ttl_sec=5)
    assert c.remove("k") is True
    assert c.remove("k") is False
    assert c.dump() == {}
    check_invariants(c)


@both
def test_capacity_bound_holds_for_any_put_sequence(cls):
    clock = FakeClock()
    c = cls(3, clock=clock)
    for i in range(50):
        c.put(f"k{i % 7}", i, ttl_sec=(i % 4) - 1)
        if i % 3 == 0:
            c.get(f"k{(i * 5) % 7}")
        clock.advance(0.7)
        assert len(c) <= 3
        check_invariants(c)


# --- ordering ---

def test_fifo_evicts_first_inserted():
    c = FIFOCache(3)
    for k in ("a", "b", "c", "d"):
        c.put(k, k.upper())
    assert c.get("a") is None
    assert [c.get(k) for k in ("b", "c", "d")] == ["B", "C", "D"]


def test_fifo_get_does_not_reorder():
    c = FIFOCache(2)
    c.put("a", 1)
    c.put("b", 2)
    assert c.get("a") == 1
    c.put("c", 3)
    assert list(c.dump()) == ["b", "c"]


def test_lru_get_promotes():
    c = LRUCache(2)
    c.put("a", 1)
    c.put("b", 2)
    assert c.get("a") == 1
    c.put("c", 3)
    assert c.get("b") is None
    assert c.get("a") == 1
    assert c.get("c") == 3


def test_fifo_overwrite_moves_to_newest():
    c = FIFOCache(3)
    c.put("k", "v1")
    c.put("x", 1)
    c.put("k", "v2")
    assert list(c.dump()) == ["x", "k"]
    assert c.get("k") == "v2"
    c.put("y", 2)
    c.put("z", 3)  # evicts x, the oldest
    assert list(c.dump()) == ["k", "y", "z"]


def test_lru_overwrite_marks_most_recent():
    c = LRUCache(4)
    c.put("k", "v1")
    c.put("x", 1)
    c.put("y", 2)
    c.put("k", "v2")
    assert list(c.dump()) == ["x", "y", "k"]
    c.put("z", 3)
    c.put("w", 4)
    assert c.get("x") is None
    assert c.get("k") == "v2"


@both
def test_overwrite_at_capacity_follows_put_order(cls):
    # sweep and eviction run before the old entry is dropped
    c = cls(2)
    c.put("a", 1)
    c.put("b", 2)
    c.put("b", 3)
    assert c.dump().keys() == {"b"}
    assert c.get("b") == 3


# --- TTL ---

@both
def test_lazy_expiration_on_get(cls):
    clock = FakeClock()
    c = cls(4, clock=clock)
    c.put("k", "v", ttl_sec=1)
    assert c.get("k") == "v"
    clock.advance(1.5)
    assert "k" in c.dump()  # dump never expires anything
    assert c.get("k") is None
    assert "k" not in c.dump()
    assert c.stats()["expired"] == 1
    check_invariants(c)


@both
def test_deadline_is_inclusive(cls):
    clock = FakeClock()
    c = cls(2, clock=clock)
    c.put("k", "v", ttl_sec=2)
    clock.advance(2)
    assert c.get("k") is None


@both
@pytest.mark.parametrize("ttl", [0, -1])
def test_non_positive_ttl_never_expires(cls, ttl):
    clock = FakeClock()
    c = cls(2, clock=clock)
    c.put("k", "v", ttl)
    assert c.dump()["k"].expire_at == NEVER
    clock.advance(10 ** 9)
    assert c.get("k") == "v"
    assert len(c._expiry) == 0


@both
def test_expired_entry_evicted_before_older_live_entry(cls):
    clock = FakeClock()
    c = cls(3, clock=clock)
    c.put("old", 1)
    c.put("short", 2, ttl_sec=1)
    c.put("long", 3, ttl_sec=100)
    clock.advance(5)
    c.put("new", 4)
    assert set(c.dump()) == {"old", "long", "new"}
    assert c.stats()["evictions"] == 0
    assert c.stats()["expired"] == 1
    check_invariants(c)


@both
def test_sweep_removes_every_expired_entry(cls):
    clock = FakeClock()
    c = cls(4, clock=clock)
    c.put("a", 1, ttl_sec=1)
    c.put("b", 2, ttl_sec=2)
    c.put("c", 3, ttl_sec=50)
    c.put("d", 4)
    clock.advance(3)
    c.put("e", 5)
    assert set(c.dump()) == {"c", "d", "e"}
    check_invariants(c)


@both
def test_no_sweep_below_capacity(cls):
    clock = FakeClock()
    c = cls(5, clock=clock)
    c.put("a", 1, ttl_sec=1)
    clock.advance(2)
    c.put("b", 2)
    assert "a" in c.dump()


@both
def test_identical_deadlines_are_both_indexed(cls):
    clock = FakeClock()
    c = cls(3, clock=clock)
    c.put("a", 1, ttl_sec=10)
    c.put("b", 2, ttl_sec=10)
    assert c.dump()["a"].expire_at == c.dump()["b"].expire_at
    check_invariants(c)
    c.put("c", 3)
    clock.advance(11)
    c.put("d", 4)
    assert set(c.dump()) == {"c", "d"}
    check_invariants(c)


@both
def test_overwrite_replaces_deadline(cls):
    clock = FakeClock()
    c = cls(2, clock=clock)
    c.put("k", 1, ttl_sec=1)
    c.put("k", 2, ttl_sec=100)
    clock.advance(5)
    assert c.get("k") == 2
    c.put("k", 3)
    clock.advance(500)
    assert c.get("k") == 3
    check_invariants(c)


# --- stats / factory / demo ---

def test_stats_counts():
    clock = FakeClock()
    c = LRUCache(1, clock=clock)
    c.put("a", 1)
    c.get("a")
    c.get("nope")
    c.put("b", 2)
    assert c.stats() == {
        "policy": "lru",
        "keys": 1,
        "capacity": 1,
        "hits": 1,
        "misses": 1,
        "sets": 2,
        "evictions": 1,
        "expired": 0,
    }


def test_create_cache_by_name():
    assert isinstance(create_cache("fifo", 2), FIFOCache)
    assert isinstance(create_cache("LRU", 2), LRUCache)
    assert isinstance(create_cache(EvictionPolicy.LRU, 2), LRUCache)
    with pytest.raises(ValueError):
        create_cache("lfu", 2)
    with pytest.raises(ValueError):
        create_cache("fifo", 0)


def test_create_cache_passes_clock():
    clock = FakeClock()
    c = create_cache("fifo", 2, clock=clock)
    c.put("k", "v", ttl_sec=1)
    clock.advance(1)
    assert c.get("k") is None


@pytest.mark.parametrize("policy,survivors", [("fifo", ["moon2", "moon3"]), ("lru", ["moon1", "moon3"])])
def test_demo_sequence(policy, survivors):
    out = io.StringIO()
    final = run_demo(create_cache(policy, 2), ttl_sec=300, out=out)
    assert sorted(final) == survivors
    lines = [json.loads(line) for line in out.getvalue().splitlines()]
    assert [line["step"] for line in lines] == ["put moon1", "put moon2", "get moon1", "put moon3"]
    assert sorted(lines[-1]["store"]) == survivors

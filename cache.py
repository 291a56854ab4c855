import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, NamedTuple, Optional, Protocol, runtime_checkable

from expiry import ExpiryIndex

logger = logging.getLogger(__name__)

NEVER = float("inf")

Clock = Callable[[], float]


class EvictionPolicy(str, Enum):
    FIFO = "fifo"
    LRU = "lru"


class EntryView(NamedTuple):
    value: Any
    expire_at: float  # NEVER when the entry has no TTL


class CacheEntry:
    __slots__ = ("key", "value", "expire_at", "prev", "next")

    def __init__(self, key: str, value: Any, expire_at: float):
        self.key = key
        self.value = value
        self.expire_at = expire_at
        # LRU list links, unused by FIFO
        self.prev: Optional["CacheEntry"] = None
        self.next: Optional["CacheEntry"] = None


@runtime_checkable
class Cache(Protocol):
    """Operations every eviction strategy provides."""

    def get(self, key: str, default: Any = None) -> Any:
        ...

    def put(self, key: str, value: Any, ttl_sec: float = 0.0) -> None:
        ...

    def remove(self, key: str) -> bool:
        ...

    def dump(self) -> Dict[str, EntryView]:
        ...

    def stats(self) -> Dict[str, Any]:
        ...

    def __len__(self) -> int:
        ...


def _check_capacity(capacity: int) -> int:
    if isinstance(capacity, bool) or not isinstance(capacity, int):
        raise TypeError(f"capacity must be an int, got {type(capacity).__name__}")
    if capacity < 1:
        raise ValueError(f"capacity must be >= 1, got {capacity}")
    return capacity


def _deadline(now: float, ttl_sec: float) -> float:
    return now + ttl_sec if ttl_sec > 0 else NEVER


class FIFOCache:
    """
    FIFO + TTL, capacity by entry count.
    - map: key -> entry; dict insertion order is eviction order (oldest first)
    - expiry index: expired entries are reclaimed before live ones are evicted
    - reads never reorder; re-putting a key moves it to the newest position
    """
    policy = EvictionPolicy.FIFO

    def __init__(self, capacity: int, clock: Clock = time.monotonic):
        self.capacity = _check_capacity(capacity)
        self.clock = clock
        self.map: Dict[str, CacheEntry] = {}
        self._expiry = ExpiryIndex()

        # stats
        self.hits = 0
        self.misses = 0
        self.sets = 0
        self.evictions = 0
        self.expired = 0

    def __len__(self) -> int:
        return len(self.map)

    def get(self, key: str, default: Any = None) -> Any:
        e = self.map.get(key)
        if e is None:
            self.misses += 1
            return default
        if e.expire_at <= self.clock():
            self._remove_entry(e)
            self.misses += 1
            self.expired += 1
            logger.debug("fifo: %r expired on read", key)
            return default
        self.hits += 1
        return e.value

    def put(self, key: str, value: Any, ttl_sec: float = 0.0) -> None:
        now = self.clock()
        if self._is_full():
            self._sweep_expired(now)
        while self._is_full():
            oldest = self.map[next(iter(self.map))]
            self._remove_entry(oldest)
            self.evictions += 1
            logger.debug("fifo: evicted %r (capacity %d)", oldest.key, self.capacity)

        # re-insertion is a fresh insert, never an in-place update
        current = self.map.get(key)
        if current is not None:
            self._remove_entry(current)

        e = CacheEntry(key, value, _deadline(now, ttl_sec))
        self.map[key] = e
        if e.expire_at != NEVER:
            self._expiry.add(key, e.expire_at)
        self.sets += 1

    def remove(self, key: str) -> bool:
        e = self.map.get(key)
        if e is None:
            return False
        self._remove_entry(e)
        return True

    def dump(self) -> Dict[str, EntryView]:
        return {k: EntryView(e.value, e.expire_at) for k, e in self.map.items()}

    def stats(self) -> Dict[str, Any]:
        return {
            "policy": self.policy.value,
            "keys": len(self.map),
            "capacity": self.capacity,
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "evictions": self.evictions,
            "expired": self.expired,
        }

    # --- internal helpers ---
    def _is_full(self) -> bool:
        return len(self.map) >= self.capacity

    def _sweep_expired(self, now: float):
        swept = 0
        for key in self._expiry.pop_expired(now):
            del self.map[key]
            swept += 1
        if swept:
            self.expired += swept
            logger.debug("fifo: swept %d expired entries", swept)

    def _remove_entry(self, e: CacheEntry):
        del self.map[e.key]
        if e.expire_at != NEVER:
            self._expiry.discard(e.key)


class LRUCache:
    """
    LRU + TTL, capacity by entry count.
    - map: key -> entry
    - doubly linked list for LRU ordering (head = MRU, tail = LRU)
    - expiry index: expired entries are reclaimed before live ones are evicted
    - get and put both count as use
    """
    policy = EvictionPolicy.LRU

    def __init__(self, capacity: int, clock: Clock = time.monotonic):
        self.capacity = _check_capacity(capacity)
        self.clock = clock
        self.map: Dict[str, CacheEntry] = {}
        self.head: Optional[CacheEntry] = None  # MRU
        self.tail: Optional[CacheEntry] = None  # LRU
        self._expiry = ExpiryIndex()

        # stats
        self.hits = 0
        self.misses = 0
        self.sets = 0
        self.evictions = 0
        self.expired = 0

    def __len__(self) -> int:
        return len(self.map)

    def get(self, key: str, default: Any = None) -> Any:
        e = self.map.get(key)
        if e is None:
            self.misses += 1
            return default
        if e.expire_at <= self.clock():
            self._remove_entry(e)
            self.misses += 1
            self.expired += 1
            logger.debug("lru: %r expired on read", key)
            return default
        self._move_to_head(e)
        self.hits += 1
        return e.value

    def put(self, key: str, value: Any, ttl_sec: float = 0.0) -> None:
        now = self.clock()
        if self._is_full():
            self._sweep_expired(now)
        while self._is_full():
            victim = self.tail
            self._remove_entry(victim)
            self.evictions += 1
            logger.debug("lru: evicted %r (capacity %d)", victim.key, self.capacity)

        current = self.map.get(key)
        if current is not None:
            self._remove_entry(current)

        e = CacheEntry(key, value, _deadline(now, ttl_sec))
        self.map[key] = e
        self._add_to_head(e)
        if e.expire_at != NEVER:
            self._expiry.add(key, e.expire_at)
        self.sets += 1

    def remove(self, key: str) -> bool:
        e = self.map.get(key)
        if e is None:
            return False
        self._remove_entry(e)
        return True

    def dump(self) -> Dict[str, EntryView]:
        # least recently used first, matching eviction order
        out: Dict[str, EntryView] = {}
        e = self.tail
        while e is not None:
            out[e.key] = EntryView(e.value, e.expire_at)
            e = e.prev
        return out

    def stats(self) -> Dict[str, Any]:
        return {
            "policy": self.policy.value,
            "keys": len(self.map),
            "capacity": self.capacity,
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "evictions": self.evictions,
            "expired": self.expired,
        }

    # --- internal LRU + eviction helpers ---
    def _is_full(self) -> bool:
        return len(self.map) >= self.capacity

    def _sweep_expired(self, now: float):
        swept = 0
        for key in self._expiry.pop_expired(now):
            e = self.map.pop(key)
            self._unlink(e)
            swept += 1
        if swept:
            self.expired += swept
            logger.debug("lru: swept %d expired entries", swept)

    def _remove_entry(self, e: CacheEntry):
        del self.map[e.key]
        if e.expire_at != NEVER:
            self._expiry.discard(e.key)
        self._unlink(e)

    def _unlink(self, e: CacheEntry):
        if e.prev:
            e.prev.next = e.next
        if e.next:
            e.next.prev = e.prev
        if self.head is e:
            self.head = e.next
        if self.tail is e:
            self.tail = e.prev
        e.prev = e.next = None

    def _add_to_head(self, e: CacheEntry):
        e.prev = None
        e.next = self.head
        if self.head:
            self.head.prev = e
        self.head = e
        if self.tail is None:
            self.tail = e

    def _move_to_head(self, e: CacheEntry):
        if self.head is e:
            return
        self._unlink(e)
        self._add_to_head(e)


_STRATEGIES = {
    EvictionPolicy.FIFO: FIFOCache,
    EvictionPolicy.LRU: LRUCache,
}


def create_cache(policy: str, capacity: int, clock: Clock = time.monotonic) -> Cache:
    """Build a cache by policy name ("fifo" or "lru")."""
    try:
        chosen = EvictionPolicy(policy.lower())
    except (AttributeError, ValueError):
        raise ValueError(f"unknown eviction policy: {policy!r}") from None
    return _STRATEGIES[chosen](capacity, clock=clock)

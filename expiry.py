import heapq
from typing import Dict, Iterator, List, Optional, Tuple


class ExpiryIndex:
    """
    Deadline-ordered index: key -> finite expire_at.
    - min-heap of (expire_at, seq, key) with lazy deletion
    - live table key -> (expire_at, seq) is the source of truth
    - seq breaks ties, so equal deadlines never collide and pop in insertion order
    """
    def __init__(self):
        self._heap: List[Tuple[float, int, str]] = []
        self._live: Dict[str, Tuple[float, int]] = {}
        self._seq = 0

    def __len__(self) -> int:
        return len(self._live)

    def __contains__(self, key: str) -> bool:
        return key in self._live

    def deadline_of(self, key: str) -> Optional[float]:
        rec = self._live.get(key)
        return rec[0] if rec else None

    def add(self, key: str, expire_at: float):
        self._seq += 1
        self._live[key] = (expire_at, self._seq)
        heapq.heappush(self._heap, (expire_at, self._seq, key))

    def discard(self, key: str) -> bool:
        if self._live.pop(key, None) is None:
            return False
        # stale nodes stay in the heap until popped or compacted
        if len(self._heap) > 2 * len(self._live) + 16:
            self._compact()
        return True

    def pop_expired(self, now: float) -> Iterator[str]:
        """Yield and unindex keys whose deadline is <= now, smallest first.

        Stops at the first live deadline > now; everything after it is later.
        """
        while self._heap:
            expire_at, seq, key = self._heap[0]
            if self._live.get(key) != (expire_at, seq):
                heapq.heappop(self._heap)  # stale
                continue
            if expire_at > now:
                return
            heapq.heappop(self._heap)
            del self._live[key]
            yield key

    def items(self) -> List[Tuple[str, float]]:
        # live records in ascending deadline order
        ordered = sorted((exp, seq, key) for key, (exp, seq) in self._live.items())
        return [(key, exp) for exp, _, key in ordered]

    def _compact(self):
        self._heap = [(exp, seq, key) for key, (exp, seq) in self._live.items()]
        heapq.heapify(self._heap)

import argparse
import json
import logging
import sys
from typing import Dict, Optional, TextIO

from cache import NEVER, Cache, EntryView, EvictionPolicy, create_cache


def _snapshot(cache: Cache) -> Dict[str, dict]:
    out = {}
    for key, view in cache.dump().items():
        expire_at = None if view.expire_at == NEVER else view.expire_at
        out[key] = {"value": view.value, "expire_at": expire_at}
    return out


def run_demo(cache: Cache, ttl_sec: float = 300, out: Optional[TextIO] = None) -> Dict[str, EntryView]:
    """
    Same call sequence for every strategy:
      put moon1, put moon2, get moon1, put moon3
    With capacity 2 a FIFO cache drops moon1, an LRU cache drops moon2.
    """
    out = out or sys.stdout

    def show(step: str):
        out.write(json.dumps({"step": step, "store": _snapshot(cache)}) + "\n")

    cache.put("moon1", "zhou1", ttl_sec)
    show("put moon1")
    cache.put("moon2", "zhou2", ttl_sec)
    show("put moon2")
    cache.get("moon1")
    show("get moon1")
    cache.put("moon3", "zhou3", ttl_sec)
    show("put moon3")
    return cache.dump()


def main(argv=None):
    ap = argparse.ArgumentParser(description="Run the FIFO/LRU cache demo")
    ap.add_argument("--policy", choices=[p.value for p in EvictionPolicy] + ["both"], default="both")
    ap.add_argument("--capacity", type=int, default=2)
    ap.add_argument("--ttl", type=float, default=300.0)
    ap.add_argument("--log-level", default="WARNING")
    args = ap.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    policies = list(EvictionPolicy) if args.policy == "both" else [EvictionPolicy(args.policy)]
    for policy in policies:
        cache = create_cache(policy, args.capacity)
        print(f"== {policy.value} (capacity={args.capacity}, ttl={args.ttl}s)")
        run_demo(cache, args.ttl)
        print(json.dumps(cache.stats(), separators=(",", ":")))


if __name__ == "__main__":
    main()

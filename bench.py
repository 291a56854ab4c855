import argparse
import logging
import time

from cache import Cache, EvictionPolicy, create_cache


def bench_put(cache: Cache, n: int, ttl_sec: float = 0.0):
    start = time.perf_counter()
    for i in range(n):
        cache.put(f"k{i}", b"value", ttl_sec)
    elapsed = time.perf_counter() - start
    return n / elapsed if elapsed else float("inf"), elapsed


def bench_get(cache: Cache, n: int):
    start = time.perf_counter()
    for i in range(n):
        cache.get(f"k{i}")
    elapsed = time.perf_counter() - start
    return n / elapsed if elapsed else float("inf"), elapsed


def main(argv=None):
    ap = argparse.ArgumentParser(description="In-process FIFO/LRU cache benchmark")
    ap.add_argument("--n", type=int, default=100000)
    ap.add_argument("--capacity", type=int, default=10000)
    ap.add_argument("--ttl", type=float, default=0.0)
    ap.add_argument("--policy", choices=[p.value for p in EvictionPolicy] + ["both"], default="both")
    ap.add_argument("--log-level", default="WARNING")
    args = ap.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper())

    policies = list(EvictionPolicy) if args.policy == "both" else [EvictionPolicy(args.policy)]
    for policy in policies:
        cache = create_cache(policy, args.capacity)
        rps_put, t_put = bench_put(cache, args.n, args.ttl)
        rps_get, t_get = bench_get(cache, args.n)
        print(f"[{policy.value}] PUT: {args.n} ops in {t_put:.2f}s -> {rps_put:.0f} ops/s")
        print(f"[{policy.value}] GET: {args.n} ops in {t_get:.2f}s -> {rps_get:.0f} ops/s")
        print(f"[{policy.value}] stats: {cache.stats()}")


if __name__ == "__main__":
    main()

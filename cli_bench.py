"""Terminal benchmark runner that reuses the in-process harness."""
from __future__ import annotations

import argparse
import asyncio
import logging
import time
from typing import Iterable, Sequence

from catalog_search.benchmark import BenchmarkHarness, Statistics
from catalog_search.config import settings
from catalog_search.es_client import SearchEngineClient
from catalog_search.performance import SCENARIOS
from catalog_search.query import CompiledQuery
from catalog_search.seeding import generate_products, seed_index
from catalog_search.shaping import shape_index_stats

BULK_SAMPLE_SIZE = 100
SLOW_MS = 200
GREEN = "\033[92m"
RED = "\033[91m"
RESET = "\033[0m"


def _colored_ms(value: float | None) -> str:
    if value is None:
        return "-"
    color = GREEN if value < SLOW_MS else RED
    return f"{color}{value:.1f} ms{RESET}"


def pretty_print_statistics(name: str, stats: Statistics) -> None:
    rate_color = GREEN if stats.failed == 0 else RED
    print(
        f"Scenario: {name} | queries: {stats.count} | "
        f"success: {rate_color}{stats.success_rate:.2f}%{RESET}"
    )
    print(
        f"  mean={_colored_ms(stats.mean)} min={_colored_ms(stats.min)} max={_colored_ms(stats.max)}"
    )
    print(
        f"  p50={_colored_ms(stats.p50)} p90={_colored_ms(stats.p90)} "
        f"p95={_colored_ms(stats.p95)} p99={_colored_ms(stats.p99)}"
    )


async def run_scenario(
    engine: SearchEngineClient,
    queries: Sequence[CompiledQuery],
    iterations: int,
    concurrency: int,
    timeout: float | None,
) -> Statistics:
    harness = BenchmarkHarness(engine, concurrency=concurrency, timeout=timeout)
    run = await harness.run(queries, iterations)
    return run.statistics


async def time_bulk_insert(engine: SearchEngineClient, count: int = BULK_SAMPLE_SIZE) -> float:
    documents = generate_products(count)
    start = time.perf_counter()
    result = await asyncio.to_thread(engine.index_bulk, documents)
    elapsed_ms = (time.perf_counter() - start) * 1000
    status = f"{GREEN}ok{RESET}" if not result.errors else f"{RED}{result.error_count} errors{RESET}"
    print(f"Bulk insert: {result.total} documents in {_colored_ms(elapsed_ms)} ({status})")
    return elapsed_ms


def print_index_stats(engine: SearchEngineClient) -> None:
    stats = shape_index_stats(engine.stats())
    print(
        f"Index {stats['index']['name']}: {stats['index']['total_documents']} documents, "
        f"{stats['index']['index_size_mb']} MB, {stats['shards']['total']} shards"
    )


async def bench(args: argparse.Namespace) -> int:
    engine = SearchEngineClient.from_settings(settings)
    try:
        names = args.scenario or list(SCENARIOS)
        failures = 0
        for name in names:
            stats = await run_scenario(engine, SCENARIOS[name], args.iterations, args.concurrency, args.timeout)
            pretty_print_statistics(name, stats)
            failures += stats.failed
        if not args.skip_bulk:
            await time_bulk_insert(engine)
        print_index_stats(engine)
    finally:
        engine.close()
    return 1 if failures else 0


async def seed(args: argparse.Namespace) -> int:
    engine = SearchEngineClient.from_settings(settings)
    try:
        inserted = await seed_index(engine, args.count)
    finally:
        engine.close()
    color = GREEN if inserted == args.count else RED
    print(f"Seeded {color}{inserted}/{args.count}{RESET} products into {settings.es_index}")
    return 0 if inserted == args.count else 1


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Benchmark and seeding tools for the catalog search service")
    subparsers = parser.add_subparsers(dest="command", required=True)

    bench_parser = subparsers.add_parser("bench", help="Replay benchmark scenarios against Elasticsearch")
    bench_parser.add_argument(
        "--scenario", action="append", choices=sorted(SCENARIOS), help="Scenario to run (repeatable, default: all)"
    )
    bench_parser.add_argument("--iterations", type=int, default=10)
    bench_parser.add_argument("--concurrency", type=int, default=settings.benchmark_concurrency)
    bench_parser.add_argument("--timeout", type=float, default=settings.benchmark_timeout_seconds)
    bench_parser.add_argument("--skip-bulk", action="store_true", help="Do not time a sample bulk insert")
    bench_parser.set_defaults(handler=bench)

    seed_parser = subparsers.add_parser("seed", help="Recreate the index with synthetic products")
    seed_parser.add_argument("--count", type=int, default=settings.seed_count)
    seed_parser.set_defaults(handler=seed)

    args = parser.parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    return asyncio.run(args.handler(args))


if __name__ == "__main__":
    raise SystemExit(main())

"""Load tests and the standard benchmark suite."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Sequence, Tuple

from . import aggregations as aggs
from .benchmark import BenchmarkHarness, compute_statistics
from .clauses import Bool, Match, MultiMatch, Range, SortField, Term, Wildcard
from .config import settings
from .errors import InputError
from .es_client import SearchEngineClient
from .models import LoadTestRequest
from .query import CompiledQuery, RawQuery
from .shaping import shape_index_stats

logger = logging.getLogger(__name__)

# Named single-shot queries for GET /api/performance/benchmark.
STANDARD_BENCHMARKS: Tuple[Tuple[str, CompiledQuery], ...] = (
    ("Simple Match Query", CompiledQuery(query=Match("name", "test"), size=10)),
    (
        "Multi-Match Query",
        CompiledQuery(query=MultiMatch("electronics", ("name^3", "description^2", "category")), size=10),
    ),
    ("Range Query", CompiledQuery(query=Range("price", gte=50, lte=200), size=10)),
    (
        "Bool Query with Filters",
        CompiledQuery(
            query=Bool(
                must=(Match("category", "electronics"),),
                filter=(Range("price", gte=100), Term("inStock", True)),
            ),
            size=10,
        ),
    ),
    (
        "Aggregation Query",
        CompiledQuery(
            aggregations={"categories": aggs.TermsAgg("category", size=10), "avg_price": aggs.avg("price")},
            size=0,
        ),
    ),
    (
        "Complex Search with Sorting",
        CompiledQuery(
            query=MultiMatch("smartphone", ("name^3", "description^2")),
            sort=(SortField("rating", "desc"), SortField("price", "asc")),
            size=10,
        ),
    ),
)

# Scenario suites replayed by the command line benchmark.
SCENARIOS: Dict[str, Tuple[CompiledQuery, ...]] = {
    "search": (
        CompiledQuery(query=Match("name", "smartphone"), size=10),
        CompiledQuery(query=MultiMatch("electronics", ("name^3", "description^2", "category")), size=20),
        CompiledQuery(
            query=Bool(
                must=(Match("category", "Electronics"),),
                filter=(Range("price", gte=100, lte=500), Term("inStock", True)),
            ),
            size=15,
        ),
        CompiledQuery(query=Wildcard("name", "*smart*"), size=10),
    ),
    "aggregation": (
        CompiledQuery(
            aggregations={"categories": aggs.TermsAgg("category", size=10), "avg_price": aggs.avg("price")},
            size=0,
        ),
        CompiledQuery(aggregations={"price_ranges": aggs.unlabelled_price_ranges((50, 100, 200))}, size=0),
    ),
    "complex": (
        CompiledQuery(
            query=Bool(
                must=(MultiMatch("premium quality", ("name^3", "description^2"), type="best_fields"),),
                should=(Term("tags", "premium"), Range("rating", gte=4.0)),
                filter=(Term("inStock", True),),
            ),
            sort=(SortField("rating", "desc"), SortField("price", "asc")),
            size=20,
        ),
    ),
}


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


async def run_load_test(engine: SearchEngineClient, request: LoadTestRequest) -> Dict[str, Any]:
    if not request.queries:
        raise InputError("Queries array is required and must not be empty")
    if request.iterations > settings.benchmark_max_iterations:
        raise InputError(f"iterations must not exceed {settings.benchmark_max_iterations}")
    if request.concurrent > settings.benchmark_max_concurrency:
        raise InputError(f"concurrent must not exceed {settings.benchmark_max_concurrency}")

    queries: List[RawQuery] = [RawQuery(body) for body in request.queries]
    harness = BenchmarkHarness(engine, concurrency=request.concurrent, timeout=request.timeout)
    run = await harness.run(queries, request.iterations)
    return {
        "testType": "search",
        "iterations": run.iterations,
        "concurrent": run.concurrency,
        "totalQueries": len(run.queries),
        "startTime": run.started_at.isoformat() if run.started_at else None,
        "endTime": run.finished_at.isoformat() if run.finished_at else None,
        "results": [iteration.to_dict() for iteration in run.results],
        "statistics": run.statistics.to_dict(),
    }


async def run_standard_benchmark(
    engine: SearchEngineClient, benchmarks: Sequence[Tuple[str, CompiledQuery]] = STANDARD_BENCHMARKS
) -> Dict[str, Any]:
    harness = BenchmarkHarness(engine)
    run = await harness.run([query for _, query in benchmarks], iterations=1)
    calls = run.calls()
    tests = []
    for (name, _), call in zip(benchmarks, calls):
        entry: Dict[str, Any] = {"name": name, "success": call.success, "duration": round(call.duration_ms, 3)}
        if call.success:
            entry["elasticsearchTook"] = call.took_ms
            entry["totalHits"] = call.hit_count
        else:
            entry["error"] = call.error
        tests.append(entry)
    stats = compute_statistics(calls)
    return {
        "timestamp": _timestamp(),
        "tests": tests,
        "summary": {
            "totalTests": stats.count,
            "successfulTests": stats.successful,
            "failedTests": stats.failed,
            "averageDuration": stats.mean,
            "minDuration": stats.min,
            "maxDuration": stats.max,
        },
    }


async def index_statistics(engine: SearchEngineClient) -> Dict[str, Any]:
    stats = await asyncio.to_thread(engine.stats)
    return shape_index_stats(stats)

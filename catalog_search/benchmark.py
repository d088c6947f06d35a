"""Latency benchmark harness.

A run executes every query once per iteration. Queries run in order inside an
iteration; iterations run concurrently up to ``concurrency``. Each call is
timed on its own and written into a slot addressed by (iteration, position),
so completion order never affects attribution. A failing call is recorded and
the run carries on.
"""
from __future__ import annotations

import asyncio
import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from .es_client import QueryBody
from .errors import InputError

logger = logging.getLogger(__name__)

PERCENTILES = (50, 90, 95, 99)
# Latency figures only cover calls that returned a response.
LATENCY_BASIS = "successful"


@dataclass(frozen=True)
class CallResult:
    position: int
    duration_ms: float
    success: bool
    hit_count: Optional[int] = None
    took_ms: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "position": self.position,
            "success": self.success,
            "duration": round(self.duration_ms, 3),
        }
        if self.success:
            payload["hits"] = self.hit_count
            payload["took"] = self.took_ms
        else:
            payload["error"] = self.error
        return payload


@dataclass
class IterationResult:
    iteration: int
    calls: List[CallResult]

    def to_dict(self) -> Dict[str, Any]:
        return {"iteration": self.iteration, "queries": [call.to_dict() for call in self.calls]}


@dataclass(frozen=True)
class Statistics:
    count: int
    successful: int
    failed: int
    success_rate: float
    mean: Optional[float]
    min: Optional[float]
    max: Optional[float]
    p50: Optional[float]
    p90: Optional[float]
    p95: Optional[float]
    p99: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalQueries": self.count,
            "successfulQueries": self.successful,
            "failedQueries": self.failed,
            "successRate": self.success_rate,
            "averageDuration": self.mean,
            "minDuration": self.min,
            "maxDuration": self.max,
            "p50Duration": self.p50,
            "p90Duration": self.p90,
            "p95Duration": self.p95,
            "p99Duration": self.p99,
            "latencyBasis": LATENCY_BASIS,
        }


@dataclass
class BenchmarkRun:
    queries: Sequence[QueryBody]
    iterations: int
    concurrency: int
    results: List[IterationResult] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def calls(self) -> List[CallResult]:
        return [call for iteration in self.results for call in iteration.calls]

    @property
    def statistics(self) -> Statistics:
        return compute_statistics(self.calls())


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile of an ascending sequence: index ``ceil(p/100 * n) - 1``."""
    index = math.ceil((p / 100) * len(sorted_values)) - 1
    return sorted_values[index]


def _rounded(value: Optional[float]) -> Optional[float]:
    return None if value is None else round(value, 3)


def compute_statistics(calls: Iterable[CallResult]) -> Statistics:
    """Summarise a run.

    ``count`` covers every attempted call; latency figures are taken over the
    successful calls only and are ``None`` when there are none.
    """
    calls = list(calls)
    durations = sorted(call.duration_ms for call in calls if call.success)
    count = len(calls)
    successful = len(durations)
    success_rate = round(successful / count * 100, 2) if count else 0.0
    if not durations:
        return Statistics(count, 0, count, success_rate, None, None, None, None, None, None, None)
    p50, p90, p95, p99 = (_rounded(percentile(durations, p)) for p in PERCENTILES)
    return Statistics(
        count=count,
        successful=successful,
        failed=count - successful,
        success_rate=success_rate,
        mean=_rounded(sum(durations) / successful),
        min=_rounded(durations[0]),
        max=_rounded(durations[-1]),
        p50=p50,
        p90=p90,
        p95=p95,
        p99=p99,
    )


class BenchmarkHarness:
    """Drive queries through ``engine.execute`` and time every call.

    ``engine`` only needs a blocking ``execute(query)`` returning an object
    with ``total`` and ``took_ms``; calls run on a pool of ``concurrency``
    threads owned by the run, so the measured time never includes waiting for
    a free worker. When ``timeout`` (seconds, whole run) elapses, unfinished
    calls are reported as failed with a timeout error.
    """

    def __init__(
        self,
        engine: Any,
        *,
        concurrency: int = 1,
        timeout: Optional[float] = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        if concurrency < 1:
            raise InputError("concurrency must be at least 1")
        if timeout is not None and timeout <= 0:
            raise InputError("timeout must be positive")
        self.engine = engine
        self.concurrency = concurrency
        self.timeout = timeout
        self._clock = clock

    def _elapsed_ms(self, start: float) -> float:
        return (self._clock() - start) * 1000

    async def _timed_call(
        self, executor: ThreadPoolExecutor, position: int, query: QueryBody, start: float
    ) -> CallResult:
        loop = asyncio.get_running_loop()
        try:
            response = await loop.run_in_executor(executor, self.engine.execute, query)
        except Exception as exc:
            logger.warning("benchmark query #%s failed: %s", position + 1, exc)
            return CallResult(position, self._elapsed_ms(start), False, error=str(exc) or type(exc).__name__)
        return CallResult(
            position,
            self._elapsed_ms(start),
            True,
            hit_count=response.total,
            took_ms=response.took_ms,
        )

    async def run(self, queries: Sequence[QueryBody], iterations: int) -> BenchmarkRun:
        if not queries:
            raise InputError("Queries array is required and must not be empty")
        if iterations < 1:
            raise InputError("iterations must be at least 1")

        run = BenchmarkRun(
            queries=list(queries),
            iterations=iterations,
            concurrency=self.concurrency,
            started_at=datetime.now(timezone.utc),
        )
        slots: List[List[Optional[CallResult]]] = [[None] * len(queries) for _ in range(iterations)]
        started: Dict[tuple, float] = {}
        semaphore = asyncio.Semaphore(self.concurrency)
        # One worker per in-flight iteration so no call waits for a thread.
        executor = ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix="benchmark")

        async def run_iteration(iteration: int) -> None:
            async with semaphore:
                for position, query in enumerate(run.queries):
                    start = self._clock()
                    started[(iteration, position)] = start
                    slots[iteration][position] = await self._timed_call(executor, position, query, start)

        logger.info(
            "benchmark start queries=%s iterations=%s concurrency=%s timeout=%s",
            len(queries),
            iterations,
            self.concurrency,
            self.timeout,
        )
        try:
            tasks = [asyncio.create_task(run_iteration(iteration)) for iteration in range(iterations)]
            _, pending = await asyncio.wait(tasks, timeout=self.timeout)
            if pending:
                logger.warning(
                    "benchmark timed out after %ss with %s iterations unfinished", self.timeout, len(pending)
                )
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)
        finally:
            # Calls already running when the timeout hits finish in the background.
            executor.shutdown(wait=False, cancel_futures=True)

        timeout_error = f"Timed out after {self.timeout}s"
        for iteration, row in enumerate(slots):
            calls = []
            for position, slot in enumerate(row):
                if slot is None:
                    start = started.get((iteration, position))
                    elapsed = self._elapsed_ms(start) if start is not None else 0.0
                    slot = CallResult(position, elapsed, False, error=timeout_error)
                calls.append(slot)
            run.results.append(IterationResult(iteration=iteration + 1, calls=calls))

        run.finished_at = datetime.now(timezone.utc)
        stats = run.statistics
        logger.info(
            "benchmark done calls=%s success_rate=%s%% mean=%sms p95=%sms",
            stats.count,
            stats.success_rate,
            stats.mean,
            stats.p95,
        )
        return run

"""Analytics and aggregation endpoints.

Each function compiles an aggregation-only query, runs it and shapes the
buckets. The ``/api/analytics`` summaries are cached for
``settings.cache_ttl_seconds``; the ``/api/aggregations`` variants report
their own execution time and are never cached.
"""
from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Any, Awaitable, Callable, Dict, Tuple

from . import aggregations as aggs
from .cache import CacheBackend, cache_key
from .clauses import Bool, Range
from .config import settings
from .errors import InputError
from .es_client import EngineResponse, QueryBody, SearchEngineClient
from .models import ComplexAggregationRequest, FilterSet
from .query import CompiledQuery, RawQuery, build_filter_clauses
from .shaping import (
    buckets,
    shape_category_bucket,
    shape_complex_bucket,
    shape_histogram_bucket,
    shape_overview,
    shape_price_bucket,
    shape_rating_bucket,
    shape_stats,
    shape_stock_bucket,
    shape_tag_bucket,
    shape_top_rated_bucket,
    shape_trend_bucket,
)

logger = logging.getLogger(__name__)

CUSTOM_AGGREGATION_EXAMPLE = {
    "query": {"aggs": {"categories": {"terms": {"field": "category", "size": 10}}}, "size": 0}
}


async def _timed_execute(engine: SearchEngineClient, query: QueryBody) -> Tuple[EngineResponse, int]:
    start = perf_counter()
    response = await asyncio.to_thread(engine.execute, query)
    return response, int((perf_counter() - start) * 1000)


async def _cached(
    cache: CacheBackend | None,
    key: str,
    build: Callable[[], Awaitable[Dict[str, Any]]],
) -> Dict[str, Any]:
    if cache is not None:
        hit = cache.get(key)
        if hit is not None:
            logger.debug("cache hit key=%s", key)
            return hit
    payload = await build()
    if cache is not None:
        cache.set(key, payload, settings.cache_ttl_seconds)
    return payload


# ---------------------------------------------------------------------------
# /api/analytics
# ---------------------------------------------------------------------------


async def overview(engine: SearchEngineClient, cache: CacheBackend | None = None) -> Dict[str, Any]:
    async def build() -> Dict[str, Any]:
        query = CompiledQuery(aggregations=aggs.overview_aggregations(), size=0)
        response = await asyncio.to_thread(engine.execute, query)
        return shape_overview(response.aggregations)

    return await _cached(cache, cache_key("overview"), build)


async def category_distribution(
    engine: SearchEngineClient, cache: CacheBackend | None = None, size: int = 20
) -> Dict[str, Any]:
    async def build() -> Dict[str, Any]:
        query = CompiledQuery(aggregations={"categories": aggs.category_counts(size)}, size=0)
        response = await asyncio.to_thread(engine.execute, query)
        return {"categories": [shape_category_bucket(b) for b in buckets(response.aggregations, "categories")]}

    return await _cached(cache, cache_key("categories", size=size), build)


async def price_distribution(engine: SearchEngineClient, cache: CacheBackend | None = None) -> Dict[str, Any]:
    async def build() -> Dict[str, Any]:
        query = CompiledQuery(
            aggregations={
                "price_ranges": aggs.price_ranges(aggs.DISTRIBUTION_PRICE_BREAKPOINTS),
                "price_histogram": aggs.price_histogram(50),
            },
            size=0,
        )
        response = await asyncio.to_thread(engine.execute, query)
        return {
            "price_ranges": [shape_price_bucket(b) for b in buckets(response.aggregations, "price_ranges")],
            "histogram": [shape_histogram_bucket(b) for b in buckets(response.aggregations, "price_histogram")],
        }

    return await _cached(cache, cache_key("price-distribution"), build)


async def rating_distribution(engine: SearchEngineClient, cache: CacheBackend | None = None) -> Dict[str, Any]:
    async def build() -> Dict[str, Any]:
        query = CompiledQuery(
            aggregations={
                "rating_ranges": aggs.rating_ranges(descriptive=False),
                "top_rated": aggs.top_rated(10),
            },
            size=0,
        )
        response = await asyncio.to_thread(engine.execute, query)
        return {
            "rating_ranges": [shape_rating_bucket(b) for b in buckets(response.aggregations, "rating_ranges")],
            "top_rated": [shape_top_rated_bucket(b) for b in buckets(response.aggregations, "top_rated")],
        }

    return await _cached(cache, cache_key("rating-distribution"), build)


async def trends(engine: SearchEngineClient, interval: str = "day") -> Dict[str, Any]:
    query = CompiledQuery(aggregations={"trends": aggs.date_trends(interval)}, size=0)
    response = await asyncio.to_thread(engine.execute, query)
    return {"trends": [shape_trend_bucket(b) for b in buckets(response.aggregations, "trends")]}


async def search_analytics(engine: SearchEngineClient, days: int = 7) -> Dict[str, Any]:
    if days < 1:
        raise InputError("days must be at least 1")
    query = CompiledQuery(
        query=Range("createdAt", gte=f"now-{days}d/d"),
        aggregations={
            "search_terms": aggs.TermsAgg("name.keyword", size=20, order=("_count", "desc")),
            "categories_searched": aggs.TermsAgg("category", size=10),
            "price_ranges_searched": aggs.unlabelled_price_ranges((50, 100, 200)),
        },
        size=0,
    )
    response = await asyncio.to_thread(engine.execute, query)
    return {
        "period_days": days,
        "total_searches": response.total,
        "top_search_terms": buckets(response.aggregations, "search_terms"),
        "categories_searched": buckets(response.aggregations, "categories_searched"),
        "price_ranges_searched": buckets(response.aggregations, "price_ranges_searched"),
    }


# ---------------------------------------------------------------------------
# /api/aggregations
# ---------------------------------------------------------------------------


async def custom_aggregation(engine: SearchEngineClient, body: Dict[str, Any] | None) -> Dict[str, Any]:
    if not body:
        raise InputError("Query parameter is required", example=CUSTOM_AGGREGATION_EXAMPLE)
    response, elapsed = await _timed_execute(engine, RawQuery(body))
    return {
        "query": body,
        "execution_time": elapsed,
        "aggregations": response.aggregations,
        "total_documents": response.total,
    }


async def category_breakdown(engine: SearchEngineClient, size: int = 10, order: str = "desc") -> Dict[str, Any]:
    query = CompiledQuery(aggregations={"categories": aggs.category_counts(size, order)}, size=0)
    response, elapsed = await _timed_execute(engine, query)
    return {
        "execution_time": elapsed,
        "categories": [shape_category_bucket(b) for b in buckets(response.aggregations, "categories")],
    }


async def price_analysis(engine: SearchEngineClient, ranges: str = "50,100,200,500") -> Dict[str, Any]:
    breakpoints = aggs.parse_breakpoints(ranges)
    query = CompiledQuery(
        aggregations={"price_ranges": aggs.price_ranges(breakpoints), "price_stats": aggs.StatsAgg("price")},
        size=0,
    )
    response, elapsed = await _timed_execute(engine, query)
    return {
        "execution_time": elapsed,
        "price_ranges": [shape_price_bucket(b) for b in buckets(response.aggregations, "price_ranges")],
        "price_statistics": shape_stats(response.aggregations.get("price_stats") or {}),
    }


async def rating_analysis(engine: SearchEngineClient) -> Dict[str, Any]:
    query = CompiledQuery(
        aggregations={"rating_ranges": aggs.rating_ranges(descriptive=True), "rating_stats": aggs.StatsAgg("rating")},
        size=0,
    )
    response, elapsed = await _timed_execute(engine, query)
    return {
        "execution_time": elapsed,
        "rating_ranges": [shape_rating_bucket(b) for b in buckets(response.aggregations, "rating_ranges")],
        "rating_statistics": shape_stats(response.aggregations.get("rating_stats") or {}, rating=True),
    }


async def tag_analysis(engine: SearchEngineClient, size: int = 20) -> Dict[str, Any]:
    query = CompiledQuery(aggregations={"popular_tags": aggs.tag_popularity(size)}, size=0)
    response, elapsed = await _timed_execute(engine, query)
    return {
        "execution_time": elapsed,
        "popular_tags": [shape_tag_bucket(b) for b in buckets(response.aggregations, "popular_tags")],
    }


async def stock_analysis(engine: SearchEngineClient) -> Dict[str, Any]:
    query = CompiledQuery(aggregations={"stock_status": aggs.stock_split()}, size=0)
    response, elapsed = await _timed_execute(engine, query)
    return {
        "execution_time": elapsed,
        "stock_analysis": [shape_stock_bucket(b) for b in buckets(response.aggregations, "stock_status")],
    }


async def complex_analysis(engine: SearchEngineClient, request: ComplexAggregationRequest) -> Dict[str, Any]:
    filters = build_filter_clauses(
        FilterSet(
            category=request.category_filter,
            priceMin=request.price_min,
            priceMax=request.price_max,
            ratingMin=request.rating_min if request.rating_min > 0 else None,
        )
    )
    query = CompiledQuery(
        query=Bool(filter=tuple(filters)) if filters else None,
        aggregations={
            "categories": aggs.complex_category_breakdown(10),
            "overall_stats": aggs.StatsAgg("price"),
        },
        size=0,
    )
    response, elapsed = await _timed_execute(engine, query)
    overall = shape_stats(response.aggregations.get("overall_stats") or {})
    return {
        "filters_applied": request.model_dump(),
        "execution_time": elapsed,
        "total_documents": response.total,
        "categories": [shape_complex_bucket(b) for b in buckets(response.aggregations, "categories")],
        "overall_statistics": {
            "count": overall["count"],
            "average_price": overall["average"],
            "min_price": overall["min"],
            "max_price": overall["max"],
        },
    }

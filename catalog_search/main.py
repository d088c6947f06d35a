"""FastAPI application wiring the catalog search service."""
from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import analytics, analyzers, performance, products, search
from .cache import CacheBackend, create_cache
from .config import settings
from .errors import CatalogError, EngineError, InputError
from .es_client import SearchEngineClient
from .indexing import ensure_index
from .models import (
    AnalyzeRequest,
    BulkProductsRequest,
    CompareAnalyzersRequest,
    ComplexAggregationRequest,
    CustomAggregationRequest,
    LoadTestRequest,
    Product,
    SearchRequest,
    SearchResponse,
    SortOrder,
)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL = logging.getLevelName(settings.log_level.upper())

# ``force=True`` replaces uvicorn's default handlers so every module logs
# through the same format.
logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, force=True)
for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "elastic_transport"):
    logging.getLogger(name).setLevel(LOG_LEVEL)

logger = logging.getLogger(__name__)
logger.info("Logging configured at %s", settings.log_level.upper())


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = SearchEngineClient.from_settings(settings)
    cache = create_cache(settings)
    app.state.engine = engine
    app.state.cache = cache
    if settings.ensure_index_on_startup:
        try:
            await ensure_index(engine)
        except EngineError as exc:
            logger.error("Could not prepare index %s: %s", settings.es_index, exc)
    try:
        yield
    finally:
        engine.close()
        cache.close()
        logger.info("Elasticsearch client closed")


app = FastAPI(title="Catalog Search Service", lifespan=lifespan)


def get_engine(request: Request) -> SearchEngineClient:
    return request.app.state.engine


def get_cache(request: Request) -> CacheBackend | None:
    return getattr(request.app.state, "cache", None)


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    if isinstance(exc, InputError) and exc.example is not None:
        return _error(exc.status_code, str(exc), example=exc.example)
    return _error(exc.status_code, str(exc))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}" for error in exc.errors()
    )
    return _error(400, problems or "Invalid request")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(500, str(exc) or type(exc).__name__)


@app.middleware("http")
async def access_log(request: Request, call_next):
    t0 = time.perf_counter()
    response = await call_next(request)
    took_ms = (time.perf_counter() - t0) * 1000
    logger.info("%s %s -> %s in %.1fms", request.method, request.url.path, response.status_code, took_ms)
    return response


@app.get("/health")
async def health(engine: SearchEngineClient = Depends(get_engine)):
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        status = await asyncio.to_thread(engine.health)
    except EngineError as exc:
        return JSONResponse(status_code=503, content={"status": "ERROR", "timestamp": timestamp, "error": str(exc)})
    return {"status": "OK", "timestamp": timestamp, "elasticsearch": status}


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------


@app.get("/api/products")
async def list_products(
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1),
    sort: str = "createdAt",
    order: SortOrder = "desc",
    engine: SearchEngineClient = Depends(get_engine),
) -> dict:
    return await products.list_products(engine, page, size, sort, order)


@app.get("/api/products/stats")
async def product_stats(engine: SearchEngineClient = Depends(get_engine)) -> dict:
    return await products.index_summary(engine)


@app.get("/api/products/{product_id}")
async def get_product(product_id: str, engine: SearchEngineClient = Depends(get_engine)) -> dict:
    return await products.get_product(engine, product_id)


@app.post("/api/products", status_code=201)
async def create_product(product: Product, engine: SearchEngineClient = Depends(get_engine)) -> dict:
    return await products.create_product(engine, product.model_dump(exclude_none=True))


@app.put("/api/products/{product_id}")
async def update_product(
    product_id: str, product: Product, engine: SearchEngineClient = Depends(get_engine)
) -> dict:
    return await products.update_product(engine, product_id, product.model_dump(exclude_none=True))


@app.delete("/api/products/{product_id}")
async def delete_product(product_id: str, engine: SearchEngineClient = Depends(get_engine)) -> dict:
    return await products.delete_product(engine, product_id)


@app.post("/api/products/bulk")
async def bulk_create(payload: BulkProductsRequest, engine: SearchEngineClient = Depends(get_engine)) -> dict:
    return await products.bulk_create(engine, [item.model_dump(exclude_none=True) for item in payload.products])


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@app.post("/api/search", response_model=SearchResponse)
async def search_products(request: SearchRequest, engine: SearchEngineClient = Depends(get_engine)) -> Dict[str, Any]:
    return await search.search_products(engine, request)


@app.get("/api/search/suggest")
async def suggest(
    q: str | None = None, field: str = "name", engine: SearchEngineClient = Depends(get_engine)
) -> dict:
    if not q:
        raise InputError('Query parameter "q" is required')
    return await search.suggest(engine, q, field)


@app.get("/api/search/facets")
async def facets(q: str | None = None, engine: SearchEngineClient = Depends(get_engine)) -> dict:
    return await search.facets(engine, q)


@app.get("/api/search/related/{product_id}")
async def related(
    product_id: str, size: int = Query(5, ge=1), engine: SearchEngineClient = Depends(get_engine)
) -> dict:
    return await search.related_products(engine, product_id, size)


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


@app.get("/api/analytics/overview")
async def analytics_overview(
    engine: SearchEngineClient = Depends(get_engine), cache: CacheBackend | None = Depends(get_cache)
) -> dict:
    return await analytics.overview(engine, cache)


@app.get("/api/analytics/categories")
async def analytics_categories(
    size: int = Query(20, ge=1),
    engine: SearchEngineClient = Depends(get_engine),
    cache: CacheBackend | None = Depends(get_cache),
) -> dict:
    return await analytics.category_distribution(engine, cache, size)


@app.get("/api/analytics/price-distribution")
async def analytics_price_distribution(
    engine: SearchEngineClient = Depends(get_engine), cache: CacheBackend | None = Depends(get_cache)
) -> dict:
    return await analytics.price_distribution(engine, cache)


@app.get("/api/analytics/rating-distribution")
async def analytics_rating_distribution(
    engine: SearchEngineClient = Depends(get_engine), cache: CacheBackend | None = Depends(get_cache)
) -> dict:
    return await analytics.rating_distribution(engine, cache)


@app.get("/api/analytics/trends")
async def analytics_trends(interval: str = "day", engine: SearchEngineClient = Depends(get_engine)) -> dict:
    return await analytics.trends(engine, interval)


@app.get("/api/analytics/search-analytics")
async def analytics_search(days: int = 7, engine: SearchEngineClient = Depends(get_engine)) -> dict:
    return await analytics.search_analytics(engine, days)


# ---------------------------------------------------------------------------
# Aggregations
# ---------------------------------------------------------------------------


@app.post("/api/aggregations/custom")
async def aggregations_custom(
    payload: CustomAggregationRequest, engine: SearchEngineClient = Depends(get_engine)
) -> dict:
    return await analytics.custom_aggregation(engine, payload.query)


@app.get("/api/aggregations/categories")
async def aggregations_categories(
    size: int = Query(10, ge=1), order: SortOrder = "desc", engine: SearchEngineClient = Depends(get_engine)
) -> dict:
    return await analytics.category_breakdown(engine, size, order)


@app.get("/api/aggregations/price-analysis")
async def aggregations_price_analysis(
    ranges: str = "50,100,200,500", engine: SearchEngineClient = Depends(get_engine)
) -> dict:
    return await analytics.price_analysis(engine, ranges)


@app.get("/api/aggregations/rating-analysis")
async def aggregations_rating_analysis(engine: SearchEngineClient = Depends(get_engine)) -> dict:
    return await analytics.rating_analysis(engine)


@app.get("/api/aggregations/tags")
async def aggregations_tags(size: int = Query(20, ge=1), engine: SearchEngineClient = Depends(get_engine)) -> dict:
    return await analytics.tag_analysis(engine, size)


@app.get("/api/aggregations/stock-analysis")
async def aggregations_stock(engine: SearchEngineClient = Depends(get_engine)) -> dict:
    return await analytics.stock_analysis(engine)


@app.post("/api/aggregations/complex")
async def aggregations_complex(
    payload: ComplexAggregationRequest, engine: SearchEngineClient = Depends(get_engine)
) -> dict:
    return await analytics.complex_analysis(engine, payload)


# ---------------------------------------------------------------------------
# Performance
# ---------------------------------------------------------------------------


@app.post("/api/performance/load-test")
async def load_test(payload: LoadTestRequest, engine: SearchEngineClient = Depends(get_engine)) -> dict:
    return await performance.run_load_test(engine, payload)


@app.get("/api/performance/benchmark")
async def benchmark(engine: SearchEngineClient = Depends(get_engine)) -> dict:
    return await performance.run_standard_benchmark(engine)


@app.get("/api/performance/index-stats")
async def index_stats(engine: SearchEngineClient = Depends(get_engine)) -> dict:
    return await performance.index_statistics(engine)


# ---------------------------------------------------------------------------
# Analyzers
# ---------------------------------------------------------------------------


@app.post("/api/analyzers/test")
async def analyzers_test(payload: AnalyzeRequest, engine: SearchEngineClient = Depends(get_engine)) -> dict:
    return await analyzers.analyze_text(engine, payload.text, payload.analyzer, payload.field)


@app.get("/api/analyzers/available")
async def analyzers_available() -> dict:
    return analyzers.available_analyzers()


@app.post("/api/analyzers/compare")
async def analyzers_compare(
    payload: CompareAnalyzersRequest, engine: SearchEngineClient = Depends(get_engine)
) -> dict:
    return await analyzers.compare_analyzers(engine, payload.text, payload.analyzers)

"""Product CRUD on top of the engine client."""
from __future__ import annotations

import asyncio
import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping

from .errors import DocumentNotFound
from .es_client import SearchEngineClient
from .query import compile_listing
from .shaping import shape_hits

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_product(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Assign an id and timestamps; caller-supplied values for these are overwritten."""
    timestamp = _now()
    return {**payload, "id": str(uuid.uuid4()), "createdAt": timestamp, "updatedAt": timestamp}


async def list_products(
    engine: SearchEngineClient, page: int, size: int, sort: str, order: str
) -> Dict[str, Any]:
    response = await asyncio.to_thread(engine.execute, compile_listing(page, size, sort, order))
    return {
        "products": shape_hits(response.hits),
        "total": response.total,
        "page": page,
        "size": size,
        "totalPages": math.ceil(response.total / size),
    }


async def get_product(engine: SearchEngineClient, doc_id: str) -> Dict[str, Any]:
    product = await asyncio.to_thread(engine.get_by_id, doc_id)
    if product is None:
        raise DocumentNotFound(doc_id)
    return product


async def create_product(engine: SearchEngineClient, payload: Mapping[str, Any]) -> Dict[str, Any]:
    product = new_product(payload)
    await asyncio.to_thread(engine.index_one, product)
    logger.info("created product id=%s", product["id"])
    return product


async def update_product(engine: SearchEngineClient, doc_id: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
    await get_product(engine, doc_id)
    updated = {**payload, "id": doc_id, "updatedAt": _now()}
    await asyncio.to_thread(engine.update, doc_id, updated)
    return updated


async def delete_product(engine: SearchEngineClient, doc_id: str) -> Dict[str, Any]:
    deleted = await asyncio.to_thread(engine.delete, doc_id)
    if not deleted:
        raise DocumentNotFound(doc_id)
    logger.info("deleted product id=%s", doc_id)
    return {"message": "Product deleted successfully"}


async def bulk_create(engine: SearchEngineClient, payloads: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    products = [new_product(payload) for payload in payloads]
    result = await asyncio.to_thread(engine.index_bulk, products)
    return {
        "message": "Bulk insert completed",
        "total": len(products),
        "errors": result.errors,
        "error_count": result.error_count,
        "items": result.total,
    }


async def index_summary(engine: SearchEngineClient) -> Dict[str, Any]:
    stats = await asyncio.to_thread(engine.stats)
    return {
        "total_documents": stats.doc_count,
        "index_size": stats.size_bytes,
        "shards": dict(stats.shards),
    }

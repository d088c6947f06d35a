"""Search endpoints: full-text search, suggestions, facets and related products."""
from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Dict

from .errors import DocumentNotFound
from .es_client import SearchEngineClient
from .models import SearchRequest
from .query import SearchType, compile_facets, compile_related, compile_search, compile_suggest
from .shaping import shape_facets, shape_hits

logger = logging.getLogger(__name__)


async def search_products(engine: SearchEngineClient, request: SearchRequest) -> Dict[str, Any]:
    compiled = compile_search(request)
    response = await asyncio.to_thread(engine.execute, compiled)
    search_type = SearchType.parse(request.searchType)
    logger.info(
        "search q=%r type=%s filters=%s hits=%s took=%sms",
        request.query,
        search_type.value,
        request.filters.model_dump(exclude_none=True),
        response.total,
        response.took_ms,
    )
    return {
        "products": shape_hits(response.hits),
        "total": response.total,
        "page": request.page,
        "size": request.size,
        "totalPages": math.ceil(response.total / request.size),
        "searchType": request.searchType,
        "took": response.took_ms,
    }


async def suggest(engine: SearchEngineClient, prefix: str, field_name: str = "name") -> Dict[str, Any]:
    response = await asyncio.to_thread(engine.execute, compile_suggest(prefix, field_name))
    entries = response.suggest.get("product_suggest") or [{}]
    options = entries[0].get("options", []) if entries else []
    return {"suggestions": [{"text": option.get("text"), "score": option.get("_score")} for option in options]}


async def facets(engine: SearchEngineClient, text: str | None) -> Dict[str, Any]:
    response = await asyncio.to_thread(engine.execute, compile_facets(text))
    return {"facets": shape_facets(response.aggregations), "total": response.total}


async def related_products(engine: SearchEngineClient, doc_id: str, size: int = 5) -> Dict[str, Any]:
    source = await asyncio.to_thread(engine.get_by_id, doc_id)
    if source is None:
        raise DocumentNotFound(doc_id)
    response = await asyncio.to_thread(engine.execute, compile_related(doc_id, source, size))
    return {"related": shape_hits(response.hits), "source": source}

"""Index creation and maintenance helpers."""
from __future__ import annotations

import asyncio
import logging

from .errors import EngineError
from .es_client import SearchEngineClient

logger = logging.getLogger(__name__)

PRODUCT_INDEX_BODY = {
    "settings": {
        "number_of_shards": 1,
        "number_of_replicas": 0,
        "analysis": {
            "filter": {
                "autocomplete_filter": {"type": "edge_ngram", "min_gram": 2, "max_gram": 20},
            },
            "analyzer": {
                "custom_analyzer": {
                    "type": "custom",
                    "tokenizer": "standard",
                    "filter": ["lowercase", "stop", "snowball"],
                },
                "keyword_analyzer": {
                    "type": "custom",
                    "tokenizer": "keyword",
                    "filter": ["lowercase"],
                },
                "autocomplete_analyzer": {
                    "type": "custom",
                    "tokenizer": "standard",
                    "filter": ["lowercase", "autocomplete_filter"],
                },
            },
        },
    },
    "mappings": {
        "properties": {
            "id": {"type": "keyword"},
            "name": {
                "type": "text",
                "analyzer": "custom_analyzer",
                "fields": {
                    "keyword": {"type": "keyword"},
                    "suggest": {"type": "completion"},
                },
            },
            "description": {"type": "text", "analyzer": "custom_analyzer"},
            "category": {"type": "keyword", "fields": {"text": {"type": "text"}}},
            "price": {"type": "double"},
            "rating": {"type": "double"},
            "tags": {"type": "keyword"},
            "inStock": {"type": "boolean"},
            "createdAt": {"type": "date"},
            "updatedAt": {"type": "date"},
            "metadata": {
                "type": "object",
                "properties": {
                    "brand": {"type": "keyword"},
                    "color": {"type": "keyword"},
                    "size": {"type": "keyword"},
                    "weight": {"type": "double"},
                },
            },
        }
    },
}


async def ensure_index(engine: SearchEngineClient) -> bool:
    """Create the products index with custom analyzers if it is missing.

    Returns ``True`` when the index was created by this call.
    """
    exists = await asyncio.to_thread(engine.index_exists)
    if exists:
        logger.info("Index %s already exists", engine.index)
        return False
    logger.info("Creating index %s", engine.index)
    try:
        await asyncio.to_thread(engine.create_index, PRODUCT_INDEX_BODY)
    except EngineError as exc:
        if "resource_already_exists_exception" in str(exc):
            logger.info("Index %s already exists", engine.index)
            return False
        raise
    return True


async def reset_index(engine: SearchEngineClient) -> None:
    await asyncio.to_thread(engine.drop_index)
    await ensure_index(engine)

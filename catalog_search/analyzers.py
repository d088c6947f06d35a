"""Analyzer inspection endpoints."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

from .clauses import Match
from .errors import EngineError, InputError
from .es_client import SearchEngineClient
from .query import CompiledQuery

logger = logging.getLogger(__name__)

AVAILABLE_ANALYZERS: Dict[str, Dict[str, Any]] = {
    "custom_analyzer": {
        "description": "Custom analyzer with lowercase, stop words and stemming",
        "filters": ["lowercase", "stop", "snowball"],
        "tokenizer": "standard",
    },
    "keyword_analyzer": {
        "description": "Keyword analyzer for exact matches",
        "filters": ["lowercase"],
        "tokenizer": "keyword",
    },
    "autocomplete_analyzer": {
        "description": "Autocomplete analyzer with edge n-grams",
        "filters": ["lowercase", "autocomplete_filter"],
        "tokenizer": "standard",
    },
    "standard": {
        "description": "Standard Elasticsearch analyzer",
        "filters": ["lowercase"],
        "tokenizer": "standard",
    },
}


def _require_text(text: str | None) -> str:
    if not text or not text.strip():
        raise InputError("Text parameter is required", example={"text": "Wireless Bluetooth Headphones"})
    return text


def _token_view(token: Dict[str, Any], *, offsets: bool) -> Dict[str, Any]:
    keys = ("token", "start_offset", "end_offset", "type", "position") if offsets else ("token", "type", "position")
    return {key: token.get(key) for key in keys}


async def analyze_text(
    engine: SearchEngineClient, text: str | None, analyzer: str = "custom_analyzer", field_name: str = "name"
) -> Dict[str, Any]:
    text = _require_text(text)
    tokens = await asyncio.to_thread(engine.analyze, text, analyzer)
    response = await asyncio.to_thread(engine.execute, CompiledQuery(query=Match(field_name, text), size=5))
    return {
        "input": {"text": text, "analyzer": analyzer, "field": field_name},
        "analysis": {"tokens": [_token_view(token, offsets=True) for token in tokens]},
        "search_results": {
            "total": response.total,
            "products": [{"name": hit.source.get("name"), "score": hit.score} for hit in response.hits],
        },
    }


async def compare_analyzers(engine: SearchEngineClient, text: str | None, analyzers: List[str]) -> Dict[str, Any]:
    """Run ``text`` through each analyzer; a failing analyzer is reported inline."""
    text = _require_text(text)
    results: Dict[str, Any] = {}
    for analyzer in analyzers:
        try:
            tokens = await asyncio.to_thread(engine.analyze, text, analyzer)
        except EngineError as exc:
            logger.warning("analyzer %s failed: %s", analyzer, exc)
            results[analyzer] = {"error": str(exc)}
            continue
        results[analyzer] = {"tokens": [_token_view(token, offsets=False) for token in tokens]}
    return {"input": {"text": text, "analyzers": analyzers}, "results": results}


def available_analyzers() -> Dict[str, Any]:
    return {
        "analyzers": AVAILABLE_ANALYZERS,
        "usage": {
            "endpoint": "POST /api/analyzers/test",
            "body": {"text": "Your text to analyze", "analyzer": "analyzer_name", "field": "field_name"},
        },
    }

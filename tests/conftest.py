"""Shared fixtures: an in-process stand-in for the Elasticsearch client."""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from catalog_search.cache import InMemoryCache
from catalog_search.errors import EngineError
from catalog_search.es_client import BulkResult, EngineResponse, IndexStats
from catalog_search.main import app, get_cache, get_engine

Responder = Callable[[Dict[str, Any]], Dict[str, Any]]


def raw_response(hits: Optional[List[Dict[str, Any]]] = None, aggregations: Optional[dict] = None, took: int = 3):
    hits = hits or []
    return {
        "took": took,
        "hits": {
            "total": {"value": len(hits), "relation": "eq"},
            "hits": [{"_id": hit.get("id"), "_score": 1.0, "_source": hit} for hit in hits],
        },
        "aggregations": aggregations or {},
    }


class FakeEngine:
    """Implements the client contract against a dict of documents.

    ``responder`` receives each search body and returns a raw engine
    response; every body is recorded in ``bodies``.
    """

    def __init__(self, responder: Responder | None = None) -> None:
        self.responder = responder or (lambda body: raw_response())
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.bodies: List[Dict[str, Any]] = []
        self.analyzer_errors: Dict[str, str] = {}
        self.healthy = True
        self.index = "products"
        self.index_body = None
        self.refreshed = 0

    def execute(self, query):
        body = query.to_body()
        self.bodies.append(body)
        return EngineResponse.from_raw(self.responder(body))

    def get_by_id(self, doc_id):
        document = self.documents.get(doc_id)
        return dict(document) if document is not None else None

    def index_one(self, document):
        self.documents[document["id"]] = dict(document)
        return {"result": "created"}

    def index_bulk(self, documents):
        items = []
        for document in documents:
            self.documents[document["id"]] = dict(document)
            items.append({"id": document["id"], "ok": True, "error": None})
        return BulkResult(total=len(items), error_count=0, items=items)

    def update(self, doc_id, document):
        self.documents[doc_id].update(document)
        return {"result": "updated"}

    def delete(self, doc_id):
        return self.documents.pop(doc_id, None) is not None

    def stats(self):
        return IndexStats(
            index="products",
            doc_count=len(self.documents),
            deleted_count=0,
            size_bytes=3 * 1024 * 1024,
            primary_doc_count=len(self.documents),
            primary_size_bytes=3 * 1024 * 1024,
            shards={"total": 1, "successful": 1, "failed": 0},
            search={"query_total": 0, "query_time_ms": 0, "fetch_total": 0, "fetch_time_ms": 0},
            indexing={"index_total": 0, "index_time_ms": 0, "index_current": 0},
        )

    def index_exists(self):
        return self.index_body is not None

    def create_index(self, body):
        self.index_body = body

    def drop_index(self):
        self.index_body = None
        self.documents.clear()

    def refresh(self):
        self.refreshed += 1

    def health(self):
        if not self.healthy:
            raise EngineError("Connection refused")
        return {"status": "green", "cluster_name": "test", "number_of_nodes": 1, "active_shards": 1}

    def analyze(self, text, analyzer):
        if analyzer in self.analyzer_errors:
            raise EngineError(self.analyzer_errors[analyzer])
        return [
            {"token": word.lower(), "start_offset": 0, "end_offset": len(word), "type": "<ALPHANUM>", "position": i}
            for i, word in enumerate(text.split())
        ]


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def client(engine):
    cache = InMemoryCache()
    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_cache] = lambda: cache
    yield TestClient(app)
    app.dependency_overrides.clear()

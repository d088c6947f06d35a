"""Elasticsearch client wrapper.

The rest of the code works against :class:`SearchEngineClient`, a thin layer
over the official synchronous client. Blocking calls are wrapped via
``asyncio.to_thread`` by the caller where necessary. One instance is built at
startup, shared by every request and closed on shutdown; the underlying
client pools connections and is safe to use from several threads.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Protocol, Sequence

from elasticsearch import ApiError, Elasticsearch, NotFoundError, TransportError, helpers

from .config import Settings
from .errors import EngineError

logger = logging.getLogger(__name__)


class QueryBody(Protocol):
    def to_body(self) -> Dict[str, Any]: ...


@dataclass(frozen=True)
class Hit:
    id: Optional[str]
    source: Dict[str, Any]
    score: Optional[float]


@dataclass(frozen=True)
class EngineResponse:
    total: int
    hits: List[Hit]
    aggregations: Dict[str, Any] = field(default_factory=dict)
    took_ms: int = 0
    suggest: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "EngineResponse":
        hits_block = raw.get("hits") or {}
        total = hits_block.get("total", 0)
        if isinstance(total, Mapping):
            total = total.get("value", 0)
        hits = [
            Hit(id=hit.get("_id"), source=dict(hit.get("_source") or {}), score=hit.get("_score"))
            for hit in hits_block.get("hits", [])
        ]
        return cls(
            total=int(total or 0),
            hits=hits,
            aggregations=dict(raw.get("aggregations") or {}),
            took_ms=int(raw.get("took", 0) or 0),
            suggest=dict(raw.get("suggest") or {}),
        )


@dataclass(frozen=True)
class BulkResult:
    total: int
    error_count: int
    items: List[Dict[str, Any]]

    @property
    def errors(self) -> bool:
        return self.error_count > 0


@dataclass(frozen=True)
class IndexStats:
    index: str
    doc_count: int
    deleted_count: int
    size_bytes: int
    primary_doc_count: int
    primary_size_bytes: int
    shards: Dict[str, int]
    search: Dict[str, int]
    indexing: Dict[str, int]

    @classmethod
    def from_raw(cls, index: str, raw: Mapping[str, Any]) -> "IndexStats":
        entry = (raw.get("indices") or {}).get(index) or {}
        total = entry.get("total") or {}
        primaries = entry.get("primaries") or {}
        shards = raw.get("_shards") or {}
        search = total.get("search") or {}
        indexing = total.get("indexing") or {}
        return cls(
            index=index,
            doc_count=(total.get("docs") or {}).get("count", 0),
            deleted_count=(total.get("docs") or {}).get("deleted", 0),
            size_bytes=(total.get("store") or {}).get("size_in_bytes", 0),
            primary_doc_count=(primaries.get("docs") or {}).get("count", 0),
            primary_size_bytes=(primaries.get("store") or {}).get("size_in_bytes", 0),
            shards={key: shards.get(key, 0) for key in ("total", "successful", "failed")},
            search={
                "query_total": search.get("query_total", 0),
                "query_time_ms": search.get("query_time_in_millis", 0),
                "fetch_total": search.get("fetch_total", 0),
                "fetch_time_ms": search.get("fetch_time_in_millis", 0),
            },
            indexing={
                "index_total": indexing.get("index_total", 0),
                "index_time_ms": indexing.get("index_time_in_millis", 0),
                "index_current": indexing.get("index_current", 0),
            },
        )


def _describe(exc: Exception) -> str:
    return getattr(exc, "message", None) or str(exc)


@contextmanager
def _engine_errors(action: str) -> Iterator[None]:
    try:
        yield
    except (ApiError, TransportError) as exc:
        logger.error("Elasticsearch %s failed: %s", action, exc)
        raise EngineError(_describe(exc)) from exc


class SearchEngineClient:
    """Document store operations against a single products index."""

    def __init__(self, es: Elasticsearch, index: str) -> None:
        self.es = es
        self.index = index

    @classmethod
    def from_settings(cls, settings: Settings) -> "SearchEngineClient":
        logger.info("Connecting to Elasticsearch at %s", settings.es_host)
        es = Elasticsearch(settings.es_host, request_timeout=settings.es_request_timeout)
        return cls(es, settings.es_index)

    def close(self) -> None:
        self.es.close()

    def execute(self, query: QueryBody) -> EngineResponse:
        body = query.to_body()
        with _engine_errors("search"):
            raw = self.es.search(index=self.index, body=body)
        return EngineResponse.from_raw(raw)

    def get_by_id(self, doc_id: str) -> Optional[Dict[str, Any]]:
        with _engine_errors("get"):
            try:
                raw = self.es.get(index=self.index, id=doc_id)
            except NotFoundError:
                return None
        return dict(raw.get("_source") or {})

    def index_one(self, document: Mapping[str, Any]) -> Dict[str, Any]:
        with _engine_errors("index"):
            raw = self.es.index(index=self.index, id=document.get("id"), document=dict(document))
        return dict(raw)

    def index_bulk(self, documents: Sequence[Mapping[str, Any]]) -> BulkResult:
        actions = (
            {"_index": self.index, "_id": doc.get("id"), "_source": dict(doc)}
            for doc in documents
        )
        items: List[Dict[str, Any]] = []
        with _engine_errors("bulk"):
            for ok, item in helpers.streaming_bulk(
                self.es, actions, raise_on_error=False, raise_on_exception=False
            ):
                result = item.get("index", item)
                items.append({"id": result.get("_id"), "ok": ok, "error": None if ok else result.get("error")})
        error_count = sum(1 for item in items if not item["ok"])
        if error_count:
            logger.warning("Bulk index completed with %s errors", error_count)
        return BulkResult(total=len(items), error_count=error_count, items=items)

    def update(self, doc_id: str, document: Mapping[str, Any]) -> Dict[str, Any]:
        with _engine_errors("update"):
            raw = self.es.update(index=self.index, id=doc_id, doc=dict(document))
        return dict(raw)

    def delete(self, doc_id: str) -> bool:
        with _engine_errors("delete"):
            try:
                self.es.delete(index=self.index, id=doc_id)
            except NotFoundError:
                return False
        return True

    def stats(self) -> IndexStats:
        with _engine_errors("stats"):
            raw = self.es.indices.stats(index=self.index)
        return IndexStats.from_raw(self.index, raw)

    def health(self) -> Dict[str, Any]:
        with _engine_errors("health"):
            raw = self.es.cluster.health()
        return {
            "status": raw.get("status"),
            "cluster_name": raw.get("cluster_name"),
            "number_of_nodes": raw.get("number_of_nodes"),
            "active_shards": raw.get("active_shards"),
        }

    def analyze(self, text: str, analyzer: str) -> List[Dict[str, Any]]:
        with _engine_errors("analyze"):
            raw = self.es.indices.analyze(index=self.index, analyzer=analyzer, text=text)
        return list(raw.get("tokens", []))

    def index_exists(self) -> bool:
        with _engine_errors("exists"):
            return bool(self.es.indices.exists(index=self.index))

    def create_index(self, body: Mapping[str, Any]) -> None:
        with _engine_errors("create index"):
            self.es.indices.create(index=self.index, settings=body.get("settings"), mappings=body.get("mappings"))

    def drop_index(self) -> None:
        with _engine_errors("delete index"):
            try:
                self.es.indices.delete(index=self.index)
            except NotFoundError:
                logger.info("Index %s does not exist; nothing to drop", self.index)

    def refresh(self) -> None:
        with _engine_errors("refresh"):
            self.es.indices.refresh(index=self.index)

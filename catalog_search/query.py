"""Compile search parameters into Elasticsearch request bodies."""
from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .aggregations import Aggregation, facet_aggregations
from .clauses import (
    Bool,
    Clause,
    Fuzzy,
    MatchAll,
    MatchPhrase,
    MultiMatch,
    Range,
    SortField,
    Term,
    Terms,
    Wildcard,
)

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ("name^3", "description^2", "category", "tags")
PHRASE_SLOP = 2
FUZZY_EDIT_DISTANCE = 2
_WILDCARD_SPECIAL_RE = re.compile(r"([\\*?])")


class SearchType(str, Enum):
    MULTI_MATCH = "multi_match"
    MATCH_PHRASE = "match_phrase"
    WILDCARD = "wildcard"
    FUZZY = "fuzzy"
    MATCH_ALL = "match_all"

    @classmethod
    def parse(cls, value: "SearchType | str | None") -> "SearchType":
        """Resolve ``value`` to a search type; anything unrecognised becomes ``MATCH_ALL``."""
        if isinstance(value, cls):
            return value
        key = re.sub(r"[^a-z]", "", str(value or "").lower())
        return _SEARCH_TYPE_ALIASES.get(key, cls.MATCH_ALL)


_SEARCH_TYPE_ALIASES = {
    "multimatch": SearchType.MULTI_MATCH,
    "matchphrase": SearchType.MATCH_PHRASE,
    "phrasematch": SearchType.MATCH_PHRASE,
    "phrase": SearchType.MATCH_PHRASE,
    "wildcard": SearchType.WILDCARD,
    "fuzzy": SearchType.FUZZY,
    "matchall": SearchType.MATCH_ALL,
}


@dataclass(frozen=True)
class CompiledQuery:
    """Immutable search request: an optional query tree plus aggregations, sort and paging.

    ``size=0`` marks an aggregation-only request and therefore requires at
    least one aggregation.
    """

    query: Optional[Clause] = None
    aggregations: Mapping[str, Aggregation] = field(default_factory=dict)
    sort: Tuple[SortField, ...] = ()
    from_: Optional[int] = None
    size: Optional[int] = None

    def __post_init__(self) -> None:
        if self.size is not None and self.size < 0:
            raise ValueError("size must not be negative")
        if self.from_ is not None and self.from_ < 0:
            raise ValueError("from must not be negative")
        if self.size == 0 and not self.aggregations:
            raise ValueError("an aggregation-only query (size=0) needs at least one aggregation")
        object.__setattr__(self, "aggregations", MappingProxyType(dict(self.aggregations)))

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        if self.query is not None:
            body["query"] = self.query.to_dict()
        if self.aggregations:
            body["aggs"] = {name: agg.to_dict() for name, agg in self.aggregations.items()}
        if self.sort:
            body["sort"] = [item.to_dict() for item in self.sort]
        if self.from_ is not None:
            body["from"] = self.from_
        if self.size is not None:
            body["size"] = self.size
        return body


@dataclass(frozen=True)
class RawQuery:
    """A request body supplied verbatim by the caller."""

    body: Mapping[str, Any]

    def to_body(self) -> Dict[str, Any]:
        return copy.deepcopy(dict(self.body))


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


def build_filter_clauses(filters: Any) -> List[Clause]:
    """Turn a filter set into non-scoring clauses.

    Order is fixed: category, price range, rating floor, stock flag, tags.
    Absent fields contribute nothing.
    """
    if filters is None:
        return []
    clauses: List[Clause] = []
    if filters.category:
        clauses.append(Term("category", filters.category))
    if filters.priceMin is not None or filters.priceMax is not None:
        clauses.append(Range("price", gte=filters.priceMin, lte=filters.priceMax))
    if filters.ratingMin is not None:
        clauses.append(Range("rating", gte=filters.ratingMin))
    if filters.inStock is not None:
        clauses.append(Term("inStock", filters.inStock))
    tags = tuple(dict.fromkeys(filters.tags or ()))
    if tags:
        clauses.append(Terms("tags", tags))
    return clauses


# ---------------------------------------------------------------------------
# Primary match
# ---------------------------------------------------------------------------


def _multi_match(text: str) -> Clause:
    return MultiMatch(text, SEARCH_FIELDS, type="best_fields", fuzziness="AUTO")


def _match_phrase(text: str) -> Clause:
    return MatchPhrase("name", text, slop=PHRASE_SLOP)


def _wildcard(text: str) -> Clause:
    escaped = _WILDCARD_SPECIAL_RE.sub(r"\\\1", text)
    return Wildcard("name", f"*{escaped}*", case_insensitive=True)


def _fuzzy(text: str) -> Clause:
    return Fuzzy("name", text, fuzziness=FUZZY_EDIT_DISTANCE)


def _match_all(_text: str) -> Clause:
    return MatchAll()


_PRIMARY_BUILDERS: Dict[SearchType, Callable[[str], Clause]] = {
    SearchType.MULTI_MATCH: _multi_match,
    SearchType.MATCH_PHRASE: _match_phrase,
    SearchType.WILDCARD: _wildcard,
    SearchType.FUZZY: _fuzzy,
    SearchType.MATCH_ALL: _match_all,
}


def build_primary_clause(search_type: SearchType | str | None, text: str | None) -> Clause:
    resolved = SearchType.parse(search_type)
    text = (text or "").strip()
    if not text:
        return MatchAll()
    return _PRIMARY_BUILDERS[resolved](text)


def apply_filters(primary: Clause, filters: Sequence[Clause]) -> Clause:
    if not filters:
        return primary
    return Bool(must=(primary,), filter=tuple(filters))


def compile_search(request: Any, filter_clauses: Sequence[Clause] | None = None) -> CompiledQuery:
    """Compile a validated search request into a paged, sorted query."""
    if filter_clauses is None:
        filter_clauses = build_filter_clauses(request.filters)
    primary = build_primary_clause(request.searchType, request.query)
    compiled = CompiledQuery(
        query=apply_filters(primary, filter_clauses),
        sort=(SortField(request.sort, request.order),),
        from_=(request.page - 1) * request.size,
        size=request.size,
    )
    logger.debug("compiled search body=%s", compiled.to_body())
    return compiled


def compile_listing(page: int, size: int, sort: str = "createdAt", order: str = "desc") -> CompiledQuery:
    return CompiledQuery(
        query=MatchAll(),
        sort=(SortField(sort, order),),
        from_=(page - 1) * size,
        size=size,
    )


def compile_facets(text: str | None) -> CompiledQuery:
    text = (text or "").strip()
    query: Clause = MultiMatch(text, SEARCH_FIELDS) if text else MatchAll()
    return CompiledQuery(query=query, aggregations=facet_aggregations(), size=0)


def compile_related(doc_id: str, source: Mapping[str, Any], size: int = 5) -> CompiledQuery:
    """Products sharing the source's category or any of its tags, excluding the source."""
    should: List[Clause] = []
    if source.get("category"):
        should.append(Term("category", source["category"]))
    tags = tuple(source.get("tags") or ())
    if tags:
        should.append(Terms("tags", tags))
    exclude_self = Term("id", doc_id)
    if not should:
        return CompiledQuery(query=Bool(must=(MatchAll(),), must_not=(exclude_self,)), size=size)
    return CompiledQuery(
        query=Bool(must=(Bool(should=tuple(should), minimum_should_match=1),), must_not=(exclude_self,)),
        size=size,
    )


def compile_suggest(prefix: str, field_name: str = "name", size: int = 10) -> RawQuery:
    return RawQuery(
        {
            "suggest": {
                "product_suggest": {
                    "prefix": prefix,
                    "completion": {"field": f"{field_name}.suggest", "size": size},
                }
            },
            "size": 0,
        }
    )

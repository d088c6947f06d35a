"""Query clause tree rendered into the Elasticsearch query DSL.

Every node is a frozen dataclass that validates itself on construction and
renders with :meth:`to_dict`. Compound nodes (``Bool``) hold tuples of other
clauses, so a whole tree is immutable once built.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple, Union

Scalar = Union[str, int, float, bool]

SORT_ORDERS = {"asc", "desc"}


@dataclass(frozen=True)
class MatchAll:
    def to_dict(self) -> Dict[str, Any]:
        return {"match_all": {}}


@dataclass(frozen=True)
class Match:
    field: str
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"match": {self.field: self.text}}


@dataclass(frozen=True)
class MultiMatch:
    text: str
    fields: Tuple[str, ...]
    type: str | None = None
    fuzziness: str | None = None

    def __post_init__(self) -> None:
        if not self.fields:
            raise ValueError("multi_match needs at least one field")

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"query": self.text, "fields": list(self.fields)}
        if self.type:
            body["type"] = self.type
        if self.fuzziness:
            body["fuzziness"] = self.fuzziness
        return {"multi_match": body}


@dataclass(frozen=True)
class MatchPhrase:
    field: str
    text: str
    slop: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"match_phrase": {self.field: {"query": self.text, "slop": self.slop}}}


@dataclass(frozen=True)
class Wildcard:
    field: str
    pattern: str
    case_insensitive: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {"wildcard": {self.field: {"value": self.pattern, "case_insensitive": self.case_insensitive}}}


@dataclass(frozen=True)
class Fuzzy:
    field: str
    value: str
    fuzziness: int | str = 2

    def to_dict(self) -> Dict[str, Any]:
        return {"fuzzy": {self.field: {"value": self.value, "fuzziness": self.fuzziness}}}


@dataclass(frozen=True)
class Term:
    field: str
    value: Scalar

    def to_dict(self) -> Dict[str, Any]:
        return {"term": {self.field: self.value}}


@dataclass(frozen=True)
class Terms:
    field: str
    values: Tuple[Scalar, ...]

    def __post_init__(self) -> None:
        if not self.values:
            raise ValueError(f"terms clause on {self.field!r} needs at least one value")

    def to_dict(self) -> Dict[str, Any]:
        return {"terms": {self.field: list(self.values)}}


@dataclass(frozen=True)
class Range:
    """Range clause. Bounds may be numbers or date math strings (``now-7d/d``)."""

    field: str
    gte: float | str | None = None
    lte: float | str | None = None
    gt: float | str | None = None
    lt: float | str | None = None

    def __post_init__(self) -> None:
        if all(bound is None for bound in (self.gte, self.lte, self.gt, self.lt)):
            raise ValueError(f"range clause on {self.field!r} needs at least one bound")

    def to_dict(self) -> Dict[str, Any]:
        bounds = {
            name: value
            for name, value in (("gte", self.gte), ("gt", self.gt), ("lte", self.lte), ("lt", self.lt))
            if value is not None
        }
        return {"range": {self.field: bounds}}


@dataclass(frozen=True)
class Bool:
    must: Tuple["Clause", ...] = ()
    filter: Tuple["Clause", ...] = ()
    should: Tuple["Clause", ...] = ()
    must_not: Tuple["Clause", ...] = ()
    minimum_should_match: int | None = None

    def __post_init__(self) -> None:
        if not (self.must or self.filter or self.should or self.must_not):
            raise ValueError("bool clause needs at least one branch")

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        for name in ("must", "filter", "should", "must_not"):
            branch = getattr(self, name)
            if branch:
                body[name] = [clause.to_dict() for clause in branch]
        if self.minimum_should_match is not None:
            body["minimum_should_match"] = self.minimum_should_match
        return {"bool": body}


Clause = Union[MatchAll, Match, MultiMatch, MatchPhrase, Wildcard, Fuzzy, Term, Terms, Range, Bool]


@dataclass(frozen=True)
class SortField:
    field: str
    order: str = "desc"

    def __post_init__(self) -> None:
        if self.order not in SORT_ORDERS:
            raise ValueError(f"sort order must be one of {sorted(SORT_ORDERS)}, got {self.order!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {self.field: {"order": self.order}}

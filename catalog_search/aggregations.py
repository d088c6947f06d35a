"""Aggregation trees for facets and analytics.

Bucket aggregations (terms, range, histograms, filter) may nest further
aggregations under ``aggs``; metric aggregations (avg/min/max/stats/top hits)
are leaves. The builder functions at the bottom assemble the trees used by
the facet, analytics and aggregation endpoints.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple, Union

from .clauses import Clause, SortField, Term
from .errors import InputError

METRIC_KINDS = {"avg", "min", "max", "sum", "value_count"}
CALENDAR_INTERVALS = {"minute", "hour", "day", "week", "month", "quarter", "year"}

DEFAULT_PRICE_BREAKPOINTS: Tuple[float, ...] = (50, 100, 200, 500)
DISTRIBUTION_PRICE_BREAKPOINTS: Tuple[float, ...] = (25, 50, 100, 200, 500)
# (from, to, descriptive label, numeric label)
RATING_BANDS: Tuple[Tuple[float | None, float | None, str, str], ...] = (
    (None, 1, "Poor (0-1)", "0 - 1"),
    (1, 2, "Fair (1-2)", "1 - 2"),
    (2, 3, "Good (2-3)", "2 - 3"),
    (3, 4, "Very Good (3-4)", "3 - 4"),
    (4, 5, "Excellent (4-5)", "4 - 5"),
)
PRICE_TIERS: Tuple[Tuple[float | None, float | None, str], ...] = (
    (None, 100, "Budget"),
    (100, 300, "Mid-range"),
    (300, None, "Premium"),
)


def _freeze_subaggs(node: Any) -> None:
    object.__setattr__(node, "aggs", MappingProxyType(dict(node.aggs)))


def _render_subaggs(body: Dict[str, Any], aggs: Mapping[str, "Aggregation"]) -> Dict[str, Any]:
    if aggs:
        body["aggs"] = {name: agg.to_dict() for name, agg in aggs.items()}
    return body


@dataclass(frozen=True)
class MetricAgg:
    kind: str
    field: str

    def __post_init__(self) -> None:
        if self.kind not in METRIC_KINDS:
            raise ValueError(f"unknown metric aggregation {self.kind!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {self.kind: {"field": self.field}}


@dataclass(frozen=True)
class StatsAgg:
    field: str

    def to_dict(self) -> Dict[str, Any]:
        return {"stats": {"field": self.field}}


@dataclass(frozen=True)
class TopHitsAgg:
    size: int = 3
    sort: Tuple[SortField, ...] = ()
    source: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"size": self.size}
        if self.sort:
            body["sort"] = [item.to_dict() for item in self.sort]
        if self.source:
            body["_source"] = list(self.source)
        return {"top_hits": body}


@dataclass(frozen=True)
class TermsAgg:
    field: str
    size: int = 10
    order: Tuple[str, str] | None = None
    aggs: Mapping[str, "Aggregation"] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _freeze_subaggs(self)

    def to_dict(self) -> Dict[str, Any]:
        terms: Dict[str, Any] = {"field": self.field, "size": self.size}
        if self.order is not None:
            key, direction = self.order
            terms["order"] = {key: direction}
        return _render_subaggs({"terms": terms}, self.aggs)


@dataclass(frozen=True)
class RangeBucket:
    key: str | None = None
    from_: float | None = None
    to: float | None = None

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        if self.from_ is not None:
            body["from"] = self.from_
        if self.to is not None:
            body["to"] = self.to
        if self.key is not None:
            body["key"] = self.key
        return body


@dataclass(frozen=True)
class RangeAgg:
    """Range buckets over ``field``.

    Boundaries, read bucket by bucket as ``from`` then ``to``, must never
    decrease, and explicit keys must be unique.
    """

    field: str
    ranges: Tuple[RangeBucket, ...]
    aggs: Mapping[str, "Aggregation"] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.ranges:
            raise InputError(f"range aggregation on {self.field!r} needs at least one bucket")
        boundaries = [
            bound for bucket in self.ranges for bound in (bucket.from_, bucket.to) if bound is not None
        ]
        if any(later < earlier for earlier, later in zip(boundaries, boundaries[1:])):
            raise InputError(f"range boundaries on {self.field!r} must be non-decreasing")
        keys = [bucket.key for bucket in self.ranges if bucket.key is not None]
        if len(keys) != len(set(keys)):
            raise InputError(f"range bucket keys on {self.field!r} must be unique")
        _freeze_subaggs(self)

    def to_dict(self) -> Dict[str, Any]:
        body = {"range": {"field": self.field, "ranges": [bucket.to_dict() for bucket in self.ranges]}}
        return _render_subaggs(body, self.aggs)


@dataclass(frozen=True)
class HistogramAgg:
    field: str
    interval: float
    min_doc_count: int = 1
    aggs: Mapping[str, "Aggregation"] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _freeze_subaggs(self)

    def to_dict(self) -> Dict[str, Any]:
        body = {"histogram": {"field": self.field, "interval": self.interval, "min_doc_count": self.min_doc_count}}
        return _render_subaggs(body, self.aggs)


@dataclass(frozen=True)
class DateHistogramAgg:
    field: str
    interval: str = "day"
    min_doc_count: int = 0
    aggs: Mapping[str, "Aggregation"] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.interval not in CALENDAR_INTERVALS:
            raise InputError(
                f"interval must be one of {', '.join(sorted(CALENDAR_INTERVALS))}; got {self.interval!r}"
            )
        _freeze_subaggs(self)

    def to_dict(self) -> Dict[str, Any]:
        body = {
            "date_histogram": {
                "field": self.field,
                "calendar_interval": self.interval,
                "min_doc_count": self.min_doc_count,
            }
        }
        return _render_subaggs(body, self.aggs)


@dataclass(frozen=True)
class FilterAgg:
    clause: Clause
    aggs: Mapping[str, "Aggregation"] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _freeze_subaggs(self)

    def to_dict(self) -> Dict[str, Any]:
        return _render_subaggs({"filter": self.clause.to_dict()}, self.aggs)


Aggregation = Union[MetricAgg, StatsAgg, TopHitsAgg, TermsAgg, RangeAgg, HistogramAgg, DateHistogramAgg, FilterAgg]


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def avg(field_name: str) -> MetricAgg:
    return MetricAgg("avg", field_name)


def stock_subcount(in_stock: bool = True) -> FilterAgg:
    """Filtered sub-count of documents with the given stock flag."""
    return FilterAgg(Term("inStock", in_stock), aggs={"count": MetricAgg("value_count", "id")})


def _format_amount(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def parse_breakpoints(raw: str) -> List[float]:
    """Parse a comma separated breakpoint list such as ``"50,100,200"``.

    Values are sorted ascending; a repeated value leaves the list not strictly
    increasing and is rejected.
    """
    parts = [part.strip() for part in (raw or "").split(",") if part.strip()]
    if not parts:
        raise InputError("At least one price breakpoint is required")
    try:
        values = [float(part) for part in parts]
    except ValueError as exc:
        raise InputError(f"Price breakpoints must be numbers: {raw!r}") from exc
    if not all(math.isfinite(value) for value in values):
        raise InputError(f"Price breakpoints must be finite: {raw!r}")
    values.sort()
    _require_strictly_increasing(values)
    return values


def _require_strictly_increasing(values: Sequence[float]) -> None:
    if any(later <= earlier for earlier, later in zip(values, values[1:])):
        raise InputError(f"Price breakpoints must be strictly increasing: {list(values)}")


def price_buckets(breakpoints: Sequence[float], *, labelled: bool = True) -> Tuple[RangeBucket, ...]:
    """N breakpoints give N+1 buckets: under the first, between neighbours, over the last."""
    if not breakpoints:
        raise InputError("At least one price breakpoint is required")
    _require_strictly_increasing(breakpoints)

    def label(text: str) -> str | None:
        return text if labelled else None

    first, last = breakpoints[0], breakpoints[-1]
    buckets = [RangeBucket(key=label(f"Under ${_format_amount(first)}"), to=first)]
    for low, high in zip(breakpoints, breakpoints[1:]):
        buckets.append(
            RangeBucket(key=label(f"${_format_amount(low)} - ${_format_amount(high)}"), from_=low, to=high)
        )
    buckets.append(RangeBucket(key=label(f"Over ${_format_amount(last)}"), from_=last))
    return tuple(buckets)


def price_ranges(breakpoints: Sequence[float] = DEFAULT_PRICE_BREAKPOINTS) -> RangeAgg:
    return RangeAgg(
        "price",
        price_buckets(breakpoints),
        aggs={"avg_rating": avg("rating"), "in_stock_count": stock_subcount()},
    )


def rating_ranges(*, descriptive: bool = True) -> RangeAgg:
    buckets = tuple(
        RangeBucket(key=rich if descriptive else plain, from_=low, to=high)
        for low, high, rich, plain in RATING_BANDS
    )
    return RangeAgg("rating", buckets, aggs={"avg_price": avg("price"), "in_stock_count": stock_subcount()})


def category_counts(size: int = 10, order: str = "desc") -> TermsAgg:
    return TermsAgg(
        "category",
        size=size,
        order=("_count", order),
        aggs={
            "avg_price": avg("price"),
            "avg_rating": avg("rating"),
            "min_price": MetricAgg("min", "price"),
            "max_price": MetricAgg("max", "price"),
            "in_stock_count": stock_subcount(),
        },
    )


def tag_popularity(size: int = 20) -> TermsAgg:
    return TermsAgg(
        "tags",
        size=size,
        order=("_count", "desc"),
        aggs={"avg_price": avg("price"), "avg_rating": avg("rating")},
    )


def stock_split() -> TermsAgg:
    return TermsAgg(
        "inStock",
        size=2,
        aggs={
            "avg_price": avg("price"),
            "avg_rating": avg("rating"),
            "categories": TermsAgg("category", size=5),
        },
    )


def date_trends(interval: str = "day") -> DateHistogramAgg:
    return DateHistogramAgg(
        "createdAt",
        interval=interval,
        min_doc_count=0,
        aggs={
            "avg_price": avg("price"),
            "avg_rating": avg("rating"),
            "categories": TermsAgg("category", size=5),
        },
    )


def price_histogram(interval: float = 50) -> HistogramAgg:
    return HistogramAgg("price", interval=interval, min_doc_count=1)


def top_rated(size: int = 10) -> TermsAgg:
    return TermsAgg(
        "name.keyword",
        size=size,
        order=("avg_rating", "desc"),
        aggs={"avg_rating": avg("rating"), "avg_price": avg("price")},
    )


def complex_category_breakdown(size: int = 10) -> TermsAgg:
    tiers = tuple(RangeBucket(key=key, from_=low, to=high) for low, high, key in PRICE_TIERS)
    return TermsAgg(
        "category",
        size=size,
        aggs={
            "avg_price": avg("price"),
            "avg_rating": avg("rating"),
            "price_ranges": RangeAgg("price", tiers),
            "top_products": TopHitsAgg(
                size=3,
                sort=(SortField("rating", "desc"),),
                source=("name", "price", "rating", "category"),
            ),
        },
    )


def overview_aggregations() -> Dict[str, Aggregation]:
    return {
        "total_products": MetricAgg("value_count", "id"),
        "avg_price": avg("price"),
        "min_price": MetricAgg("min", "price"),
        "max_price": MetricAgg("max", "price"),
        "avg_rating": avg("rating"),
        "in_stock_count": stock_subcount(True),
        "out_of_stock_count": stock_subcount(False),
    }


def facet_aggregations() -> Dict[str, Aggregation]:
    rating_facets = (
        RangeBucket(to=2.0),
        RangeBucket(from_=2.0, to=3.0),
        RangeBucket(from_=3.0, to=4.0),
        RangeBucket(from_=4.0, to=4.5),
        RangeBucket(from_=4.5),
    )
    return {
        "categories": TermsAgg("category", size=20),
        "price_ranges": RangeAgg("price", price_buckets(DEFAULT_PRICE_BREAKPOINTS, labelled=False)),
        "ratings": RangeAgg("rating", rating_facets),
        "tags": TermsAgg("tags", size=20),
        "in_stock": TermsAgg("inStock", size=2),
    }


def unlabelled_price_ranges(breakpoints: Iterable[float]) -> RangeAgg:
    return RangeAgg("price", price_buckets(list(breakpoints), labelled=False))

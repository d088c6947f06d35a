"""Map raw Elasticsearch hits and buckets into API payloads.

Currency values are rounded to 2 decimals, ratings to 1 decimal and
percentages to whole numbers, always half-up. A metric the engine reports as
``null`` (e.g. the average of an empty bucket) stays ``None``.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .es_client import Hit, IndexStats

Bucket = Mapping[str, Any]

_BYTES_PER_MB = 1024 * 1024


def round_half_up(value: Optional[float], places: int) -> Optional[float]:
    if value is None:
        return None
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round_currency(value: Optional[float]) -> Optional[float]:
    return round_half_up(value, 2)


def round_rating(value: Optional[float]) -> Optional[float]:
    return round_half_up(value, 1)


def percentage(part: Optional[float], whole: Optional[float]) -> int:
    if not whole:
        return 0
    ratio = Decimal(str(part or 0)) / Decimal(str(whole)) * 100
    return int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def metric(bucket: Bucket, name: str) -> Optional[float]:
    return (bucket.get(name) or {}).get("value")


def stock_count(bucket: Bucket, name: str = "in_stock_count") -> int:
    value = ((bucket.get(name) or {}).get("count") or {}).get("value")
    return int(value or 0)


def shape_hits(hits: Sequence[Hit]) -> List[Dict[str, Any]]:
    return [{**hit.source, "_score": hit.score} for hit in hits]


def shape_category_bucket(bucket: Bucket) -> Dict[str, Any]:
    in_stock = stock_count(bucket)
    return {
        "category": bucket.get("key"),
        "count": bucket.get("doc_count", 0),
        "avg_price": round_currency(metric(bucket, "avg_price")),
        "avg_rating": round_rating(metric(bucket, "avg_rating")),
        "min_price": round_currency(metric(bucket, "min_price")),
        "max_price": round_currency(metric(bucket, "max_price")),
        "in_stock_count": in_stock,
        "in_stock_percentage": percentage(in_stock, bucket.get("doc_count", 0)),
    }


def shape_price_bucket(bucket: Bucket) -> Dict[str, Any]:
    return {
        "range": bucket.get("key"),
        "count": bucket.get("doc_count", 0),
        "avg_rating": round_rating(metric(bucket, "avg_rating")),
        "in_stock_count": stock_count(bucket),
    }


def shape_rating_bucket(bucket: Bucket) -> Dict[str, Any]:
    return {
        "range": bucket.get("key"),
        "count": bucket.get("doc_count", 0),
        "avg_price": round_currency(metric(bucket, "avg_price")),
        "in_stock_count": stock_count(bucket),
    }


def shape_tag_bucket(bucket: Bucket) -> Dict[str, Any]:
    return {
        "tag": bucket.get("key"),
        "count": bucket.get("doc_count", 0),
        "avg_price": round_currency(metric(bucket, "avg_price")),
        "avg_rating": round_rating(metric(bucket, "avg_rating")),
    }


def _category_counts(bucket: Bucket) -> List[Dict[str, Any]]:
    return [
        {"category": item.get("key"), "count": item.get("doc_count", 0)}
        for item in (bucket.get("categories") or {}).get("buckets", [])
    ]


def _is_in_stock(bucket: Bucket) -> bool:
    # Boolean terms buckets carry key 1/0 and key_as_string "true"/"false".
    key_as_string = bucket.get("key_as_string")
    if key_as_string is not None:
        return key_as_string == "true"
    return bool(bucket.get("key"))


def shape_stock_bucket(bucket: Bucket) -> Dict[str, Any]:
    return {
        "status": "In Stock" if _is_in_stock(bucket) else "Out of Stock",
        "count": bucket.get("doc_count", 0),
        "avg_price": round_currency(metric(bucket, "avg_price")),
        "avg_rating": round_rating(metric(bucket, "avg_rating")),
        "top_categories": _category_counts(bucket),
    }


def shape_trend_bucket(bucket: Bucket) -> Dict[str, Any]:
    return {
        "date": bucket.get("key_as_string"),
        "timestamp": bucket.get("key"),
        "count": bucket.get("doc_count", 0),
        "avg_price": round_currency(metric(bucket, "avg_price")),
        "avg_rating": round_rating(metric(bucket, "avg_rating")),
        "top_categories": _category_counts(bucket),
    }


def shape_top_rated_bucket(bucket: Bucket) -> Dict[str, Any]:
    return {
        "name": bucket.get("key"),
        "count": bucket.get("doc_count", 0),
        "avg_rating": round_rating(metric(bucket, "avg_rating")),
        "avg_price": round_currency(metric(bucket, "avg_price")),
    }


def shape_histogram_bucket(bucket: Bucket) -> Dict[str, Any]:
    return {"price": bucket.get("key"), "count": bucket.get("doc_count", 0)}


def shape_complex_bucket(bucket: Bucket) -> Dict[str, Any]:
    top_hits = ((bucket.get("top_products") or {}).get("hits") or {}).get("hits", [])
    return {
        "category": bucket.get("key"),
        "count": bucket.get("doc_count", 0),
        "avg_price": round_currency(metric(bucket, "avg_price")),
        "avg_rating": round_rating(metric(bucket, "avg_rating")),
        "price_ranges": [
            {"range": item.get("key"), "count": item.get("doc_count", 0)}
            for item in (bucket.get("price_ranges") or {}).get("buckets", [])
        ],
        "top_products": [
            {key: (hit.get("_source") or {}).get(key) for key in ("name", "price", "rating", "category")}
            for hit in top_hits
        ],
    }


def shape_stats(stats: Mapping[str, Any], *, rating: bool = False) -> Dict[str, Any]:
    """Shape a ``stats`` aggregation; averages use rating or currency precision."""
    rounder = round_rating if rating else round_currency
    shaped = {
        "count": stats.get("count", 0),
        "average": rounder(stats.get("avg")),
        "min": rounder(stats.get("min")),
        "max": rounder(stats.get("max")),
    }
    if not rating:
        shaped["sum"] = round_currency(stats.get("sum"))
    return shaped


def shape_overview(aggs: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "total_products": int(metric(aggs, "total_products") or 0),
        "price_stats": {
            "average": round_currency(metric(aggs, "avg_price")),
            "min": round_currency(metric(aggs, "min_price")),
            "max": round_currency(metric(aggs, "max_price")),
        },
        "average_rating": round_rating(metric(aggs, "avg_rating")),
        "stock_status": {
            "in_stock": stock_count(aggs, "in_stock_count"),
            "out_of_stock": stock_count(aggs, "out_of_stock_count"),
        },
    }


def buckets(aggs: Mapping[str, Any], name: str) -> List[Bucket]:
    return list((aggs.get(name) or {}).get("buckets", []))


def shape_facets(aggs: Mapping[str, Any]) -> Dict[str, Any]:
    return {name: buckets(aggs, name) for name in ("categories", "price_ranges", "ratings", "tags", "in_stock")}


def _megabytes(size_bytes: int) -> float:
    return round_currency(size_bytes / _BYTES_PER_MB) or 0.0


def shape_index_stats(stats: IndexStats) -> Dict[str, Any]:
    return {
        "index": {
            "name": stats.index,
            "total_documents": stats.doc_count,
            "deleted_documents": stats.deleted_count,
            "index_size_bytes": stats.size_bytes,
            "index_size_mb": _megabytes(stats.size_bytes),
        },
        "shards": dict(stats.shards),
        "primaries": {
            "documents": stats.primary_doc_count,
            "size_bytes": stats.primary_size_bytes,
            "size_mb": _megabytes(stats.primary_size_bytes),
        },
        "search": dict(stats.search),
        "indexing": dict(stats.indexing),
    }

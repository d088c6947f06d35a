"""Result shaping and rounding."""

import pytest

from catalog_search.es_client import EngineResponse, Hit
from catalog_search.shaping import (
    percentage,
    round_currency,
    round_rating,
    shape_category_bucket,
    shape_hits,
    shape_overview,
    shape_stats,
    shape_stock_bucket,
)


@pytest.mark.parametrize(
    "value, expected",
    [(19.999, 20.0), (2.675, 2.68), (0.125, 0.13), (None, None), (10, 10.0)],
)
def test_round_currency_half_up(value, expected):
    assert round_currency(value) == expected


@pytest.mark.parametrize("value, expected", [(4.449, 4.4), (4.45, 4.5), (3.25, 3.3), (None, None)])
def test_round_rating_half_up(value, expected):
    assert round_rating(value) == expected


def test_percentage_of_empty_bucket_is_zero():
    assert percentage(0, 0) == 0
    assert percentage(None, None) == 0
    assert percentage(1, 8) == 13
    assert percentage(1, 3) == 33


def test_category_bucket():
    bucket = {
        "key": "Electronics",
        "doc_count": 4,
        "avg_price": {"value": 19.999},
        "avg_rating": {"value": 4.449},
        "min_price": {"value": 5.0},
        "max_price": {"value": 40.005},
        "in_stock_count": {"doc_count": 3, "count": {"value": 3}},
    }

    assert shape_category_bucket(bucket) == {
        "category": "Electronics",
        "count": 4,
        "avg_price": 20.0,
        "avg_rating": 4.4,
        "min_price": 5.0,
        "max_price": 40.01,
        "in_stock_count": 3,
        "in_stock_percentage": 75,
    }


def test_empty_category_bucket_shapes_without_error():
    shaped = shape_category_bucket({"key": "Empty", "doc_count": 0, "avg_price": {"value": None}})

    assert shaped["in_stock_percentage"] == 0
    assert shaped["avg_price"] is None
    assert shaped["in_stock_count"] == 0


def test_stock_bucket_reads_boolean_key():
    assert shape_stock_bucket({"key": 1, "key_as_string": "true", "doc_count": 2})["status"] == "In Stock"
    assert shape_stock_bucket({"key": 0, "key_as_string": "false", "doc_count": 2})["status"] == "Out of Stock"


def test_stats_precision_depends_on_field():
    raw = {"count": 3, "avg": 4.449, "min": 1.0, "max": 5.0, "sum": 13.347}

    assert shape_stats(raw) == {"count": 3, "average": 4.45, "min": 1.0, "max": 5.0, "sum": 13.35}
    assert shape_stats(raw, rating=True) == {"count": 3, "average": 4.4, "min": 1.0, "max": 5.0}


def test_overview_with_empty_index():
    shaped = shape_overview({"total_products": {"value": 0}, "avg_price": {"value": None}})

    assert shaped["total_products"] == 0
    assert shaped["price_stats"]["average"] is None
    assert shaped["stock_status"] == {"in_stock": 0, "out_of_stock": 0}


def test_hits_carry_score():
    hits = [Hit(id="a", source={"name": "Lamp"}, score=1.5)]

    assert shape_hits(hits) == [{"name": "Lamp", "_score": 1.5}]


def test_engine_response_accepts_integer_total():
    response = EngineResponse.from_raw({"hits": {"total": 7, "hits": []}, "took": 2})

    assert response.total == 7
    assert response.took_ms == 2
    assert response.aggregations == {}

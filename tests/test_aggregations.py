"""Aggregation tree builders."""

import pytest

from catalog_search import aggregations as aggs
from catalog_search.errors import InputError


@pytest.mark.parametrize("breakpoints", [[50], [50, 100], [25, 50, 100, 200, 500], [0.5, 9.99]])
def test_breakpoints_give_n_plus_one_buckets(breakpoints):
    buckets = aggs.price_buckets(breakpoints)

    assert len(buckets) == len(breakpoints) + 1
    assert buckets[0].from_ is None and buckets[0].to == breakpoints[0]
    assert buckets[-1].from_ == breakpoints[-1] and buckets[-1].to is None
    for bucket, (low, high) in zip(buckets[1:-1], zip(breakpoints, breakpoints[1:])):
        assert (bucket.from_, bucket.to) == (low, high)
    labels = [bucket.key for bucket in buckets]
    assert len(set(labels)) == len(labels)


def test_default_price_labels():
    labels = [bucket.key for bucket in aggs.price_buckets(aggs.DEFAULT_PRICE_BREAKPOINTS)]

    assert labels == ["Under $50", "$50 - $100", "$100 - $200", "$200 - $500", "Over $500"]


@pytest.mark.parametrize("breakpoints", [[100, 50], [50, 50], [], [10, 20, 15]])
def test_non_increasing_breakpoints_are_rejected(breakpoints):
    with pytest.raises(InputError):
        aggs.price_buckets(breakpoints)


def test_parse_breakpoints_sorts_values():
    assert aggs.parse_breakpoints(" 200, 50 ,100") == [50.0, 100.0, 200.0]


@pytest.mark.parametrize("raw", ["", "50,abc", "50,50", "50,inf", " , "])
def test_parse_breakpoints_rejects_bad_input(raw):
    with pytest.raises(InputError):
        aggs.parse_breakpoints(raw)


def test_price_ranges_render():
    body = aggs.price_ranges([50, 100]).to_dict()

    assert body["range"]["field"] == "price"
    assert body["range"]["ranges"] == [
        {"to": 50, "key": "Under $50"},
        {"from": 50, "to": 100, "key": "$50 - $100"},
        {"from": 100, "key": "Over $100"},
    ]
    assert body["aggs"]["avg_rating"] == {"avg": {"field": "rating"}}
    assert body["aggs"]["in_stock_count"] == {
        "filter": {"term": {"inStock": True}},
        "aggs": {"count": {"value_count": {"field": "id"}}},
    }


def test_range_agg_rejects_duplicate_keys():
    with pytest.raises(InputError):
        aggs.RangeAgg("price", (aggs.RangeBucket("a", to=10), aggs.RangeBucket("a", from_=10)))


def test_date_histogram_requires_calendar_interval():
    assert aggs.date_trends("week").to_dict()["date_histogram"]["calendar_interval"] == "week"
    with pytest.raises(InputError):
        aggs.date_trends("fortnight")


def test_metric_kind_is_checked():
    with pytest.raises(ValueError):
        aggs.MetricAgg("median", "price")


def test_facet_aggregations_are_valid_trees():
    rendered = {name: agg.to_dict() for name, agg in aggs.facet_aggregations().items()}

    assert set(rendered) == {"categories", "price_ranges", "ratings", "tags", "in_stock"}
    assert all("key" not in bucket for bucket in rendered["price_ranges"]["range"]["ranges"])


def test_complex_breakdown_nests_tiers_and_top_hits():
    body = aggs.complex_category_breakdown(5).to_dict()

    assert body["terms"] == {"field": "category", "size": 5}
    tiers = body["aggs"]["price_ranges"]["range"]["ranges"]
    assert [tier["key"] for tier in tiers] == ["Budget", "Mid-range", "Premium"]
    assert body["aggs"]["top_products"]["top_hits"]["sort"] == [{"rating": {"order": "desc"}}]


def test_nested_aggregations_are_read_only():
    tree = aggs.category_counts(5)
    sub = aggs.TermsAgg("tags", aggs={"avg_price": aggs.avg("price")})

    with pytest.raises(TypeError):
        tree.aggs["extra"] = aggs.avg("rating")
    with pytest.raises(TypeError):
        sub.aggs["extra"] = aggs.avg("rating")
    for node in (aggs.price_ranges(), aggs.date_trends(), aggs.stock_subcount(), aggs.price_histogram()):
        with pytest.raises(TypeError):
            node.aggs["extra"] = aggs.avg("rating")


def test_source_mapping_changes_do_not_leak_into_tree():
    children = {"avg_price": aggs.avg("price")}
    tree = aggs.TermsAgg("category", aggs=children)
    children["avg_rating"] = aggs.avg("rating")

    assert list(tree.to_dict()["aggs"]) == ["avg_price"]

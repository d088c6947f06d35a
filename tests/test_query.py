"""Search request compilation."""

import pytest

from catalog_search.clauses import Bool, MatchAll, Range, Term, Terms
from catalog_search.models import FilterSet, SearchRequest
from catalog_search.query import (
    CompiledQuery,
    RawQuery,
    SearchType,
    build_filter_clauses,
    build_primary_clause,
    compile_related,
    compile_search,
)


@pytest.mark.parametrize(
    "fields, expected",
    [
        ({}, []),
        ({"category": "Books"}, [Term("category", "Books")]),
        ({"priceMax": 20}, [Range("price", lte=20)]),
        (
            {"category": "Books", "priceMin": 5, "priceMax": 20, "ratingMin": 4, "inStock": False, "tags": ["new"]},
            [
                Term("category", "Books"),
                Range("price", gte=5, lte=20),
                Range("rating", gte=4),
                Term("inStock", False),
                Terms("tags", ("new",)),
            ],
        ),
        ({"tags": ["sale", "sale", "new"], "ratingMin": 3.5}, [Range("rating", gte=3.5), Terms("tags", ("sale", "new"))]),
    ],
)
def test_filter_clauses_follow_fixed_order(fields, expected):
    assert build_filter_clauses(FilterSet(**fields)) == expected


def test_filter_clause_count_matches_present_fields():
    filters = FilterSet(category="Toys", inStock=True)
    clauses = build_filter_clauses(filters)

    assert len(clauses) == 2
    assert build_filter_clauses(FilterSet()) == []
    assert build_filter_clauses(None) == []


def test_rating_alias_is_accepted():
    assert FilterSet(rating=4.0).ratingMin == 4.0


def test_wireless_request_compiles_to_bool_with_category_filter():
    request = SearchRequest(
        query="wireless", searchType="multiMatch", filters={"category": "Electronics"}, page=1, size=10
    )

    body = compile_search(request).to_body()

    assert body["query"] == {
        "bool": {
            "must": [
                {
                    "multi_match": {
                        "query": "wireless",
                        "fields": ["name^3", "description^2", "category", "tags"],
                        "type": "best_fields",
                        "fuzziness": "AUTO",
                    }
                }
            ],
            "filter": [{"term": {"category": "Electronics"}}],
        }
    }
    assert body["from"] == 0
    assert body["size"] == 10
    assert body["sort"] == [{"createdAt": {"order": "desc"}}]


def test_no_filters_leaves_primary_clause_unwrapped():
    body = compile_search(SearchRequest(query="lamp", searchType="fuzzy")).to_body()

    assert body["query"] == {"fuzzy": {"name": {"value": "lamp", "fuzziness": 2}}}


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("multi_match", SearchType.MULTI_MATCH),
        ("phraseMatch", SearchType.MATCH_PHRASE),
        ("match_phrase", SearchType.MATCH_PHRASE),
        ("Wildcard", SearchType.WILDCARD),
        ("matchAll", SearchType.MATCH_ALL),
        ("semantic", SearchType.MATCH_ALL),
        (None, SearchType.MATCH_ALL),
    ],
)
def test_search_type_parse(raw, expected):
    assert SearchType.parse(raw) is expected


def test_unknown_search_type_falls_back_to_match_all():
    assert build_primary_clause("vector", "lamp") == MatchAll()


def test_blank_text_matches_everything():
    assert build_primary_clause(SearchType.MULTI_MATCH, "   ") == MatchAll()


def test_wildcard_escapes_pattern_characters():
    clause = build_primary_clause("wildcard", "a*b?")

    assert clause.to_dict() == {"wildcard": {"name": {"value": "*a\\*b\\?*", "case_insensitive": True}}}


def test_pagination_offset():
    body = compile_search(SearchRequest(query="x", page=3, size=20, sort="price", order="asc")).to_body()

    assert body["from"] == 40
    assert body["size"] == 20
    assert body["sort"] == [{"price": {"order": "asc"}}]


def test_compiled_query_rejects_size_zero_without_aggregations():
    with pytest.raises(ValueError):
        CompiledQuery(query=MatchAll(), size=0)
    with pytest.raises(ValueError):
        CompiledQuery(size=-1)


def test_compiled_query_aggregations_are_read_only():
    from catalog_search.aggregations import avg

    query = CompiledQuery(aggregations={"avg_price": avg("price")}, size=0)

    with pytest.raises(TypeError):
        query.aggregations["other"] = avg("rating")


def test_clause_trees_validate_on_construction():
    with pytest.raises(ValueError):
        Bool()
    with pytest.raises(ValueError):
        Range("price")
    with pytest.raises(ValueError):
        Terms("tags", ())


def test_raw_query_returns_independent_copy():
    raw = RawQuery({"query": {"match_all": {}}})
    body = raw.to_body()
    body["query"]["extra"] = 1

    assert raw.to_body() == {"query": {"match_all": {}}}


def test_related_query_excludes_source():
    body = compile_related("p1", {"category": "Books", "tags": ["new"]}, size=3).to_body()

    assert body["size"] == 3
    assert body["query"]["bool"]["must_not"] == [{"term": {"id": "p1"}}]
    should = body["query"]["bool"]["must"][0]["bool"]["should"]
    assert {"term": {"category": "Books"}} in should
    assert {"terms": {"tags": ["new"]}} in should

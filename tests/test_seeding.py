"""Index bootstrap, synthetic data and caching helpers."""

import asyncio
import random

from catalog_search.cache import InMemoryCache, cache_key
from catalog_search.indexing import PRODUCT_INDEX_BODY, ensure_index
from catalog_search.seeding import generate_products, seed_index


def _without_timestamps(products):
    return [{k: v for k, v in p.items() if k not in ("createdAt", "updatedAt")} for p in products]


def test_generated_products_are_reproducible():
    first = generate_products(5, random.Random(42))
    second = generate_products(5, random.Random(42))

    assert _without_timestamps(first) == _without_timestamps(second)
    for product in first:
        assert 1 <= product["rating"] <= 5
        assert product["category"].lower() in product["description"]
        assert product["createdAt"] <= product["updatedAt"]


def test_seed_index_recreates_and_loads(engine):
    engine.documents["stale"] = {"id": "stale"}

    inserted = asyncio.run(seed_index(engine, 250, random.Random(1)))

    assert inserted == 250
    assert len(engine.documents) == 250
    assert "stale" not in engine.documents
    assert engine.index_body is PRODUCT_INDEX_BODY
    assert engine.refreshed == 1


def test_ensure_index_only_creates_once(engine):
    assert asyncio.run(ensure_index(engine)) is True
    assert asyncio.run(ensure_index(engine)) is False


def test_index_mapping_has_suggest_field():
    name = PRODUCT_INDEX_BODY["mappings"]["properties"]["name"]

    assert name["fields"]["suggest"]["type"] == "completion"


def test_cache_key_is_stable_and_parameterised():
    assert cache_key("categories", size=10) == cache_key("categories", size=10)
    assert cache_key("categories", size=10) != cache_key("categories", size=20)


def test_in_memory_cache_expires():
    cache = InMemoryCache()
    cache.set("a", {"v": 1}, ttl=60)
    cache.set("b", {"v": 2}, ttl=-1)

    assert cache.get("a") == {"v": 1}
    assert cache.get("b") is None


def test_in_memory_cache_is_bounded():
    cache = InMemoryCache(max_entries=2)
    cache.set("a", {"v": 1}, ttl=10)
    cache.set("b", {"v": 2}, ttl=60)
    cache.set("c", {"v": 3}, ttl=60)

    assert cache.get("a") is None
    assert cache.get("b") == {"v": 2}
    assert cache.get("c") == {"v": 3}


def test_in_memory_cache_returns_copies():
    cache = InMemoryCache()
    cache.set("a", {"items": [1]}, ttl=60)
    cache.get("a")["items"].append(2)

    assert cache.get("a") == {"items": [1]}

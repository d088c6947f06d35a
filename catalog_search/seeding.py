"""Synthetic catalog generator used to populate a fresh index."""
from __future__ import annotations

import asyncio
import logging
import random
import uuid
from datetime import datetime, timedelta, timezone
from typing import Iterable, List

from .es_client import SearchEngineClient
from .indexing import reset_index

logger = logging.getLogger(__name__)

BATCH_SIZE = 100

CATEGORY_PREFIXES = {
    "Electronics": ["Smart", "Digital", "Wireless", "Portable", "Advanced"],
    "Clothing": ["Premium", "Comfortable", "Stylish", "Classic", "Modern"],
    "Books": ["Essential", "Complete", "Advanced", "Beginner's", "Professional"],
    "Home & Garden": ["Eco-Friendly", "Durable", "Compact", "Multi-Purpose", "Premium"],
    "Sports": ["Professional", "Training", "Competition", "Recreational", "High-Performance"],
    "Beauty": ["Natural", "Organic", "Luxury", "Essential", "Professional"],
    "Toys": ["Educational", "Interactive", "Creative", "Fun", "Safe"],
    "Automotive": ["Heavy-Duty", "Performance", "Universal", "Professional", "Premium"],
    "Health": ["Natural", "Organic", "Essential", "Professional", "Advanced"],
    "Food & Beverages": ["Organic", "Premium", "Natural", "Artisan", "Gourmet"],
}
TAGS = [
    "new", "sale", "bestseller", "premium", "eco-friendly", "organic",
    "wireless", "smart", "portable", "durable", "lightweight", "compact",
    "waterproof", "rechargeable", "adjustable", "multi-purpose",
]
PRODUCT_NOUNS = ["Headphones", "Chair", "Keyboard", "Shoes", "Lamp", "Bottle", "Jacket", "Watch", "Speaker", "Backpack"]
MATERIALS = ["Steel", "Cotton", "Wooden", "Plastic", "Leather", "Granite", "Rubber", "Bronze"]
BRANDS = ["Acme", "Globex", "Initech", "Umbrella", "Stark", "Wayne", "Hooli", "Vandelay"]
COLORS = ["black", "white", "red", "blue", "green", "silver", "gold"]
SIZES = ["XS", "S", "M", "L", "XL", "XXL", "One Size"]


def generate_products(count: int, rng: random.Random | None = None) -> List[dict]:
    rng = rng or random.Random()
    now = datetime.now(timezone.utc)
    products = []
    for _ in range(count):
        category = rng.choice(list(CATEGORY_PREFIXES))
        name = f"{rng.choice(CATEGORY_PREFIXES[category])} {rng.choice(MATERIALS)} {rng.choice(PRODUCT_NOUNS)}"
        created = now - timedelta(days=rng.uniform(0, 730))
        updated = created + (now - created) * rng.random()
        products.append(
            {
                "id": str(uuid.UUID(int=rng.getrandbits(128), version=4)),
                "name": name,
                "description": f"{name} for everyday {category.lower()} needs.",
                "category": category,
                "price": round(rng.uniform(10, 1000), 2),
                "rating": round(rng.uniform(1, 5), 1),
                "tags": rng.sample(TAGS, rng.randint(1, 5)),
                "inStock": rng.random() < 0.5,
                "createdAt": created.isoformat(),
                "updatedAt": updated.isoformat(),
                "metadata": {
                    "brand": rng.choice(BRANDS),
                    "color": rng.choice(COLORS),
                    "size": rng.choice(SIZES),
                    "weight": round(rng.uniform(0.1, 50), 1),
                },
            }
        )
    return products


def _batches(items: List[dict], size: int) -> Iterable[List[dict]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


async def seed_index(engine: SearchEngineClient, count: int, rng: random.Random | None = None) -> int:
    """Drop and recreate the index, then bulk load ``count`` synthetic products."""
    await reset_index(engine)
    products = generate_products(count, rng)
    inserted = 0
    for batch in _batches(products, BATCH_SIZE):
        result = await asyncio.to_thread(engine.index_bulk, batch)
        inserted += result.total - result.error_count
        logger.info("Inserted %s/%s products", inserted, len(products))
    await asyncio.to_thread(engine.refresh)
    return inserted

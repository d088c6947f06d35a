"""Pydantic models for request/response payloads."""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .config import settings

SortOrder = Literal["asc", "desc"]


class FilterSet(BaseModel):
    category: str | None = None
    priceMin: float | None = None
    priceMax: float | None = None
    ratingMin: float | None = Field(default=None, validation_alias=AliasChoices("ratingMin", "rating"))
    inStock: bool | None = None
    tags: List[str] = Field(default_factory=list)


class SearchRequest(BaseModel):
    query: str | None = Field(default=None, description="Free text")
    searchType: str = Field(
        default="multi_match",
        description="multi_match, match_phrase, wildcard, fuzzy or match_all; unknown values match everything",
    )
    filters: FilterSet = Field(default_factory=FilterSet)
    page: int = Field(default=1, ge=1)
    size: int = Field(default=10, ge=1)
    sort: str = "createdAt"
    order: SortOrder = "desc"


class SearchResponse(BaseModel):
    products: List[Dict[str, Any]]
    total: int
    page: int
    size: int
    totalPages: int
    searchType: str
    took: int


class Product(BaseModel):
    """Product payload; unknown attributes are stored as sent."""

    model_config = ConfigDict(extra="allow")

    name: str | None = None
    description: str | None = None
    category: str | None = None
    price: float | None = None
    rating: float | None = None
    tags: List[str] | None = None
    inStock: bool | None = None
    metadata: Dict[str, Any] | None = None


class BulkProductsRequest(BaseModel):
    products: List[Product]


class CustomAggregationRequest(BaseModel):
    query: Optional[Dict[str, Any]] = None


class ComplexAggregationRequest(BaseModel):
    category_filter: str | None = None
    price_min: float | None = None
    price_max: float | None = None
    rating_min: float = 0


class LoadTestRequest(BaseModel):
    queries: List[Dict[str, Any]] = Field(default_factory=list)
    iterations: int = Field(default=10, ge=1)
    concurrent: int = Field(default_factory=lambda: settings.benchmark_concurrency, ge=1)
    timeout: float | None = Field(default_factory=lambda: settings.benchmark_timeout_seconds, gt=0)


class AnalyzeRequest(BaseModel):
    text: str | None = None
    analyzer: str = "custom_analyzer"
    field: str = "name"


class CompareAnalyzersRequest(BaseModel):
    text: str | None = None
    analyzers: List[str] = Field(default_factory=lambda: ["custom_analyzer", "standard", "keyword_analyzer"])

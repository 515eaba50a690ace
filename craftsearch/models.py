"""Pydantic models for request/response payloads."""
from __future__ import annotations

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from .config import settings

DataT = TypeVar("DataT")


class SearchFiltersBody(BaseModel):
    category: Optional[str] = None
    craftType: Optional[str] = None
    minPrice: Optional[float] = None
    maxPrice: Optional[float] = None
    barangay: Optional[str] = None
    fuzzyMatch: bool = True


class PaginationBody(BaseModel):
    page: int = 1
    limit: int = settings.default_page_size


class SortBody(BaseModel):
    by: str = "relevance"


class SearchRequest(BaseModel):
    query: str = Field("", description="Search query string")
    filters: SearchFiltersBody = Field(default_factory=SearchFiltersBody)
    pagination: PaginationBody = Field(default_factory=PaginationBody)
    sort: SortBody = Field(default_factory=SortBody)


class Highlights(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class ProductResult(BaseModel):
    id: str
    name: str
    description: str = ""
    category: str = ""
    price: float
    artistName: str = ""
    images: list[str] = Field(default_factory=list)
    thumbnailUrl: str = ""
    averageRating: float = 0.0
    totalReviews: int = 0
    craftType: Optional[str] = None
    barangay: Optional[str] = None
    stock: int = 0
    isAvailable: bool = True
    relevanceScore: float
    matchType: str
    highlights: Optional[Highlights] = None


class CategoryCount(BaseModel):
    name: str
    count: int


class SearchResponse(BaseModel):
    results: list[ProductResult]
    suggestions: list[str]
    totalResults: int
    page: int
    totalPages: int
    searchTime: float
    query: str
    didYouMean: Optional[str] = None
    categories: list[CategoryCount]


class Suggestion(BaseModel):
    type: str
    text: str
    count: Optional[int] = None
    productId: Optional[str] = None
    thumbnailUrl: Optional[str] = None
    price: Optional[float] = None
    rating: Optional[float] = None
    reviewCount: Optional[int] = None
    reason: Optional[str] = None


class SuggestionsResponse(BaseModel):
    suggestions: list[Suggestion]
    query: str
    expandedTerms: Optional[list[str]] = None
    isPersonalized: Optional[bool] = None


class Envelope(BaseModel, Generic[DataT]):
    success: bool = True
    data: DataT

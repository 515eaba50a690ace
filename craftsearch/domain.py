"""Request-scoped value objects shared by the search core."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Tuple

from .config import settings
from .errors import InvalidQueryError


class MatchType(str, Enum):
    EXACT = "exact"
    PARTIAL = "partial"
    FUZZY = "fuzzy"
    SYNONYM = "synonym"


class SortMode(str, Enum):
    RELEVANCE = "relevance"
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    RATING = "rating"
    NEWEST = "newest"
    POPULARITY = "popularity"

    @classmethod
    def parse(cls, value: "SortMode | str | None") -> "SortMode":
        if isinstance(value, SortMode):
            return value
        if not value:
            return cls.RELEVANCE
        try:
            return cls(value)
        except ValueError as exc:
            allowed = ", ".join(mode.value for mode in cls)
            raise InvalidQueryError(f"Unknown sort mode {value!r}; expected one of: {allowed}") from exc


class SuggestionType(str, Enum):
    PRODUCT = "product"
    CATEGORY = "category"
    CRAFT_TYPE = "craftType"
    ARTIST = "artist"
    KEYWORD = "keyword"
    TRENDING = "trending"
    PERSONALIZED = "personalized"


def _first(raw: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return default


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class CatalogItem:
    """A product as read from the catalog. Never mutated by the search core."""

    id: str
    name: str
    price: float
    description: str = ""
    short_description: str = ""
    category: str = ""
    craft_type: str = ""
    locality: str = ""
    artist_name: str = ""
    tags: Tuple[str, ...] = ()
    search_keywords: Tuple[str, ...] = ()
    images: Tuple[str, ...] = ()
    thumbnail_url: str = ""
    stock: int = 0
    is_available: bool = True
    is_active: bool = True
    is_featured: bool = False
    average_rating: float = 0.0
    total_reviews: int = 0
    view_count: int = 0
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.price < 0:
            raise ValueError(f"price must be >= 0 for item {self.id!r}")
        if not 0 <= self.average_rating <= 5:
            raise ValueError(f"average_rating must be within [0, 5] for item {self.id!r}")

    @property
    def in_stock(self) -> bool:
        return self.is_available and self.stock > 0

    @property
    def thumbnail(self) -> str:
        return self.thumbnail_url or (self.images[0] if self.images else "")

    @classmethod
    def from_document(cls, raw: Mapping[str, Any]) -> "CatalogItem":
        """Build an item from a catalog document (snake_case or camelCase keys)."""
        identifier = _first(raw, "id", "_id", "externalId")
        if identifier is None:
            raise ValueError("catalog document has no id")
        return cls(
            id=str(identifier),
            name=str(_first(raw, "name", "title", default="")),
            price=float(_first(raw, "price", default=0)),
            description=_first(raw, "description", default=""),
            short_description=_first(raw, "short_description", "shortDescription", default=""),
            category=(_first(raw, "category", default="") or "").lower(),
            craft_type=_first(raw, "craft_type", "craftType", default=""),
            locality=_first(raw, "locality", "barangay", default=""),
            artist_name=_first(raw, "artist_name", "artistName", default=""),
            tags=tuple(_first(raw, "tags", default=())),
            search_keywords=tuple(_first(raw, "search_keywords", "searchKeywords", default=())),
            images=tuple(_first(raw, "images", default=())),
            thumbnail_url=_first(raw, "thumbnail_url", "thumbnailUrl", default=""),
            stock=int(_first(raw, "stock", default=0)),
            is_available=bool(_first(raw, "is_available", "isAvailable", default=True)),
            is_active=bool(_first(raw, "is_active", "isActive", default=True)),
            is_featured=bool(_first(raw, "is_featured", "isFeatured", default=False)),
            average_rating=float(_first(raw, "average_rating", "averageRating", default=0.0)),
            total_reviews=int(_first(raw, "total_reviews", "totalReviews", default=0)),
            view_count=int(_first(raw, "view_count", "viewCount", default=0)),
            created_at=_parse_datetime(_first(raw, "created_at", "createdAt")),
        )

    def to_document(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "description": self.description,
            "short_description": self.short_description,
            "category": self.category,
            "craft_type": self.craft_type,
            "locality": self.locality,
            "artist_name": self.artist_name,
            "tags": list(self.tags),
            "search_keywords": list(self.search_keywords),
            "images": list(self.images),
            "thumbnail_url": self.thumbnail_url,
            "stock": self.stock,
            "is_available": self.is_available,
            "is_active": self.is_active,
            "is_featured": self.is_featured,
            "average_rating": self.average_rating,
            "total_reviews": self.total_reviews,
            "view_count": self.view_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class SearchFilters:
    category: Optional[str] = None
    craft_type: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    locality: Optional[str] = None

    def __post_init__(self) -> None:
        for name in ("min_price", "max_price"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise InvalidQueryError(f"{name} must not be negative")
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise InvalidQueryError("min_price must not exceed max_price")


@dataclass(frozen=True)
class SearchQuery:
    """One search request. ``page`` is floored at 1 and ``limit`` capped."""

    text: str
    page: int = 1
    limit: int = settings.default_page_size
    filters: SearchFilters = field(default_factory=SearchFilters)
    sort_by: SortMode = SortMode.RELEVANCE
    fuzzy: bool = True

    def __post_init__(self) -> None:
        text = (self.text or "").strip()
        if not text:
            raise InvalidQueryError("Search query is required")
        object.__setattr__(self, "text", text)
        object.__setattr__(self, "page", max(int(self.page or 1), 1))
        object.__setattr__(self, "limit", min(max(int(self.limit or 1), 1), settings.max_page_size))
        object.__setattr__(self, "sort_by", SortMode.parse(self.sort_by))

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    def cache_payload(self) -> dict:
        return {
            "q": self.text.lower(),
            "page": self.page,
            "limit": self.limit,
            "filters": {
                "category": self.filters.category,
                "craft_type": self.filters.craft_type,
                "min_price": self.filters.min_price,
                "max_price": self.filters.max_price,
                "locality": self.filters.locality,
            },
            "sort_by": self.sort_by.value,
            "fuzzy": self.fuzzy,
        }


@dataclass(frozen=True)
class ScoredResult:
    item: CatalogItem
    score: float
    match_type: MatchType


@dataclass(frozen=True)
class SearchSuggestion:
    type: SuggestionType
    text: str
    count: Optional[int] = None
    product_id: Optional[str] = None
    thumbnail_url: Optional[str] = None
    price: Optional[float] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    reason: Optional[str] = None

    @classmethod
    def for_item(cls, type_: SuggestionType, item: CatalogItem, reason: Optional[str] = None) -> "SearchSuggestion":
        return cls(
            type=type_,
            text=item.name,
            product_id=item.id,
            thumbnail_url=item.thumbnail or None,
            price=item.price,
            rating=item.average_rating,
            review_count=item.total_reviews,
            reason=reason,
        )

    def to_dict(self) -> dict:
        payload = {
            "type": self.type.value,
            "text": self.text,
            "count": self.count,
            "productId": self.product_id,
            "thumbnailUrl": self.thumbnail_url,
            "price": self.price,
            "rating": self.rating,
            "reviewCount": self.review_count,
            "reason": self.reason,
        }
        return {key: value for key, value in payload.items() if value is not None}


def _split_csv(value: "str | Iterable[str] | None") -> Tuple[str, ...]:
    if not value:
        return ()
    parts = value.split(",") if isinstance(value, str) else value
    return tuple(part.strip() for part in parts if part and str(part).strip())


@dataclass(frozen=True)
class Personalization:
    recent_views: Tuple[str, ...] = ()
    recent_searches: Tuple[str, ...] = ()
    interests: Tuple[str, ...] = ()

    @classmethod
    def from_params(
        cls,
        recent_views: "str | Iterable[str] | None" = None,
        recent_searches: "str | Iterable[str] | None" = None,
        interests: "str | Iterable[str] | None" = None,
    ) -> "Personalization":
        return cls(
            recent_views=_split_csv(recent_views),
            recent_searches=_split_csv(recent_searches),
            interests=_split_csv(interests),
        )

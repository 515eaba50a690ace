"""Shared fixtures: a small handicraft catalog and a compact lexicon."""
from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

import pytest

from craftsearch.cache import NullCache
from craftsearch.catalog import InMemoryCatalog
from craftsearch.domain import CatalogItem
from craftsearch.lexicon import Lexicon
from craftsearch.search_service import SearchService
from craftsearch.suggestions import SuggestionEngine

BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _make_item(**overrides) -> CatalogItem:
    defaults = dict(
        id="item",
        name="Item",
        price=100.0,
        description="",
        category="handicrafts",
        craft_type="",
        locality="Poblacion",
        artist_name="Local Artisan",
        tags=(),
        stock=5,
        is_available=True,
        average_rating=3.0,
        total_reviews=0,
        created_at=BASE_TIME,
    )
    defaults.update(overrides)
    return CatalogItem(**defaults)


@pytest.fixture
def make_item():
    return _make_item


@pytest.fixture
def lexicon() -> Lexicon:
    return Lexicon.from_mapping(
        {
            "spelling_variants": {
                "basket": ["baskit", "bascet", "basquet"],
                "pottery": ["potery", "poterry", "potary"],
                "weaving": ["weaving", "weeving", "weavng"],
                "bag": ["bags", "purse", "handbag"],
                "banig": ["mat", "sleeping mat"],
            },
            "category_synonyms": {
                "handicrafts": ["crafts", "handmade", "artisan"],
                "fashion": ["clothing", "apparel", "wear"],
                "home": ["decor", "furniture"],
            },
            "craft_type_synonyms": {
                "weaving": ["woven", "loom", "fabric"],
                "pottery": ["clay", "ceramic", "terracotta"],
                "basketry": ["basket", "wicker", "rattan"],
            },
        }
    )


@pytest.fixture
def catalog_items() -> list[CatalogItem]:
    return [
        _make_item(
            id="p1",
            name="Handwoven Buri Basket",
            description="A sturdy basket woven from buri palm leaves.",
            craft_type="Basketry",
            artist_name="Aling Rosa",
            tags=("basket", "buri", "storage"),
            average_rating=4.6,
            total_reviews=40,
            view_count=300,
            created_at=BASE_TIME + timedelta(days=3),
        ),
        _make_item(
            id="p2",
            name="Terracotta Clay Pot",
            description="Traditional pottery fired in a wood kiln.",
            craft_type="Pottery",
            artist_name="Mang Ben",
            tags=("pottery", "clay", "garden"),
            price=350.0,
            average_rating=4.2,
            total_reviews=12,
            view_count=120,
            created_at=BASE_TIME + timedelta(days=1),
        ),
        _make_item(
            id="p3",
            name="Abel Iloco Table Runner",
            description="Loom woven cotton runner with binakol pattern.",
            category="home",
            craft_type="Weaving",
            artist_name="Manang Luz",
            tags=("woven", "abel", "table"),
            price=850.0,
            average_rating=4.8,
            total_reviews=75,
            view_count=510,
            is_featured=True,
            created_at=BASE_TIME + timedelta(days=5),
        ),
        _make_item(
            id="p4",
            name="Rattan Shoulder Bag",
            description="Round rattan bag with leather strap.",
            category="fashion",
            craft_type="Basketry",
            artist_name="Aling Rosa",
            tags=("bag", "rattan", "fashion"),
            price=1200.0,
            average_rating=3.9,
            total_reviews=8,
            view_count=90,
            stock=0,
            created_at=BASE_TIME + timedelta(days=2),
        ),
        _make_item(
            id="p5",
            name="Banig Sleeping Mat",
            description="Colorful pandan mat woven by hand.",
            category="home",
            craft_type="Weaving",
            artist_name="Samal Weavers",
            tags=("banig", "mat", "pandan"),
            price=950.0,
            average_rating=4.0,
            total_reviews=20,
            view_count=200,
            created_at=BASE_TIME + timedelta(days=4),
        ),
        _make_item(
            id="p6",
            name="Retired Clay Jar",
            description="Old pottery listing no longer sold.",
            craft_type="Pottery",
            tags=("pottery",),
            is_active=False,
            average_rating=5.0,
            total_reviews=100,
        ),
    ]


@pytest.fixture
def catalog(catalog_items) -> InMemoryCatalog:
    return InMemoryCatalog(catalog_items)


@pytest.fixture
def engine(catalog, lexicon) -> SuggestionEngine:
    return SuggestionEngine(catalog, lexicon, rng=random.Random(7))


@pytest.fixture
def service(catalog, lexicon, engine) -> SearchService:
    return SearchService(catalog, lexicon=lexicon, cache=NullCache(), suggestion_engine=engine)

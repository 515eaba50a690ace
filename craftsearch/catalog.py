"""Catalog collaborator interface and an in-process implementation.

The search core never owns product data. It talks to a :class:`Catalog`,
which answers execution plans, counts, text lookups for suggestions and the
id/sample reads used for personalization.
"""
from __future__ import annotations

import logging
import random
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Sequence

from .domain import CatalogItem, ScoredResult
from .importer import load_items
from .pipeline import ExecutionPlan
from .utils import contains

logger = logging.getLogger(__name__)

SUGGESTION_FIELDS = ("name", "tags", "description", "category", "craft_type", "artist_name")


class Catalog(Protocol):
    async def candidates(self, plan: ExecutionPlan) -> List[CatalogItem]: ...

    async def query(self, plan: ExecutionPlan) -> List[ScoredResult]: ...

    async def count(self, plan: ExecutionPlan) -> int: ...

    async def match(
        self, text: str, fields: Sequence[str], limit: Optional[int] = None
    ) -> List[CatalogItem]: ...

    async def active(self, min_rating: Optional[float] = None) -> List[CatalogItem]: ...

    async def get_many(self, ids: Sequence[str]) -> List[CatalogItem]: ...

    async def sample(
        self,
        *,
        size: int,
        categories: Sequence[str] = (),
        craft_types: Sequence[str] = (),
        exclude_ids: Sequence[str] = (),
        rng: Optional[random.Random] = None,
    ) -> List[CatalogItem]: ...


def field_matches(item: CatalogItem, field_name: str, text: str) -> bool:
    if field_name not in SUGGESTION_FIELDS:
        raise ValueError(f"Unsupported catalog field {field_name!r}")
    value = getattr(item, field_name)
    if isinstance(value, tuple):
        return any(contains(entry, text) for entry in value)
    return contains(value, text)


def matches_any(item: CatalogItem, values: Sequence[str], field_name: str) -> bool:
    return any(contains(getattr(item, field_name), value) for value in values)


class InMemoryCatalog:
    """Catalog backed by a list of items; evaluates plans in Python."""

    def __init__(self, items: Iterable[CatalogItem] = ()) -> None:
        self._items: tuple[CatalogItem, ...] = tuple(items)

    @classmethod
    def from_file(cls, path: str | Path) -> "InMemoryCatalog":
        catalog = cls(load_items(Path(path)))
        logger.info("Loaded %s catalog items from %s", len(catalog), path)
        return catalog

    def __len__(self) -> int:
        return len(self._items)

    def replace(self, items: Iterable[CatalogItem]) -> int:
        self._items = tuple(items)
        return len(self._items)

    async def candidates(self, plan: ExecutionPlan) -> List[CatalogItem]:
        return plan.candidate_set(self._items)

    async def query(self, plan: ExecutionPlan) -> List[ScoredResult]:
        return plan.rank(await self.candidates(plan))

    async def count(self, plan: ExecutionPlan) -> int:
        return len(await self.candidates(plan))

    async def match(
        self, text: str, fields: Sequence[str], limit: Optional[int] = None
    ) -> List[CatalogItem]:
        hits = [
            item
            for item in self._items
            if item.is_active and any(field_matches(item, field_name, text) for field_name in fields)
        ]
        return hits if limit is None else hits[:limit]

    async def active(self, min_rating: Optional[float] = None) -> List[CatalogItem]:
        return [
            item
            for item in self._items
            if item.is_active and (min_rating is None or item.average_rating >= min_rating)
        ]

    async def get_many(self, ids: Sequence[str]) -> List[CatalogItem]:
        wanted = set(ids)
        return [item for item in self._items if item.id in wanted]

    async def sample(
        self,
        *,
        size: int,
        categories: Sequence[str] = (),
        craft_types: Sequence[str] = (),
        exclude_ids: Sequence[str] = (),
        rng: Optional[random.Random] = None,
    ) -> List[CatalogItem]:
        excluded = set(exclude_ids)
        pool = [
            item
            for item in self._items
            if item.is_active
            and item.id not in excluded
            and (matches_any(item, categories, "category") or matches_any(item, craft_types, "craft_type"))
        ]
        if len(pool) <= size:
            return pool
        return (rng or random).sample(pool, size)

"""Catalog backed by an Elasticsearch index.

Filters and the wide candidate predicate are pushed down as a ``bool`` query
(``filter`` clauses plus ``should`` wildcards with ``minimum_should_match``).
Scoring and sorting stay in Python via :meth:`ExecutionPlan.rank`, over at
most ``settings.max_candidates`` hits fetched in an order close to the final
one, with ``id`` as the last key so the capped subset is stable. Totals come
from ``es.count`` clamped to the same cap, so every reported page is
reachable.
"""
from __future__ import annotations

import asyncio
import logging
import random
from functools import lru_cache
from typing import Any, Dict, List, Optional, Sequence

from elasticsearch import Elasticsearch

from .catalog import SUGGESTION_FIELDS
from .config import settings
from .domain import CatalogItem, ScoredResult, SortMode
from .pipeline import (
    RAW_QUERY_FIELDS,
    RAW_QUERY_LIST_FIELDS,
    TERM_FIELDS,
    TERM_LIST_FIELDS,
    ExecutionPlan,
)
from .utils import escape_wildcard, fold

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_client() -> Elasticsearch:
    logger.info("Connecting to Elasticsearch at %s", settings.es_host)
    return Elasticsearch(settings.es_host)


def _wildcard(field_name: str, text: str) -> dict:
    return {
        "wildcard": {
            field_name: {
                "value": f"*{escape_wildcard(fold(text))}*",
                "case_insensitive": True,
            }
        }
    }


def _term(field_name: str, value: str) -> dict:
    return {"term": {field_name: {"value": fold(value), "case_insensitive": True}}}


def _contains_any(field_name: str, values: Sequence[str]) -> List[dict]:
    return [_wildcard(field_name, value) for value in values if value]


def build_filter_clauses(plan: ExecutionPlan) -> List[dict]:
    filters = plan.query.filters
    clauses: List[dict] = [{"term": {"is_active": True}}]
    if filters.category:
        clauses.append(_term("category", filters.category))
    if filters.craft_type:
        clauses.append(_term("craft_type", filters.craft_type))
    if filters.locality:
        clauses.append(_term("locality", filters.locality))
    if filters.min_price is not None or filters.max_price is not None:
        price: Dict[str, float] = {}
        if filters.min_price is not None:
            price["gte"] = filters.min_price
        if filters.max_price is not None:
            price["lte"] = filters.max_price
        clauses.append({"range": {"price": price}})
    return clauses


def build_candidate_clauses(plan: ExecutionPlan) -> List[dict]:
    should: List[dict] = []
    for field_name in RAW_QUERY_FIELDS + RAW_QUERY_LIST_FIELDS:
        should.append(_wildcard(field_name, plan.text))
    for term in sorted(plan.terms):
        for field_name in TERM_FIELDS + TERM_LIST_FIELDS:
            should.append(_wildcard(field_name, term))
    return should


SORT_FIELDS: Dict[SortMode, List[dict]] = {
    SortMode.RELEVANCE: [{"_score": "desc"}, {"average_rating": "desc"}],
    SortMode.PRICE_ASC: [{"price": "asc"}],
    SortMode.PRICE_DESC: [{"price": "desc"}],
    SortMode.RATING: [{"average_rating": "desc"}],
    SortMode.NEWEST: [{"created_at": {"order": "desc", "missing": "_last"}}],
    SortMode.POPULARITY: [{"view_count": "desc"}, {"total_reviews": "desc"}],
}


def build_sort(plan: ExecutionPlan) -> List[dict]:
    return SORT_FIELDS[plan.query.sort_by] + [{"id": "asc"}]


def build_plan_query(plan: ExecutionPlan) -> dict:
    query = {
        "bool": {
            "filter": build_filter_clauses(plan),
            "should": build_candidate_clauses(plan),
            "minimum_should_match": 1,
        }
    }
    logger.debug("ES candidate query=%s", query)
    return query


def _hits_to_items(response: Dict[str, Any]) -> List[CatalogItem]:
    items: List[CatalogItem] = []
    for hit in response.get("hits", {}).get("hits", []):
        source = dict(hit.get("_source", {}))
        source.setdefault("id", hit.get("_id"))
        items.append(CatalogItem.from_document(source))
    return items


class ElasticsearchCatalog:
    def __init__(self, es: Elasticsearch, index: str | None = None, max_candidates: int | None = None) -> None:
        self.es = es
        self.index = index or settings.es_index
        self.max_candidates = max_candidates or settings.max_candidates

    async def _search(self, query: dict, size: int, **extra: Any) -> List[CatalogItem]:
        response = await asyncio.to_thread(self.es.search, index=self.index, query=query, size=size, **extra)
        return _hits_to_items(response)

    async def candidates(self, plan: ExecutionPlan) -> List[CatalogItem]:
        items = await self._search(build_plan_query(plan), self.max_candidates, sort=build_sort(plan))
        if len(items) >= self.max_candidates:
            logger.warning("candidate cap of %s reached for q=%r", self.max_candidates, plan.text)
        return items

    async def query(self, plan: ExecutionPlan) -> List[ScoredResult]:
        return plan.rank(await self.candidates(plan))

    async def count(self, plan: ExecutionPlan) -> int:
        response = await asyncio.to_thread(self.es.count, index=self.index, query=build_plan_query(plan))
        total = int(response.get("count", 0))
        if total > self.max_candidates:
            logger.warning(
                "clamping total for q=%r from %s to candidate cap %s", plan.text, total, self.max_candidates
            )
            return self.max_candidates
        return total

    async def match(
        self, text: str, fields: Sequence[str], limit: Optional[int] = None
    ) -> List[CatalogItem]:
        unsupported = set(fields) - set(SUGGESTION_FIELDS)
        if unsupported:
            raise ValueError(f"Unsupported catalog fields {sorted(unsupported)}")
        query = {
            "bool": {
                "filter": [{"term": {"is_active": True}}],
                "should": [_wildcard(field_name, text) for field_name in fields],
                "minimum_should_match": 1,
            }
        }
        return await self._search(query, limit or self.max_candidates)

    async def active(self, min_rating: Optional[float] = None) -> List[CatalogItem]:
        clauses: List[dict] = [{"term": {"is_active": True}}]
        if min_rating is not None:
            clauses.append({"range": {"average_rating": {"gte": min_rating}}})
        return await self._search({"bool": {"filter": clauses}}, self.max_candidates)

    async def get_many(self, ids: Sequence[str]) -> List[CatalogItem]:
        if not ids:
            return []
        response = await asyncio.to_thread(self.es.mget, index=self.index, ids=list(ids))
        items: List[CatalogItem] = []
        for doc in response.get("docs", []):
            if not doc.get("found"):
                continue
            source = dict(doc.get("_source", {}))
            source.setdefault("id", doc.get("_id"))
            items.append(CatalogItem.from_document(source))
        return items

    async def sample(
        self,
        *,
        size: int,
        categories: Sequence[str] = (),
        craft_types: Sequence[str] = (),
        exclude_ids: Sequence[str] = (),
        rng: Optional[random.Random] = None,
    ) -> List[CatalogItem]:
        should = _contains_any("category", categories) + _contains_any("craft_type", craft_types)
        if not should:
            return []
        seed = (rng or random).randrange(2**31)
        query = {
            "function_score": {
                "query": {
                    "bool": {
                        "filter": [{"term": {"is_active": True}}],
                        "must_not": [{"ids": {"values": list(exclude_ids)}}],
                        "should": should,
                        "minimum_should_match": 1,
                    }
                },
                "random_score": {"seed": seed, "field": "_seq_no"},
                "boost_mode": "replace",
            }
        }
        return await self._search(query, size)

"""Two-stage retrieval plan: broad candidate selection, then score and sort.

The plan is backend-agnostic. Catalog implementations either evaluate it
directly (:class:`~craftsearch.catalog.InMemoryCatalog`) or push the filter and
candidate stages down to the store and call :meth:`ExecutionPlan.rank` on what
comes back (:class:`~craftsearch.es_catalog.ElasticsearchCatalog`).
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Sequence

from .domain import CatalogItem, ScoredResult, SearchQuery, SortMode
from .lexicon import Lexicon, load_lexicon
from .scoring import DEFAULT_WEIGHTS, ScoringWeights, score
from .utils import contains, fold, tokenize

logger = logging.getLogger(__name__)

# Fields tested for containment of the whole raw query.
RAW_QUERY_FIELDS = ("name", "description", "category", "artist_name", "craft_type")
RAW_QUERY_LIST_FIELDS = ("tags", "search_keywords")
# Fields tested for containment of each expanded term.
TERM_FIELDS = ("name",)
TERM_LIST_FIELDS = ("tags",)


def _same(value: str, expected: Optional[str]) -> bool:
    return expected is None or fold(value) == fold(expected)


@dataclass(frozen=True)
class ExecutionPlan:
    query: SearchQuery
    terms: frozenset[str]
    lexicon: Lexicon
    weights: ScoringWeights = DEFAULT_WEIGHTS

    @property
    def text(self) -> str:
        return self.query.text

    # -- stage (a): hard filters -------------------------------------------------

    def matches_filters(self, item: CatalogItem) -> bool:
        filters = self.query.filters
        if not item.is_active:
            return False
        if not _same(item.category, filters.category):
            return False
        if not _same(item.craft_type, filters.craft_type):
            return False
        if not _same(item.locality, filters.locality):
            return False
        if filters.min_price is not None and item.price < filters.min_price:
            return False
        if filters.max_price is not None and item.price > filters.max_price:
            return False
        return True

    # -- stage (b): wide OR candidate predicate ----------------------------------

    def is_candidate(self, item: CatalogItem) -> bool:
        text = self.text
        for field_name in RAW_QUERY_FIELDS:
            if contains(getattr(item, field_name), text):
                return True
        for field_name in RAW_QUERY_LIST_FIELDS:
            if any(contains(value, text) for value in getattr(item, field_name)):
                return True
        for term in self.terms:
            for field_name in TERM_FIELDS:
                if contains(getattr(item, field_name), term):
                    return True
            for field_name in TERM_LIST_FIELDS:
                if any(contains(value, term) for value in getattr(item, field_name)):
                    return True
        return False

    def selects(self, item: CatalogItem) -> bool:
        return self.matches_filters(item) and self.is_candidate(item)

    def candidate_set(self, items: Iterable[CatalogItem]) -> List[CatalogItem]:
        """Filters plus candidate selection, without sorting or pagination."""
        return [item for item in items if self.selects(item)]

    # -- stage (c): derived score ------------------------------------------------

    def score(self, item: CatalogItem) -> ScoredResult:
        value, match_type = score(item, self.terms, self.text, self.weights)
        return ScoredResult(item=item, score=value, match_type=match_type)

    # -- stage (d): sort policy --------------------------------------------------

    def sort_key(self, result: ScoredResult) -> tuple:
        item = result.item
        created = item.created_at.timestamp() if item.created_at else -math.inf
        mode = self.query.sort_by
        if mode is SortMode.PRICE_ASC:
            return (item.price, -result.score, item.id)
        if mode is SortMode.PRICE_DESC:
            return (-item.price, -result.score, item.id)
        if mode is SortMode.RATING:
            return (-item.average_rating, -result.score, item.id)
        if mode is SortMode.NEWEST:
            return (-created, -result.score, item.id)
        if mode is SortMode.POPULARITY:
            return (-item.view_count, -item.total_reviews, -result.score, item.id)
        return (-result.score, -item.average_rating, item.id)

    def sort(self, results: Iterable[ScoredResult]) -> List[ScoredResult]:
        return sorted(results, key=self.sort_key)

    # -- stage (e): pagination ---------------------------------------------------

    def paginate(self, results: Sequence[ScoredResult]) -> List[ScoredResult]:
        skip = self.query.skip
        return list(results[skip : skip + self.query.limit])

    def rank(self, candidates: Iterable[CatalogItem]) -> List[ScoredResult]:
        """Score, sort and paginate items that already passed stages (a) and (b)."""
        return self.paginate(self.sort(self.score(item) for item in candidates))

    def execute(self, items: Iterable[CatalogItem]) -> List[ScoredResult]:
        return self.rank(self.candidate_set(items))

    def total_pages(self, total: int) -> int:
        return total_pages(total, self.query.limit)

    # -- derived plans -----------------------------------------------------------

    def literal(self) -> "ExecutionPlan":
        """Same plan without dictionary expansion: only the words the user typed."""
        tokens = tokenize(self.text)
        return replace(self, terms=frozenset(tokens) | {fold(token) for token in tokens})

    def with_text(self, text: str) -> "ExecutionPlan":
        return build_plan(replace(self.query, text=text), lexicon=self.lexicon, weights=self.weights)


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit > 0 else 0


def build_plan(
    query: SearchQuery,
    lexicon: Optional[Lexicon] = None,
    weights: Optional[ScoringWeights] = None,
) -> ExecutionPlan:
    lexicon = lexicon or load_lexicon()
    terms = lexicon.expand(query.text)
    plan = ExecutionPlan(query=query, terms=terms, lexicon=lexicon, weights=weights or DEFAULT_WEIGHTS)
    logger.debug(
        "build_plan q=%r terms=%s filters=%s sort=%s page=%s limit=%s",
        query.text,
        sorted(terms),
        query.filters,
        query.sort_by.value,
        query.page,
        query.limit,
    )
    return plan

"""Type-bucketed autocomplete suggestions.

Two modes:

* **query mode** (two or more characters typed): products, categories, craft
  types, artists and tag keywords that contain the query, merged by a fixed
  type priority;
* **no-query mode**: trending products, products similar to what the user
  recently viewed, products matching their interests, their recent searches
  and finally popular categories as filler.

Each source runs on its own. A source that fails is logged and skipped, so a
broken personalization id never costs the user the rest of the list.
"""
from __future__ import annotations

import asyncio
import logging
import random
from collections import Counter
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from .catalog import Catalog
from .domain import CatalogItem, Personalization, SearchSuggestion, SuggestionType
from .fuzzy import DEFAULT_THRESHOLD, similarity
from .lexicon import Lexicon, load_lexicon
from .utils import capitalize_first, contains, fold

logger = logging.getLogger(__name__)

T = TypeVar("T")

MIN_QUERY_LENGTH = 2
DEFAULT_LIMIT = 10
MAX_LIMIT = 20

PRODUCT_CAP = 6
GROUP_CAP = 3
TRENDING_CAP = 4
SIMILAR_CAP = 3
INTEREST_CAP = 3
RECENT_SEARCH_CAP = 3
POPULAR_CATEGORY_CAP = 4
RECENT_VIEW_LOOKBACK = 3
TRENDING_MIN_RATING = 3.5

TYPE_PRIORITY: Dict[SuggestionType, int] = {
    SuggestionType.PRODUCT: 1,
    SuggestionType.TRENDING: 2,
    SuggestionType.PERSONALIZED: 3,
    SuggestionType.CATEGORY: 4,
    SuggestionType.CRAFT_TYPE: 5,
    SuggestionType.ARTIST: 6,
    SuggestionType.KEYWORD: 7,
}


def product_relevance(item: CatalogItem, query: str) -> float:
    name = fold(item.name)
    q = fold(query)
    relevance = 0.0
    if name.startswith(q):
        relevance += 100
    if q in name:
        relevance += 50
    if any(contains(tag, query) for tag in item.tags):
        relevance += 20
    relevance += item.average_rating * 5
    relevance += min(item.total_reviews, 100) * 0.2
    return relevance


def trend_score(item: CatalogItem) -> float:
    return item.average_rating * 10 + min(item.total_reviews, 50) * 2


def _top_groups(values: Iterable[str], cap: int) -> List[Tuple[str, int]]:
    counts = Counter(value for value in values if value)
    return sorted(counts.items(), key=lambda pair: (-pair[1], pair[0]))[:cap]


def dedupe_by_text(suggestions: Iterable[SearchSuggestion]) -> List[SearchSuggestion]:
    seen: set[str] = set()
    unique: List[SearchSuggestion] = []
    for suggestion in suggestions:
        key = suggestion.text.strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(suggestion)
    return unique


class SuggestionEngine:
    def __init__(
        self,
        catalog: Catalog,
        lexicon: Optional[Lexicon] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.catalog = catalog
        self.lexicon = lexicon or load_lexicon()
        self.rng = rng or random.Random()

    async def suggest(
        self,
        query: Optional[str],
        personalization: Optional[Personalization] = None,
        limit: int = DEFAULT_LIMIT,
    ) -> List[SearchSuggestion]:
        limit = min(max(int(limit or DEFAULT_LIMIT), 1), MAX_LIMIT)
        text = (query or "").strip()
        if len(text) < MIN_QUERY_LENGTH:
            collected = await self._personalized(personalization or Personalization())
        else:
            collected = await self._for_query(text)
        return dedupe_by_text(collected)[:limit]

    async def _guarded(self, source: str, factory: Callable[[], Awaitable[List[T]]]) -> List[T]:
        try:
            return await factory()
        except Exception as exc:
            logger.warning("suggestion source %s failed: %s", source, exc, exc_info=True)
            return []

    # -- query mode --------------------------------------------------------------

    async def _for_query(self, query: str) -> List[SearchSuggestion]:
        collected: List[SearchSuggestion] = []
        collected += await self._guarded("products", lambda: self._products(query))
        collected += await self._guarded("categories", lambda: self._categories(query))
        collected += await self._guarded("craft_types", lambda: self._craft_types(query))
        collected += await self._guarded("artists", lambda: self._artists(query))
        keywords = await self._guarded("keywords", lambda: self._keywords(query))
        taken = {suggestion.text.lower() for suggestion in collected}
        collected += [keyword for keyword in keywords if keyword.text.lower() not in taken]

        if not collected:
            collected = self._fuzzy_fallback(query)

        prefix = fold(query)

        def priority(suggestion: SearchSuggestion) -> int:
            if suggestion.type is SuggestionType.PRODUCT and fold(suggestion.text).startswith(prefix):
                return 0
            return TYPE_PRIORITY[suggestion.type]

        ordered = sorted(collected, key=priority)
        logger.debug("suggestions q=%r collected=%s", query, len(ordered))
        return ordered

    async def _products(self, query: str) -> List[SearchSuggestion]:
        items = await self.catalog.match(query, ("name", "tags", "description"))
        ranked = sorted(items, key=lambda item: (-product_relevance(item, query), item.name))
        prefix = fold(query)
        return [
            SearchSuggestion.for_item(
                SuggestionType.PRODUCT,
                item,
                reason="Best match" if fold(item.name).startswith(prefix) else "Related product",
            )
            for item in ranked[:PRODUCT_CAP]
        ]

    async def _categories(self, query: str) -> List[SearchSuggestion]:
        items = await self.catalog.match(query, ("category",))
        return [
            SearchSuggestion(type=SuggestionType.CATEGORY, text=capitalize_first(name), count=count)
            for name, count in _top_groups((item.category for item in items), GROUP_CAP)
        ]

    async def _craft_types(self, query: str) -> List[SearchSuggestion]:
        seen: Dict[str, CatalogItem] = {}
        for text in [query, *sorted(self.lexicon.expand(query))]:
            for item in await self.catalog.match(text, ("craft_type",)):
                seen.setdefault(item.id, item)
        return [
            SearchSuggestion(type=SuggestionType.CRAFT_TYPE, text=name, count=count)
            for name, count in _top_groups((item.craft_type for item in seen.values()), GROUP_CAP)
        ]

    async def _artists(self, query: str) -> List[SearchSuggestion]:
        items = await self.catalog.match(query, ("artist_name",))
        return [
            SearchSuggestion(type=SuggestionType.ARTIST, text=name, count=count)
            for name, count in _top_groups((item.artist_name for item in items), GROUP_CAP)
        ]

    async def _keywords(self, query: str) -> List[SearchSuggestion]:
        items = await self.catalog.match(query, ("tags",))
        tags = (tag for item in items for tag in item.tags if contains(tag, query))
        return [
            SearchSuggestion(type=SuggestionType.KEYWORD, text=tag, count=count)
            for tag, count in _top_groups(tags, GROUP_CAP)
        ]

    def _fuzzy_fallback(self, query: str) -> List[SearchSuggestion]:
        terms = [
            term
            for term in self.lexicon.canonical_terms()
            if similarity(query, term, DEFAULT_THRESHOLD)
        ]
        return [
            SearchSuggestion(type=SuggestionType.KEYWORD, text=term, reason="Did you mean")
            for term in terms[:GROUP_CAP]
        ]

    # -- no-query mode -----------------------------------------------------------

    async def _personalized(self, personalization: Personalization) -> List[SearchSuggestion]:
        collected: List[SearchSuggestion] = []
        collected += await self._guarded("trending", self._trending)

        similar = await self._guarded("recent_views", lambda: self._similar_to_viewed(personalization.recent_views))
        collected += self._new_products(similar, collected, "Based on your views")

        interesting = await self._guarded("interests", lambda: self._matching_interests(personalization.interests))
        collected += self._new_products(interesting, collected, "Matches your interests")

        collected += self._recent_searches(personalization.recent_searches)
        collected += await self._guarded("popular_categories", self._popular_categories)
        return collected

    def _new_products(
        self, items: Sequence[CatalogItem], collected: Sequence[SearchSuggestion], reason: str
    ) -> List[SearchSuggestion]:
        taken = {suggestion.product_id for suggestion in collected if suggestion.product_id}
        fresh: List[SearchSuggestion] = []
        for item in items:
            if item.id in taken:
                continue
            taken.add(item.id)
            fresh.append(SearchSuggestion.for_item(SuggestionType.PERSONALIZED, item, reason=reason))
        return fresh

    async def _trending(self) -> List[SearchSuggestion]:
        items = await self.catalog.active(min_rating=TRENDING_MIN_RATING)
        ranked = sorted(items, key=lambda item: (-trend_score(item), item.id))
        return [
            SearchSuggestion.for_item(SuggestionType.TRENDING, item, reason="Trending now")
            for item in ranked[:TRENDING_CAP]
        ]

    async def _similar_to_viewed(self, recent_views: Sequence[str]) -> List[CatalogItem]:
        viewed_ids = [view for view in recent_views[:RECENT_VIEW_LOOKBACK] if view]
        if not viewed_ids:
            return []
        viewed = await self.catalog.get_many(viewed_ids)
        categories = sorted({item.category for item in viewed if item.category})
        craft_types = sorted({item.craft_type for item in viewed if item.craft_type})
        if not categories and not craft_types:
            return []
        return await self.catalog.sample(
            size=SIMILAR_CAP,
            categories=categories,
            craft_types=craft_types,
            exclude_ids=viewed_ids,
            rng=self.rng,
        )

    async def _matching_interests(self, interests: Sequence[str]) -> List[CatalogItem]:
        wanted = [interest for interest in interests if interest]
        if not wanted:
            return []
        return await self.catalog.sample(
            size=INTEREST_CAP,
            categories=wanted,
            craft_types=wanted,
            rng=self.rng,
        )

    def _recent_searches(self, recent_searches: Sequence[str]) -> List[SearchSuggestion]:
        return [
            SearchSuggestion(type=SuggestionType.KEYWORD, text=term, reason="Recent search")
            for term in recent_searches[:RECENT_SEARCH_CAP]
            if term
        ]

    async def _popular_categories(self) -> List[SearchSuggestion]:
        items = await self.catalog.active()
        return [
            SearchSuggestion(
                type=SuggestionType.CATEGORY,
                text=capitalize_first(name),
                count=count,
                reason="Popular category",
            )
            for name, count in _top_groups((item.category for item in items), POPULAR_CATEGORY_CAP)
        ]


class LatestRequestGate:
    """Keeps one in-flight task per caller; a newer request cancels the older one.

    The superseded caller sees :class:`asyncio.CancelledError` and its result
    is dropped.
    """

    def __init__(self) -> None:
        self._tasks: Dict[str, asyncio.Task] = {}

    def in_flight(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    async def run(self, key: str, coro: Awaitable[T]) -> T:
        if self.in_flight(key):
            logger.debug("cancelling superseded request for %s", key)
            self._tasks[key].cancel()
        task = asyncio.ensure_future(coro)
        self._tasks[key] = task
        try:
            return await task
        finally:
            if self._tasks.get(key) is task:
                del self._tasks[key]

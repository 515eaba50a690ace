"""Search orchestration: plan, catalog round-trips, did-you-mean, envelope."""
from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Any, Awaitable, Dict, List, Optional, Tuple, TypeVar

from .cache import CacheBackend, get_cache
from .catalog import Catalog
from .config import settings
from .correction import SpellingCorrector
from .domain import Personalization, ScoredResult, SearchQuery
from .errors import UpstreamUnavailableError
from .facets import count_by_category
from .lexicon import Lexicon, load_lexicon
from .pipeline import ExecutionPlan, build_plan
from .scoring import ScoringWeights
from .suggestions import MIN_QUERY_LENGTH, LatestRequestGate, SuggestionEngine
from .utils import hash_query, highlight

logger = logging.getLogger(__name__)

T = TypeVar("T")

DESCRIPTION_PREVIEW_LENGTH = 150
SEARCH_SUGGESTION_LIMIT = 8
EXPANDED_TERMS_PREVIEW = 5


def serialize_result(result: ScoredResult, terms: frozenset[str]) -> Dict[str, Any]:
    item = result.item
    preview = item.description[:DESCRIPTION_PREVIEW_LENGTH] if item.description else ""
    return {
        "id": item.id,
        "name": item.name,
        "description": item.short_description or preview,
        "category": item.category,
        "price": item.price,
        "artistName": item.artist_name,
        "images": list(item.images),
        "thumbnailUrl": item.thumbnail,
        "averageRating": item.average_rating,
        "totalReviews": item.total_reviews,
        "craftType": item.craft_type or None,
        "barangay": item.locality or None,
        "stock": item.stock,
        "isAvailable": item.is_available,
        "relevanceScore": result.score,
        "matchType": result.match_type.value,
        "highlights": {
            "name": highlight(item.name, terms),
            "description": highlight(preview, terms) if preview else None,
        },
    }


class SearchService:
    def __init__(
        self,
        catalog: Catalog,
        lexicon: Optional[Lexicon] = None,
        cache: Optional[CacheBackend] = None,
        weights: Optional[ScoringWeights] = None,
        timeout: Optional[float] = None,
        suggestion_engine: Optional[SuggestionEngine] = None,
    ) -> None:
        self.catalog = catalog
        self.lexicon = lexicon or load_lexicon()
        self.cache = cache if cache is not None else get_cache()
        self.weights = weights
        self.timeout = timeout if timeout is not None else settings.catalog_timeout_seconds
        self.corrector = SpellingCorrector(self.lexicon)
        self.suggestions = suggestion_engine or SuggestionEngine(catalog, self.lexicon)
        self.gate = LatestRequestGate()

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, self.timeout)
        except asyncio.TimeoutError as exc:
            logger.exception("catalog %s timed out after %ss", operation, self.timeout)
            raise UpstreamUnavailableError() from exc
        except Exception as exc:
            logger.exception("catalog %s failed: %s", operation, exc)
            raise UpstreamUnavailableError() from exc

    async def _run(self, plan: ExecutionPlan) -> Tuple[List[ScoredResult], int]:
        results = await self._call("query", self.catalog.query(plan))
        total = await self._call("count", self.catalog.count(plan))
        return results, total

    async def _literal_miss(self, plan: ExecutionPlan, results: List[ScoredResult], total: int) -> bool:
        """True when none of the words the user actually typed matched a candidate.

        The returned page is checked first; the catalog is only asked again
        when no item on it matches the literal query.
        """
        if total == 0:
            return True
        literal = plan.literal()
        if any(literal.is_candidate(result.item) for result in results):
            return False
        literal_total = await self._call("count", self.catalog.count(literal))
        return literal_total == 0

    async def _suggestion_texts(self, text: str) -> List[str]:
        if len(text) < MIN_QUERY_LENGTH:
            return []
        suggestions = await self.suggestions.suggest(text, limit=SEARCH_SUGGESTION_LIMIT)
        return [suggestion.text for suggestion in suggestions]

    async def search(self, query: SearchQuery) -> Dict[str, Any]:
        cache_key = hash_query(query.cache_payload())
        cache_start = perf_counter()
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info(
                "timing: total=%.2fms cache_hit=1 q=%r",
                (perf_counter() - cache_start) * 1000,
                query.text,
            )
            return cached

        t0 = perf_counter()
        plan = build_plan(query, lexicon=self.lexicon, weights=self.weights)
        t1 = perf_counter()
        results, total = await self._run(plan)

        did_you_mean: Optional[str] = None
        if query.fuzzy and await self._literal_miss(plan, results, total):
            correction = self.corrector.suggest(query.text)
            if correction and correction != query.text.lower():
                did_you_mean = correction
                corrected_plan = plan.with_text(correction)
                corrected_results, corrected_total = await self._run(corrected_plan)
                # a correction never shrinks a non-empty result set
                if corrected_total >= total:
                    plan, results, total = corrected_plan, corrected_results, corrected_total
                else:
                    logger.info(
                        "keeping expanded results for q=%r: %s hits vs %s for %r",
                        query.text,
                        total,
                        corrected_total,
                        correction,
                    )
        t2 = perf_counter()

        suggestions = await self._suggestion_texts(query.text)
        t3 = perf_counter()

        payload: Dict[str, Any] = {
            "results": [serialize_result(result, plan.terms) for result in results],
            "suggestions": suggestions,
            "totalResults": total,
            "page": query.page,
            "totalPages": plan.total_pages(total),
            "searchTime": round((t3 - t0) * 1000, 2),
            "query": query.text,
            "didYouMean": did_you_mean,
            "categories": [{"name": name, "count": count} for name, count in count_by_category(results)],
        }
        logger.info(
            "timing: total=%.2fms expand=%.2fms catalog=%.2fms suggest=%.2fms q=%r hits=%s total=%s corrected=%r",
            (t3 - t0) * 1000,
            (t1 - t0) * 1000,
            (t2 - t1) * 1000,
            (t3 - t2) * 1000,
            query.text,
            len(results),
            total,
            did_you_mean,
        )
        self.cache.set(cache_key, payload, settings.cache_ttl_seconds)
        logger.debug("cache_store q=%r ttl=%s", query.text, settings.cache_ttl_seconds)
        return payload

    async def suggest(
        self,
        query: Optional[str],
        personalization: Optional[Personalization] = None,
        limit: int = 10,
        caller: Optional[str] = None,
    ) -> Dict[str, Any]:
        text = (query or "").strip()
        work = self.suggestions.suggest(text, personalization, limit)
        suggestions = await (self.gate.run(caller, work) if caller else work)
        payload: Dict[str, Any] = {
            "suggestions": [suggestion.to_dict() for suggestion in suggestions],
            "query": text if len(text) >= MIN_QUERY_LENGTH else "",
        }
        if len(text) >= MIN_QUERY_LENGTH:
            payload["expandedTerms"] = sorted(self.lexicon.expand(text))[:EXPANDED_TERMS_PREVIEW]
        else:
            payload["isPersonalized"] = True
        return payload

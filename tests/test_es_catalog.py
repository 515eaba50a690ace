"""Elasticsearch query building and response handling against a mocked client."""

import asyncio
import random
from unittest.mock import MagicMock

import pytest

from craftsearch.cache import NullCache
from craftsearch.domain import SearchFilters, SearchQuery, SortMode
from craftsearch.es_catalog import (
    ElasticsearchCatalog,
    build_candidate_clauses,
    build_filter_clauses,
    build_plan_query,
    build_sort,
)
from craftsearch.pipeline import build_plan
from craftsearch.search_service import SearchService
from craftsearch.utils import escape_wildcard


def hit(item):
    source = item.to_document()
    return {"_id": source.pop("id"), "_source": source}


def test_filter_clauses(lexicon):
    query = SearchQuery("basket", filters=SearchFilters(category="Home", min_price=100, max_price=500))
    clauses = build_filter_clauses(build_plan(query, lexicon=lexicon))
    assert clauses == [
        {"term": {"is_active": True}},
        {"term": {"category": {"value": "home", "case_insensitive": True}}},
        {"range": {"price": {"gte": 100, "lte": 500}}},
    ]


def test_candidate_clauses_cover_raw_query_and_terms(lexicon):
    plan = build_plan(SearchQuery("baskit"), lexicon=lexicon)
    should = build_candidate_clauses(plan)
    assert should[0] == {"wildcard": {"name": {"value": "*baskit*", "case_insensitive": True}}}
    assert len(should) == 7 + 2 * len(plan.terms)
    assert {"wildcard": {"tags": {"value": "*basket*", "case_insensitive": True}}} in should


def test_plan_query_requires_one_should_clause(lexicon):
    body = build_plan_query(build_plan(SearchQuery("clay"), lexicon=lexicon))
    assert body["bool"]["minimum_should_match"] == 1
    assert body["bool"]["filter"] == [{"term": {"is_active": True}}]


def test_wildcard_characters_are_escaped():
    assert escape_wildcard("a*b?c\\") == "a\\*b\\?c\\\\"


def test_query_ranks_hits_in_python(catalog_items, lexicon):
    es = MagicMock()
    es.search.return_value = {"hits": {"hits": [hit(catalog_items[3]), hit(catalog_items[0])]}}
    catalog = ElasticsearchCatalog(es, index="products-test", max_candidates=50)
    plan = build_plan(SearchQuery("basket"), lexicon=lexicon)

    results = asyncio.run(catalog.query(plan))

    assert [r.item.id for r in results] == ["p1", "p4"]
    kwargs = es.search.call_args.kwargs
    assert kwargs["index"] == "products-test"
    assert kwargs["size"] == 50
    assert kwargs["query"] == build_plan_query(plan)


def test_count_uses_count_api(lexicon):
    es = MagicMock()
    es.count.return_value = {"count": 7}
    catalog = ElasticsearchCatalog(es, index="products-test")
    assert asyncio.run(catalog.count(build_plan(SearchQuery("mat"), lexicon=lexicon))) == 7
    es.search.assert_not_called()


def test_get_many_skips_missing_documents(catalog_items):
    es = MagicMock()
    found = hit(catalog_items[1])
    es.mget.return_value = {"docs": [{**found, "found": True}, {"_id": "gone", "found": False}]}
    catalog = ElasticsearchCatalog(es, index="products-test")

    items = asyncio.run(catalog.get_many(["p2", "gone"]))

    assert [item.id for item in items] == ["p2"]
    es.mget.assert_called_once_with(index="products-test", ids=["p2", "gone"])
    assert asyncio.run(catalog.get_many([])) == []


def test_match_rejects_unknown_fields():
    catalog = ElasticsearchCatalog(MagicMock(), index="products-test")
    with pytest.raises(ValueError):
        asyncio.run(catalog.match("clay", ("price",)))


def test_sample_builds_random_score_query(catalog_items):
    es = MagicMock()
    es.search.return_value = {"hits": {"hits": [hit(catalog_items[3])]}}
    catalog = ElasticsearchCatalog(es, index="products-test")

    items = asyncio.run(
        catalog.sample(size=3, categories=["fashion"], exclude_ids=["p1"], rng=random.Random(3))
    )

    assert [item.id for item in items] == ["p4"]
    kwargs = es.search.call_args.kwargs
    assert kwargs["size"] == 3
    function_score = kwargs["query"]["function_score"]
    assert function_score["query"]["bool"]["must_not"] == [{"ids": {"values": ["p1"]}}]
    assert "seed" in function_score["random_score"]


def test_sample_without_targets_skips_the_round_trip():
    es = MagicMock()
    catalog = ElasticsearchCatalog(es, index="products-test")
    assert asyncio.run(catalog.sample(size=3)) == []
    es.search.assert_not_called()


def test_candidate_fetch_is_sorted_with_id_tiebreak(catalog_items, lexicon):
    es = MagicMock()
    es.search.return_value = {"hits": {"hits": []}}
    catalog = ElasticsearchCatalog(es, index="products-test")
    plan = build_plan(SearchQuery("clay", sort_by=SortMode.PRICE_ASC), lexicon=lexicon)

    asyncio.run(catalog.candidates(plan))

    assert es.search.call_args.kwargs["sort"] == [{"price": "asc"}, {"id": "asc"}]
    relevance = build_sort(build_plan(SearchQuery("clay"), lexicon=lexicon))
    assert relevance[0] == {"_score": "desc"}
    assert relevance[-1] == {"id": "asc"}


def test_count_is_clamped_to_candidate_cap(lexicon):
    es = MagicMock()
    es.count.return_value = {"count": 5000}
    catalog = ElasticsearchCatalog(es, index="products-test", max_candidates=200)
    assert asyncio.run(catalog.count(build_plan(SearchQuery("mat"), lexicon=lexicon))) == 200


def test_every_reported_page_is_reachable_past_the_cap(make_item, lexicon):
    bowls = [make_item(id="b1", name="Coconut Bowl"), make_item(id="b2", name="Narra Bowl")]
    es = MagicMock()
    es.search.return_value = {"hits": {"hits": [hit(item) for item in bowls]}}
    es.count.return_value = {"count": 3}
    catalog = ElasticsearchCatalog(es, index="products-test", max_candidates=2)
    service = SearchService(catalog, lexicon=lexicon, cache=NullCache())

    first = asyncio.run(service.search(SearchQuery("bowl", limit=1)))
    assert first["totalResults"] == 2
    assert first["totalPages"] == 2

    seen = []
    for page in range(1, first["totalPages"] + 1):
        payload = asyncio.run(service.search(SearchQuery("bowl", page=page, limit=1)))
        assert len(payload["results"]) == 1
        seen.extend(result["id"] for result in payload["results"])
    assert sorted(seen) == ["b1", "b2"]

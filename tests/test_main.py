"""HTTP surface: envelopes, status codes and parameter mapping."""

import json
from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from craftsearch import main
from craftsearch.cache import NullCache
from craftsearch.catalog import InMemoryCatalog
from craftsearch.search_service import SearchService


class BrokenCatalog(InMemoryCatalog):
    async def query(self, plan):
        raise ConnectionError("connection refused")


@pytest.fixture
def client(service):
    main.app.dependency_overrides[main.get_service] = lambda: service
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


class TestSearchEndpoint:
    def test_search_returns_envelope(self, client):
        response = client.get("/search", params={"q": "baskit"})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["didYouMean"] == "basket"
        assert body["data"]["results"][0]["id"] == "p1"

    def test_query_params_map_to_filters(self, client):
        response = client.get(
            "/search",
            params={"q": "woven", "category": "home", "maxPrice": 900, "barangay": "Poblacion", "sortBy": "price_desc"},
        )
        assert [r["id"] for r in response.json()["data"]["results"]] == ["p3"]

    def test_fuzzy_false_disables_correction(self, client):
        body = client.get("/search", params={"q": "baskit", "fuzzy": "false"}).json()
        assert body["data"]["didYouMean"] is None

    @pytest.mark.parametrize(
        "params",
        [
            {"q": ""},
            {"q": "   "},
            {"q": "basket", "sortBy": "cheapest"},
            {"q": "basket", "minPrice": 500, "maxPrice": 100},
        ],
    )
    def test_invalid_requests_are_400(self, client, params):
        response = client.get("/search", params=params)
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_empty_query_message(self, client):
        assert client.get("/search").json() == {"success": False, "message": "Search query is required"}

    def test_post_search_body(self, client):
        response = client.post(
            "/search",
            json={
                "query": "basket",
                "filters": {"category": "fashion"},
                "pagination": {"page": 1, "limit": 5},
                "sort": {"by": "price_asc"},
            },
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert [r["id"] for r in data["results"]] == ["p4"]
        assert data["categories"] == [{"name": "fashion", "count": 1}]


def test_upstream_failure_is_503(catalog_items, lexicon):
    broken = SearchService(BrokenCatalog(catalog_items), lexicon=lexicon, cache=NullCache())
    main.app.dependency_overrides[main.get_service] = lambda: broken
    try:
        response = TestClient(main.app).get("/search", params={"q": "basket"})
    finally:
        main.app.dependency_overrides.clear()
    assert response.status_code == 503
    assert response.json() == {"success": False, "message": "Search failed"}


class TestSuggestionsEndpoint:
    def test_query_mode(self, client):
        data = client.get("/search/suggestions", params={"q": "basket"}).json()["data"]
        assert data["query"] == "basket"
        assert "basket" in data["expandedTerms"]
        assert "isPersonalized" not in data
        assert data["suggestions"][1] == {"type": "craftType", "text": "Basketry", "count": 2}

    def test_no_query_mode_with_personalization(self, client):
        response = client.get(
            "/search/suggestions",
            params={"recentViews": "p1", "recentSearches": "banig,clay", "limit": 20},
            headers={"X-Client-Id": "tab-1"},
        )
        data = response.json()["data"]
        assert data["isPersonalized"] is True
        types = [s["type"] for s in data["suggestions"]]
        assert "trending" in types
        assert "personalized" in types
        assert [s["text"] for s in data["suggestions"] if s.get("reason") == "Recent search"] == ["banig", "clay"]


def test_health_reports_memory_backend(client):
    assert client.get("/health").json() == {"backend": "memory", "items": 6}


def test_reindex_reloads_catalog_file(client, service, monkeypatch, tmp_path):
    catalog_file = tmp_path / "products.json"
    catalog_file.write_text(
        json.dumps({"products": [{"id": "n1", "name": "Nito Tray", "price": 300, "craftType": "Basketry"}]}),
        encoding="utf-8",
    )
    monkeypatch.setattr(main, "settings", replace(main.settings, catalog_path=str(catalog_file)))

    assert client.post("/reindex").json() == {"indexed": 1}
    assert len(service.catalog) == 1

"""FastAPI application wiring the search service."""
from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.responses import JSONResponse

from .catalog import Catalog, InMemoryCatalog
from .config import settings
from .domain import Personalization, SearchFilters, SearchQuery
from .errors import InvalidQueryError, UpstreamUnavailableError
from .es_catalog import ElasticsearchCatalog, get_client
from .importer import load_items
from .indexing import ensure_index, reindex_data, seed_if_empty
from .models import Envelope, SearchRequest, SearchResponse, SuggestionsResponse
from .search_service import SearchService

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL = logging.getLevelName(settings.log_level.upper())

# uvicorn installs its own handlers; ``force=True`` replaces them so the
# timing lines from the search service use the same format.
logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, force=True)
for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "elastic_transport"):
    logging.getLogger(name).setLevel(LOG_LEVEL)

logger = logging.getLogger(__name__)
logger.info("Logging configured at %s", settings.log_level.upper())

app = FastAPI(title="Marketplace Product Search")


def _uses_elasticsearch() -> bool:
    return settings.catalog_backend.lower() == "elasticsearch"


@lru_cache(maxsize=1)
def get_catalog() -> Catalog:
    if _uses_elasticsearch():
        return ElasticsearchCatalog(get_client())
    return InMemoryCatalog.from_file(settings.catalog_path)


@lru_cache(maxsize=1)
def get_service() -> SearchService:
    return SearchService(get_catalog())


@app.on_event("startup")
async def startup_event() -> None:
    if not _uses_elasticsearch():
        return
    es = get_client()
    await ensure_index(es)
    if settings.load_on_startup:
        imported = await seed_if_empty(es)
        if imported:
            logger.info("Imported %s products on startup", imported)


@app.exception_handler(InvalidQueryError)
async def invalid_query_handler(request: Request, exc: InvalidQueryError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "message": str(exc)})


@app.exception_handler(UpstreamUnavailableError)
async def upstream_handler(request: Request, exc: UpstreamUnavailableError) -> JSONResponse:
    return JSONResponse(status_code=503, content={"success": False, "message": str(exc)})


@app.get("/health")
async def health(service: SearchService = Depends(get_service)) -> dict:
    catalog = service.catalog
    if isinstance(catalog, ElasticsearchCatalog):
        status = await asyncio.to_thread(catalog.es.cluster.health)
        return {"backend": "elasticsearch", "elasticsearch": status.get("status"), "index": catalog.index}
    return {"backend": "memory", "items": len(catalog)}


@app.get("/search", response_model=Envelope[SearchResponse])
async def search(
    q: str = Query("", description="Search query"),
    limit: int = settings.default_page_size,
    page: int = 1,
    category: Optional[str] = None,
    craftType: Optional[str] = None,
    minPrice: Optional[float] = None,
    maxPrice: Optional[float] = None,
    barangay: Optional[str] = None,
    sortBy: str = "relevance",
    fuzzy: str = "true",
    service: SearchService = Depends(get_service),
) -> dict:
    query = SearchQuery(
        text=q,
        page=page,
        limit=limit,
        filters=SearchFilters(
            category=category,
            craft_type=craftType,
            min_price=minPrice,
            max_price=maxPrice,
            locality=barangay,
        ),
        sort_by=sortBy,
        fuzzy=fuzzy.lower() != "false",
    )
    return {"success": True, "data": await service.search(query)}


@app.post("/search", response_model=Envelope[SearchResponse])
async def search_advanced(body: SearchRequest, service: SearchService = Depends(get_service)) -> dict:
    query = SearchQuery(
        text=body.query,
        page=body.pagination.page,
        limit=body.pagination.limit,
        filters=SearchFilters(
            category=body.filters.category,
            craft_type=body.filters.craftType,
            min_price=body.filters.minPrice,
            max_price=body.filters.maxPrice,
            locality=body.filters.barangay,
        ),
        sort_by=body.sort.by,
        fuzzy=body.filters.fuzzyMatch,
    )
    return {"success": True, "data": await service.search(query)}


@app.get(
    "/search/suggestions",
    response_model=Envelope[SuggestionsResponse],
    response_model_exclude_none=True,
)
async def suggestions(
    q: str = "",
    limit: int = 10,
    recentViews: Optional[str] = None,
    recentSearches: Optional[str] = None,
    interests: Optional[str] = None,
    x_client_id: Optional[str] = Header(None),
    service: SearchService = Depends(get_service),
) -> dict:
    personalization = Personalization.from_params(recentViews, recentSearches, interests)
    payload = await service.suggest(q, personalization, limit, caller=x_client_id)
    return {"success": True, "data": payload}


@app.post("/reindex")
async def reindex(service: SearchService = Depends(get_service)) -> dict:
    catalog = service.catalog
    if isinstance(catalog, ElasticsearchCatalog):
        count = await reindex_data(catalog.es)
    else:
        count = catalog.replace(load_items(Path(settings.catalog_path)))
    return {"indexed": count}

"""Catalog index lifecycle: create from the bundled mapping, seed, rebuild."""
from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Iterable, Optional

from elasticsearch import Elasticsearch
from elasticsearch.exceptions import BadRequestError, NotFoundError

from .config import settings
from .domain import CatalogItem
from .importer import import_products

logger = logging.getLogger(__name__)

# Fields the query builder in es_catalog relies on.
REQUIRED_FIELDS = ("name", "category", "craft_type", "locality", "tags", "price", "is_active")


def load_mapping(mapping_path: Optional[Path] = None) -> dict:
    path = mapping_path or Path(settings.mapping_path)
    with path.open("r", encoding="utf-8") as fh:
        body = json.load(fh)
    properties = body.get("mappings", {}).get("properties", {})
    missing = [name for name in REQUIRED_FIELDS if name not in properties]
    if missing:
        raise ValueError(f"Catalog mapping {path} lacks fields: {', '.join(missing)}")
    return body


async def ensure_index(es: Elasticsearch, index: Optional[str] = None) -> bool:
    """Create the catalog index if it is missing. Returns True when created."""
    index = index or settings.es_index
    if await asyncio.to_thread(es.indices.exists, index=index):
        return False
    body = load_mapping()
    logger.info("Creating catalog index %s from %s", index, settings.mapping_path)
    try:
        await asyncio.to_thread(es.indices.create, index=index, **body)
    except BadRequestError as exc:
        if getattr(exc, "error", "") == "resource_already_exists_exception":
            logger.info("Catalog index %s was created concurrently", index)
            return False
        logger.exception("Failed to create catalog index %s: %s", index, exc)
        raise
    return True


async def drop_index(es: Elasticsearch, index: Optional[str] = None) -> None:
    try:
        await asyncio.to_thread(es.indices.delete, index=index or settings.es_index)
    except NotFoundError:
        return


async def index_is_empty(es: Elasticsearch, index: Optional[str] = None) -> bool:
    try:
        stats = await asyncio.to_thread(es.count, index=index or settings.es_index)
    except NotFoundError:
        return True
    return stats.get("count", 0) == 0


async def seed_if_empty(es: Elasticsearch, items: Optional[Iterable[CatalogItem]] = None) -> int:
    if not await index_is_empty(es):
        return 0
    return await import_products(es, items)


async def reindex_data(es: Elasticsearch, items: Optional[Iterable[CatalogItem]] = None) -> int:
    await drop_index(es)
    await ensure_index(es)
    count = await import_products(es, items)
    logger.info("Rebuilt catalog index %s with %s items", settings.es_index, count)
    return count

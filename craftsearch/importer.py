"""Catalog seed loading and bulk import into Elasticsearch."""
from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Iterable, List

from elasticsearch import Elasticsearch, helpers

from .config import settings
from .domain import CatalogItem

logger = logging.getLogger(__name__)


def load_documents(path: Path) -> list[dict]:
    if not path.exists():
        logger.warning("Catalog file %s is missing", path)
        return []
    with path.open("r", encoding="utf-8") as fh:
        payload = json.load(fh)
    if isinstance(payload, dict):
        payload = payload.get("products", [])
    return list(payload)


def parse_items(documents: Iterable[dict]) -> List[CatalogItem]:
    items: List[CatalogItem] = []
    for document in documents:
        try:
            items.append(CatalogItem.from_document(document))
        except (TypeError, ValueError) as exc:
            logger.warning("Skipping catalog document %r: %s", document.get("id") or document.get("_id"), exc)
    return items


def load_items(path: Path) -> List[CatalogItem]:
    return parse_items(load_documents(path))


def _iter_actions(index: str, items: Iterable[CatalogItem]) -> Iterable[dict]:
    for item in items:
        yield {
            "_index": index,
            "_id": item.id,
            "_source": item.to_document(),
        }


async def import_products(es: Elasticsearch, items: Iterable[CatalogItem] | None = None) -> int:
    if items is None:
        items = load_items(Path(settings.catalog_path))
    actions = list(_iter_actions(settings.es_index, items))
    if not actions:
        return 0
    await asyncio.to_thread(helpers.bulk, es, actions, refresh=True)
    logger.info("Imported %s catalog items into %s", len(actions), settings.es_index)
    return len(actions)

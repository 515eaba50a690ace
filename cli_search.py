"""Terminal client that reuses the in-process search logic."""
from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from typing import Iterable

from craftsearch.cache import NullCache
from craftsearch.catalog import Catalog, InMemoryCatalog
from craftsearch.config import settings
from craftsearch.domain import SearchFilters, SearchQuery, SortMode
from craftsearch.errors import SearchError
from craftsearch.es_catalog import ElasticsearchCatalog, get_client
from craftsearch.search_service import SearchService

MAX_RESULTS = 100
GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
RESET = "\033[0m"


def build_service(catalog_path: Path | None) -> SearchService:
    catalog: Catalog
    if catalog_path is not None:
        catalog = InMemoryCatalog.from_file(catalog_path)
    elif settings.catalog_backend.lower() == "elasticsearch":
        catalog = ElasticsearchCatalog(get_client())
    else:
        catalog = InMemoryCatalog.from_file(settings.catalog_path)
    return SearchService(catalog, cache=NullCache())


async def perform_query(service: SearchService, query: str, args: argparse.Namespace) -> dict:
    request = SearchQuery(
        text=query,
        limit=args.limit,
        page=args.page,
        filters=SearchFilters(category=args.category, craft_type=args.craft_type),
        sort_by=args.sort,
        fuzzy=not args.no_fuzzy,
    )
    return await service.search(request)


def pretty_print_response(query: str, payload: dict) -> None:
    results = payload.get("results", [])
    eta = float(payload.get("searchTime", 0))
    color = GREEN if eta < 200 else RED
    eta_label = f"{color}{eta:.1f} ms{RESET}"
    print(
        f"Query: {query} | results: {len(results)}/{payload.get('totalResults', 0)} "
        f"| page {payload.get('page')}/{payload.get('totalPages')} | ETA: {eta_label}"
    )
    if payload.get("didYouMean"):
        print(f"  {YELLOW}Did you mean: {payload['didYouMean']}{RESET}")
    for idx, item in enumerate(results[:MAX_RESULTS], start=1):
        score = item.get("relevanceScore")
        score_repr = f"{score:.1f}" if isinstance(score, (int, float)) else "-"
        print(
            f"  {idx:02d}. score={score_repr} [{item.get('matchType')}] | {item.get('name')} | "
            f"{item.get('category')} | {item.get('price')}"
        )
    categories = ", ".join(f"{c['name']} ({c['count']})" for c in payload.get("categories", []))
    if categories:
        print(f"  categories: {categories}")


def run_one(service: SearchService, query: str, args: argparse.Namespace) -> None:
    try:
        response = asyncio.run(perform_query(service, query, args))
    except SearchError as exc:
        print(f"{RED}{exc}{RESET}")
        return
    pretty_print_response(query, response)


def interactive_shell(service: SearchService, args: argparse.Namespace) -> None:
    print("Interactive product search. Type 'exit' to quit.")
    while True:
        try:
            query = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return
        if not query:
            continue
        if query.lower() in {"exit", "quit"}:
            return
        run_one(service, query, args)


def batch_mode(service: SearchService, file_path: Path, args: argparse.Namespace) -> None:
    with file_path.open("r", encoding="utf-8") as fh:
        for line in fh:
            query = line.strip()
            if not query:
                continue
            run_one(service, query, args)


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="CLI client for the marketplace search core")
    parser.add_argument("query", nargs="?", help="Query string. If omitted, starts REPL mode.")
    parser.add_argument("--batch", type=Path, help="File with queries to execute line by line")
    parser.add_argument("--catalog", type=Path, help="JSON catalog file to search instead of the configured backend")
    parser.add_argument("--sort", default=SortMode.RELEVANCE.value, choices=[mode.value for mode in SortMode])
    parser.add_argument("--category")
    parser.add_argument("--craft-type")
    parser.add_argument("--limit", type=int, default=settings.default_page_size)
    parser.add_argument("--page", type=int, default=1)
    parser.add_argument("--no-fuzzy", action="store_true", help="Disable did-you-mean correction")
    args = parser.parse_args(list(argv) if argv is not None else None)

    service = build_service(args.catalog)
    if args.batch:
        batch_mode(service, args.batch, args)
        return 0
    if args.query:
        run_one(service, args.query, args)
        return 0
    interactive_shell(service, args)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

"""Application configuration and constants."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

PACKAGE_DATA_DIR = Path(__file__).resolve().parent / "data"


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


def _get_flag(name: str, default: str) -> bool:
    return _get_env(name, default).lower() in {"1", "true", "yes"}


@dataclass(frozen=True)
class Settings:
    """Simple settings container with environment variable overrides."""

    es_host: str = _get_env("ES_HOST", "http://localhost:9200")
    es_index: str = _get_env("ES_INDEX", "products")
    mapping_path: str = _get_env("MAPPING_PATH", str(PACKAGE_DATA_DIR / "catalog-mapping.json"))
    lexicon_path: str = _get_env("LEXICON_PATH", str(PACKAGE_DATA_DIR / "lexicon.json"))
    catalog_path: str = _get_env("CATALOG_PATH", "products.json")
    catalog_backend: str = _get_env("CATALOG_BACKEND", "memory")
    redis_host: str = _get_env("REDIS_HOST", "localhost")
    redis_port: int = int(_get_env("REDIS_PORT", "6379"))
    cache_enabled: bool = _get_flag("CACHE_ENABLED", "true")
    cache_ttl_seconds: int = int(_get_env("CACHE_TTL_SECONDS", "300"))
    load_on_startup: bool = _get_flag("LOAD_ON_STARTUP", "true")
    max_candidates: int = int(_get_env("MAX_CANDIDATES", "1000"))
    catalog_timeout_seconds: float = float(_get_env("CATALOG_TIMEOUT_SECONDS", "5"))
    default_page_size: int = int(_get_env("DEFAULT_PAGE_SIZE", "20"))
    max_page_size: int = int(_get_env("MAX_PAGE_SIZE", "100"))
    log_level: str = _get_env("LOG_LEVEL", "INFO")


settings = Settings()

"""Utility helpers for text normalization, highlighting and cache keys.

Matching across the search core is case-insensitive and accent-insensitive:
``fold`` lowercases and transliterates with ``unidecode`` so that a query for
``"pina"`` still hits ``"Piña Barong"``.
"""
from __future__ import annotations

import hashlib
import json
import re
from typing import Any, Iterable, Optional

from unidecode import unidecode

_WILDCARD_SPECIALS_RE = re.compile(r"([\\*?])")


def fold(text: Optional[str]) -> str:
    """Lowercase and strip accents; ``None`` becomes an empty string."""
    if not text:
        return ""
    return unidecode(text).lower()


def tokenize(text: Optional[str]) -> list[str]:
    """Lowercase and split on whitespace, dropping empty tokens."""
    return (text or "").lower().split()


def contains(haystack: Optional[str], needle: Optional[str]) -> bool:
    """Folded substring test that never matches on an empty side."""
    folded_needle = fold(needle)
    if not folded_needle:
        return False
    folded_haystack = fold(haystack)
    if not folded_haystack:
        return False
    return folded_needle in folded_haystack


def contains_either(a: Optional[str], b: Optional[str]) -> bool:
    return contains(a, b) or contains(b, a)


def capitalize_first(text: str) -> str:
    return text[:1].upper() + text[1:] if text else text


def escape_wildcard(value: str) -> str:
    """Escape characters that carry meaning in Elasticsearch wildcard patterns."""
    return _WILDCARD_SPECIALS_RE.sub(r"\\\1", value)


def highlight(text: Optional[str], terms: Iterable[str]) -> str:
    """Wrap case-insensitive occurrences of ``terms`` in ``<mark>`` tags."""
    if not text:
        return ""
    ordered = sorted({term for term in terms if term}, key=len, reverse=True)
    if not ordered:
        return text
    pattern = re.compile("|".join(re.escape(term) for term in ordered), re.IGNORECASE)
    return pattern.sub(lambda match: f"<mark>{match.group(0)}</mark>", text)


def hash_query(payload: Any) -> str:
    """Stable cache key for a JSON-serializable request payload."""
    encoded = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
    return "search:" + hashlib.sha1(encoded).hexdigest()

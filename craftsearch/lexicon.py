"""Spelling variants, category and craft-type synonyms, and query expansion.

The lexicon is static configuration: it is read once from JSON
(``data/lexicon.json`` or ``LEXICON_PATH``) into read-only mappings and then
shared by every request. Tests build smaller lexicons with
:meth:`Lexicon.from_mapping`.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Sequence, Tuple

from .config import settings
from .utils import fold, tokenize

logger = logging.getLogger(__name__)

SPELLING = "spelling_variants"
CATEGORY = "category_synonyms"
CRAFT_TYPE = "craft_type_synonyms"
BUCKETS = (SPELLING, CATEGORY, CRAFT_TYPE)

Bucket = Mapping[str, Tuple[str, ...]]


def _freeze_bucket(raw: Mapping[str, Sequence[str]] | None) -> Bucket:
    frozen: Dict[str, Tuple[str, ...]] = {}
    for canonical, variants in (raw or {}).items():
        key = canonical.strip().lower()
        if not key:
            continue
        frozen[key] = tuple(dict.fromkeys(v.strip().lower() for v in variants if v and v.strip()))
    return MappingProxyType(frozen)


@dataclass(frozen=True, eq=False)
class Lexicon:
    spelling_variants: Bucket
    category_synonyms: Bucket
    craft_type_synonyms: Bucket

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Mapping[str, Sequence[str]]]) -> "Lexicon":
        unknown = set(raw) - set(BUCKETS)
        if unknown:
            raise ValueError(f"Unknown lexicon sections: {sorted(unknown)}")
        return cls(
            spelling_variants=_freeze_bucket(raw.get(SPELLING)),
            category_synonyms=_freeze_bucket(raw.get(CATEGORY)),
            craft_type_synonyms=_freeze_bucket(raw.get(CRAFT_TYPE)),
        )

    @classmethod
    def from_file(cls, path: str | Path) -> "Lexicon":
        file_path = Path(path)
        with file_path.open("r", encoding="utf-8") as fh:
            raw = json.load(fh)
        lexicon = cls.from_mapping(raw)
        logger.info(
            "Loaded lexicon from %s: %s spelling, %s category, %s craft-type entries",
            file_path,
            len(lexicon.spelling_variants),
            len(lexicon.category_synonyms),
            len(lexicon.craft_type_synonyms),
        )
        return lexicon

    def buckets(self) -> Tuple[Bucket, ...]:
        return (self.spelling_variants, self.category_synonyms, self.craft_type_synonyms)

    def expand(self, query: str) -> frozenset[str]:
        """Return the raw tokens plus every dictionary group they belong to.

        A token pulls in a group when it equals the group's canonical term or
        one of its variants. Expansion is one level deep: added variants do
        not trigger further lookups.
        """
        tokens = tokenize(query)
        expanded: set[str] = set(tokens)
        for token in tokens:
            folded = fold(token)
            if folded != token:
                expanded.add(folded)
            for bucket in self.buckets():
                for canonical, variants in bucket.items():
                    if token == canonical or token in variants or folded == canonical or folded in variants:
                        expanded.add(canonical)
                        expanded.update(variants)
        return frozenset(expanded)

    def spelling_canonicals(self) -> Tuple[str, ...]:
        return tuple(self.spelling_variants)

    def canonical_for_variant(self, token: str) -> Optional[str]:
        """Canonical spelling term listing ``token`` as a variant, if any."""
        needle = token.lower()
        for canonical, variants in self.spelling_variants.items():
            if needle in variants:
                return canonical
        return None

    def canonical_terms(self) -> Tuple[str, ...]:
        """Every canonical term across buckets, first occurrence wins."""
        ordered: Dict[str, None] = {}
        for bucket in self.buckets():
            for canonical in bucket:
                ordered.setdefault(canonical, None)
        return tuple(ordered)


@lru_cache(maxsize=4)
def load_lexicon(path: Optional[str] = None) -> Lexicon:
    """Load (once per path) the process-wide lexicon."""
    return Lexicon.from_file(path or settings.lexicon_path)


def expand(query: str, lexicon: Optional[Lexicon] = None) -> frozenset[str]:
    return (lexicon or load_lexicon()).expand(query)

"""Additive relevance scoring for a single catalog item.

Every bonus and penalty lives in :class:`ScoringWeights`. The absolute numbers
only matter relative to each other: an exact title beats a prefix, a prefix
beats a substring, and an item that cannot be bought sinks below an
otherwise-identical one that can.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple

from .domain import CatalogItem, MatchType
from .utils import contains, contains_either, fold, tokenize


@dataclass(frozen=True)
class ScoringWeights:
    exact_name: float = 100.0
    name_prefix: float = 80.0
    name_substring: float = 60.0
    term_in_name: float = 15.0
    category: float = 30.0
    craft_type: float = 25.0
    artist: float = 20.0
    tag_query: float = 10.0
    tag_term: float = 5.0
    description_term: float = 3.0
    featured: float = 10.0
    top_rating: float = 8.0
    good_rating: float = 5.0
    in_stock: float = 5.0
    out_of_stock_penalty: float = 20.0
    top_rating_threshold: float = 4.5
    good_rating_threshold: float = 4.0


DEFAULT_WEIGHTS = ScoringWeights()


def score(
    item: CatalogItem,
    terms: Iterable[str],
    raw_query: str,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> Tuple[float, MatchType]:
    """Score ``item`` against the expanded ``terms`` of ``raw_query``.

    Returns the score (possibly negative) and a match type explaining the
    strongest textual hit:

    * ``exact``: the name equals or starts with the query;
    * ``partial``: the query or any expanded term occurs inside the name;
    * ``synonym``: no name hit, but a dictionary expansion (a term the user
      did not type) matched the category, craft type, tags or description;
    * ``fuzzy``: anything else that made it into the candidate set.
    """
    # "piña" and "pina" are the same term once folded
    terms = sorted({fold(term) for term in terms if term})
    q = fold(raw_query.strip())
    raw_tokens = {fold(token) for token in tokenize(raw_query)}
    synonym_terms = [term for term in terms if fold(term) not in raw_tokens]

    total = 0.0
    match_type = MatchType.FUZZY
    name = fold(item.name)

    if q and name == q:
        total += weights.exact_name
        match_type = MatchType.EXACT
    elif q and name.startswith(q):
        total += weights.name_prefix
        match_type = MatchType.EXACT
    elif q and q in name:
        total += weights.name_substring
        match_type = MatchType.PARTIAL

    for term in terms:
        if contains(name, term):
            total += weights.term_in_name
            if match_type is not MatchType.EXACT:
                match_type = MatchType.PARTIAL

    if contains_either(item.category, raw_query):
        total += weights.category
    if contains_either(item.craft_type, raw_query):
        total += weights.craft_type
    if contains(item.artist_name, raw_query):
        total += weights.artist

    for tag in item.tags:
        if contains_either(tag, raw_query):
            total += weights.tag_query
        for term in terms:
            if contains(tag, term):
                total += weights.tag_term

    for term in terms:
        if contains(item.description, term):
            total += weights.description_term

    if item.is_featured:
        total += weights.featured

    if item.average_rating >= weights.top_rating_threshold:
        total += weights.top_rating
    elif item.average_rating >= weights.good_rating_threshold:
        total += weights.good_rating

    if item.in_stock:
        total += weights.in_stock
    else:
        total -= weights.out_of_stock_penalty

    if match_type is MatchType.FUZZY and _matched_by_synonym(item, synonym_terms):
        match_type = MatchType.SYNONYM

    return total, match_type


def _matched_by_synonym(item: CatalogItem, synonym_terms: Iterable[str]) -> bool:
    for term in synonym_terms:
        if contains_either(item.category, term) or contains_either(item.craft_type, term):
            return True
        if any(contains(tag, term) for tag in item.tags):
            return True
        if contains(item.description, term):
            return True
    return False

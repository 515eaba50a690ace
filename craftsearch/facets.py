"""Category facet counts over an already-fetched result set."""
from __future__ import annotations

from collections import Counter
from typing import Iterable, List, Tuple, Union

from .domain import CatalogItem, ScoredResult

OTHER_CATEGORY = "other"


def count_by_category(results: Iterable[Union[CatalogItem, ScoredResult]]) -> List[Tuple[str, int]]:
    """Return ``(category, count)`` pairs, most frequent first, then by name."""
    counts: Counter[str] = Counter()
    for result in results:
        item = result.item if isinstance(result, ScoredResult) else result
        counts[item.category or OTHER_CATEGORY] += 1
    return sorted(counts.items(), key=lambda pair: (-pair[1], pair[0]))

"""Edit-distance similarity shared by spelling correction and suggestions."""
from __future__ import annotations

DEFAULT_THRESHOLD = 0.7
CORRECTION_THRESHOLD = 0.75


def levenshtein(a: str, b: str) -> int:
    """Classic insert/delete/substitute distance over a full DP table."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    len_a = len(a)
    len_b = len(b)
    dist = [[0] * (len_b + 1) for _ in range(len_a + 1)]
    for i in range(len_a + 1):
        dist[i][0] = i
    for j in range(len_b + 1):
        dist[0][j] = j
    for i in range(1, len_a + 1):
        for j in range(1, len_b + 1):
            cost = 0 if a[i - 1] == b[j - 1] else 1
            dist[i][j] = min(
                dist[i - 1][j] + 1,
                dist[i][j - 1] + 1,
                dist[i - 1][j - 1] + cost,
            )
    return dist[len_a][len_b]


def similarity_ratio(a: str, b: str) -> float:
    """``1 - distance / max(len)``; two empty strings are identical."""
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    return 1 - levenshtein(a, b) / max_len


def similarity(a: str, b: str, threshold: float = DEFAULT_THRESHOLD) -> bool:
    """Case-insensitive fuzzy equality.

    Identical strings and strings where one contains the other always match,
    whatever the threshold.
    """
    s1 = (a or "").lower()
    s2 = (b or "").lower()
    if s1 == s2:
        return True
    if s1 in s2 or s2 in s1:
        return True
    return similarity_ratio(s1, s2) >= threshold

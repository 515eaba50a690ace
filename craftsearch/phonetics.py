"""Phonetic keys for spelling correction.

Misspellings that survive the edit-distance check usually still *sound*
right (``"rataan"``, ``"embroydery"``). :func:`phonetic_codes` turns a token
into its double metaphone codes after transliterating with ``unidecode`` so
that accented Filipino spellings (``"piña"``) produce the same codes as their
plain ASCII forms.
"""
from __future__ import annotations

import logging
import re

from metaphone import doublemetaphone
from unidecode import unidecode

logger = logging.getLogger(__name__)

# After transliteration we keep only Latin letters/digits for metaphone.
_ASCII_ALNUM_RE = re.compile(r"[^0-9a-z]+")
# Collapse runs of the same letter ("baaasket" -> "basket").
_REPEATED_LETTER_RE = re.compile(r"([a-z])\1{2,}")


def normalize_token(token: str) -> str:
    lowered = unidecode(token or "").lower()
    collapsed = _REPEATED_LETTER_RE.sub(r"\1", lowered)
    return _ASCII_ALNUM_RE.sub("", collapsed)


def phonetic_codes(token: str) -> tuple[str, ...]:
    """Return the non-empty double metaphone codes of ``token``.

    Any encoder failure results in an empty tuple.
    """
    normalized = normalize_token(token)
    if not normalized:
        return ()
    try:
        primary, secondary = doublemetaphone(normalized)
    except Exception as exc:  # pragma: no cover
        logger.debug("phonetic conversion failed for %r: %s", token, exc)
        return ()
    codes = tuple(dict.fromkeys(code for code in (primary, secondary) if code))
    logger.debug("phonetic_codes token=%r normalized=%r codes=%s", token, normalized, codes)
    return codes


def sounds_alike(a: str, b: str, min_code_length: int = 3) -> bool:
    """True when the primary codes of both tokens agree and are long enough."""
    codes_a = phonetic_codes(a)
    codes_b = phonetic_codes(b)
    if not codes_a or not codes_b:
        return False
    primary = codes_a[0]
    return len(primary) >= min_code_length and primary == codes_b[0]

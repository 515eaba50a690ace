"""Did-you-mean suggestions for queries whose own words matched nothing."""
from __future__ import annotations

import logging
from typing import List, Optional

from .fuzzy import CORRECTION_THRESHOLD, similarity
from .lexicon import Lexicon, load_lexicon
from .phonetics import sounds_alike
from .utils import tokenize

logger = logging.getLogger(__name__)

MIN_FUZZY_TOKEN_LENGTH = 3
MIN_PHONETIC_TOKEN_LENGTH = 4


class SpellingCorrector:
    def __init__(self, lexicon: Optional[Lexicon] = None, threshold: float = CORRECTION_THRESHOLD) -> None:
        self.lexicon = lexicon or load_lexicon()
        self.threshold = threshold

    def correct_token(self, token: str) -> str:
        """Return the canonical spelling for ``token``, or ``token`` itself.

        Lookup order: known canonical term, listed variant, edit-distance
        match, phonetic match.
        """
        canonicals = self.lexicon.spelling_canonicals()
        if token in canonicals:
            return token
        canonical = self.lexicon.canonical_for_variant(token)
        if canonical:
            return canonical
        if len(token) >= MIN_FUZZY_TOKEN_LENGTH:
            for candidate in canonicals:
                if similarity(token, candidate, self.threshold):
                    return candidate
        if len(token) >= MIN_PHONETIC_TOKEN_LENGTH:
            for candidate in canonicals:
                if sounds_alike(token, candidate):
                    return candidate
        return token

    def suggest(self, query: str) -> Optional[str]:
        tokens = tokenize(query)
        corrected: List[str] = [self.correct_token(token) for token in tokens]
        if corrected == tokens:
            return None
        suggestion = " ".join(corrected)
        logger.info("spelling correction q=%r -> %r", query, suggestion)
        return suggestion


def suggest_correction(query: str, lexicon: Optional[Lexicon] = None) -> Optional[str]:
    return SpellingCorrector(lexicon).suggest(query)

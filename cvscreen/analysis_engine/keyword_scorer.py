import logging
import re
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Union

from cvscreen.config import MAX_SCORE, SCORE_PER_KEYWORD
from .vocabulary import Vocabulary, get_vocabulary

logger = logging.getLogger(__name__)

# Anything outside letters, digits and whitespace (c++, c#, ci/cd, node.js)
_SYMBOL_RE = re.compile(r"[^a-z0-9\s]")


@lru_cache(maxsize=1024)
def _boundary_pattern(term: str) -> "re.Pattern[str]":
    # ASCII word boundaries: "go" must not match inside "going"
    return re.compile(r"\b" + re.escape(term) + r"\b", re.ASCII)


def keyword_exists(text_lower: str, term: str) -> bool:
    """Check one lower-cased term against lower-cased text."""
    if _SYMBOL_RE.search(term):
        return term in text_lower
    return _boundary_pattern(term).search(text_lower) is not None


def score_for(matched_count: int) -> int:
    return min(MAX_SCORE, matched_count * SCORE_PER_KEYWORD)


class KeywordScorer:
    def __init__(self, vocabulary: Vocabulary):
        self.vocabulary = vocabulary

    def calculate_keyword_match(
        self, text: str, custom_keywords: Optional[Iterable[str]] = None
    ) -> Dict[str, Union[int, List[str]]]:
        """
        Scan the effective vocabulary against the text. Each term counts once;
        matched terms are returned in scan order.
        """
        terms = self.vocabulary.effective_terms(custom_keywords)
        if not text or not terms:
            return {"score": 0, "matched_keywords": []}

        lower_text = text.lower()
        matched = [term for term in terms if keyword_exists(lower_text, term)]

        return {"score": score_for(len(matched)), "matched_keywords": matched}


def calculate_keyword_match(text: str, custom_keywords: Optional[Iterable[str]] = None):
    scorer = KeywordScorer(get_vocabulary())
    return scorer.calculate_keyword_match(text, custom_keywords)

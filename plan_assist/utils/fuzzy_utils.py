"""Fuzzy keyword matching built on rapidfuzz."""

import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

from rapidfuzz import fuzz

_LOGGER = logging.getLogger(__name__)

_PUNCT_RE = re.compile(r"[^\w\s]")


def normalize_text(text: str) -> str:
    return " ".join(_PUNCT_RE.sub(" ", text.lower()).split())


def keyword_score(keyword: str, text: str) -> float:
    """Best partial-ratio score (0-100) of a keyword inside a text.

    Single words are compared token by token so short keywords do not match
    fragments of longer words ("hot" must not match "photo").
    """
    keyword = normalize_text(keyword)
    text = normalize_text(text)
    if not keyword or not text:
        return 0.0
    if " " in keyword:
        return fuzz.partial_ratio(keyword, text)
    return max((fuzz.ratio(keyword, token) for token in text.split()), default=0.0)


def best_keyword_match(
    text: str, table: Dict[str, Iterable[str]], threshold: int = 90
) -> Optional[Tuple[str, str, float]]:
    """Find the table key whose keywords match the text best.

    Returns (key, keyword, score) or None. Earlier keys win ties.
    """
    best: Optional[Tuple[str, str, float]] = None
    for key, keywords in table.items():
        for keyword in keywords:
            score = keyword_score(keyword, text)
            if score >= threshold and (best is None or score > best[2]):
                best = (key, keyword, score)

    if best:
        _LOGGER.debug(
            "[FuzzyUtils] '%s' matched '%s' via '%s' (score: %.0f)",
            text,
            best[0],
            best[1],
            best[2],
        )
    return best


def matching_keys(
    text: str, table: Dict[str, Iterable[str]], threshold: int = 90
) -> List[str]:
    return [
        key
        for key, keywords in table.items()
        if any(keyword_score(k, text) >= threshold for k in keywords)
    ]

"""Best-match scoring for site search results.

Pure transformation logic, no I/O. Every function is total: arbitrary
strings (including empty ones) never raise.

Uses **rapidfuzz** for Levenshtein similarity and **unidecode** for
Unicode folding.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterable, Sequence
from typing import TypeVar

import structlog
from rapidfuzz.distance import Levenshtein
from unidecode import unidecode as _unidecode

log = structlog.get_logger(__name__)

T = TypeVar("T")

EXACT_BONUS = 100.0
CONTAINMENT_BONUS = 20.0
LEVENSHTEIN_WEIGHT = 50.0
LENGTH_PENALTY_PER_CHAR = 0.5
LENGTH_PENALTY_MAX = 10.0
YEAR_BONUS = 15.0
YEAR_TOLERANCE = 1

_YEAR_RE = re.compile(r"\b((?:19|20)\d{2})\b")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

# MovieBox-style normalisation extras.
_LEADING_ARTICLE_RE = re.compile(r"^(the|a|an)\s+")
_TRAILING_SUFFIX_RE = re.compile(r"\s+(movie|film|show|series|part|chapter)\s+\d*$")


def normalize_title(text: str | None) -> str:
    """Lowercase, transliterate Unicode to ASCII, strip non-alphanumerics,
    collapse whitespace. ``&`` reads as ``and``."""
    if not text:
        return ""
    text = _unidecode(text).lower().replace("&", " and ")
    return " ".join(_NON_ALNUM_RE.sub(" ", text).split())


def extract_year(text: str | None) -> int | None:
    """Last 19xx/20xx token in *text*, or None."""
    if not text:
        return None
    matches = _YEAR_RE.findall(text)
    return int(matches[-1]) if matches else None


def strip_year(text: str) -> str:
    text = _YEAR_RE.sub("", text)
    return re.sub(r"\s*\(\s*\)\s*", " ", text).strip()


def score(candidate: str | None, query: str | None, year: int | None = None) -> float:
    """Score how well a search result title matches *query*.

    Components:

    - exact normalised match: +100 (dominant)
    - every query word present in the candidate: +20
    - Levenshtein similarity in [0, 1], weighted 50
    - length difference: -0.5 per char, capped at -10
    - *year* given and the candidate names a year: within +-1 gives +15,
      further away rejects the candidate (``-inf``); no candidate year is
      neutral.
    """
    candidate = candidate or ""
    candidate_year = extract_year(candidate)
    norm_c = normalize_title(strip_year(candidate))
    norm_q = normalize_title(strip_year(query or ""))

    if year is not None and candidate_year is not None:
        if abs(candidate_year - year) > YEAR_TOLERANCE:
            return -math.inf

    total = 0.0
    if norm_c == norm_q:
        total += EXACT_BONUS

    query_words = norm_q.split()
    candidate_words = set(norm_c.split())
    if query_words and all(word in candidate_words for word in query_words):
        total += CONTAINMENT_BONUS

    total += LEVENSHTEIN_WEIGHT * Levenshtein.normalized_similarity(norm_c, norm_q)
    total -= min(LENGTH_PENALTY_MAX, LENGTH_PENALTY_PER_CHAR * abs(len(norm_c) - len(norm_q)))

    if year is not None and candidate_year is not None:
        total += YEAR_BONUS
    return total


def best_match(
    candidates: Iterable[T],
    query: str,
    year: int | None = None,
    *,
    key: Callable[[T], str] | None = None,
    threshold: float = 30.0,
) -> T | None:
    """Highest-scoring candidate at or above *threshold*, first wins ties."""
    title_of = key or str
    best: T | None = None
    best_score = -math.inf
    scored = 0
    for candidate in candidates:
        s = score(title_of(candidate), query, year)
        scored += 1
        if s > best_score:
            best, best_score = candidate, s

    if best is None or best_score < threshold:
        log.debug("best_match_none", query=query, year=year, candidates=scored)
        return None
    log.debug(
        "best_match_selected",
        query=query,
        title=title_of(best),
        score=round(best_score, 2),
        candidates=scored,
    )
    return best


# -- MovieBox weighted similarity ------------------------------------------


def _moviebox_normalize(title: str | None) -> str:
    text = normalize_title(title)
    text = _LEADING_ARTICLE_RE.sub("", text)
    return _TRAILING_SUFFIX_RE.sub("", text).strip()


def _word_similarity(a: str, b: str) -> float:
    words_a = [w for w in a.split() if len(w) > 1]
    words_b = [w for w in b.split() if len(w) > 1]
    if not words_a or not words_b:
        return 0.0
    matches = 0.0
    for word in words_a:
        if word in words_b:
            matches += 1.0
        elif any(word in other or other in word for other in words_b):
            matches += 0.8
    return matches / max(len(words_a), len(words_b))


def _substring_similarity(a: str, b: str) -> float:
    longer, shorter = (a, b) if len(a) > len(b) else (b, a)
    if not longer:
        return 1.0
    return len(shorter) / len(longer) if shorter in longer else 0.0


def similarity(target: str | None, candidate: str | None) -> float:
    """0..1 similarity: 0.5 word overlap, 0.3 substring, 0.2 Levenshtein.

    Exact normalised matches short-circuit to 1.0.
    """
    a = _moviebox_normalize(target)
    b = _moviebox_normalize(candidate)
    if a == b:
        return 1.0
    return (
        0.5 * _word_similarity(a, b)
        + 0.3 * _substring_similarity(a, b)
        + 0.2 * Levenshtein.normalized_similarity(a, b)
    )


def rank_by_similarity(
    target: str, candidates: Sequence[T], *, key: Callable[[T], str]
) -> list[tuple[float, T]]:
    """Candidates with their :func:`similarity`, best first (stable)."""
    ranked = [(similarity(target, key(c)), c) for c in candidates]
    ranked.sort(key=lambda pair: pair[0], reverse=True)
    return ranked

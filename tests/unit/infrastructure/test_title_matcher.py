"""Tests for search result scoring and best-match selection."""

from __future__ import annotations

import math

from resolvarr.infrastructure.matching.title_matcher import (
    best_match,
    extract_year,
    normalize_title,
    rank_by_similarity,
    score,
    similarity,
)


class TestNormalizeTitle:
    def test_unicode_and_ampersand(self) -> None:
        assert normalize_title("Amélie & Co.") == "amelie and co"

    def test_collapses_punctuation(self) -> None:
        assert normalize_title("  Spider-Man:   No Way Home ") == "spider man no way home"

    def test_empty(self) -> None:
        assert normalize_title(None) == ""
        assert normalize_title("") == ""


class TestExtractYear:
    def test_last_year_wins(self) -> None:
        assert extract_year("Blade Runner 2049 (2017)") == 2017

    def test_no_year(self) -> None:
        assert extract_year("Inception") is None


class TestScore:
    def test_exact_beats_partial(self) -> None:
        assert score("Inception", "Inception") > score("Inception 2", "Inception")

    def test_case_invariant(self) -> None:
        assert score("INCEPTION", "inception") == score("Inception", "Inception")

    def test_year_bonus(self) -> None:
        assert score("Inception (2010)", "Inception", 2010) > score("Inception", "Inception", 2010)

    def test_year_within_tolerance(self) -> None:
        assert score("Inception (2011)", "Inception", 2010) != -math.inf

    def test_far_year_rejects(self) -> None:
        assert score("Inception (1999)", "Inception", 2010) == -math.inf

    def test_never_raises_on_empty(self) -> None:
        assert isinstance(score("", ""), float)
        assert isinstance(score(None, None), float)


class TestBestMatch:
    def test_picks_exact_title_with_year(self) -> None:
        candidates = ["Inception (2010)", "Inception 2", "The Inception Diaries"]
        assert best_match(candidates, "Inception", 2010) == "Inception (2010)"

    def test_key_function(self) -> None:
        hits = [{"t": "Dune Part Two"}, {"t": "Dune"}]
        assert best_match(hits, "Dune", key=lambda h: h["t"]) == {"t": "Dune"}

    def test_below_threshold_is_none(self) -> None:
        assert best_match(["Completely Different"], "Inception") is None

    def test_all_rejected_by_year(self) -> None:
        assert best_match(["Inception (1990)"], "Inception", 2010) is None

    def test_empty_candidates(self) -> None:
        assert best_match([], "Inception") is None

    def test_first_wins_tie(self) -> None:
        first, second = ("Inception", 1), ("Inception", 2)
        assert best_match([first, second], "Inception", key=lambda c: c[0]) is first


class TestSimilarity:
    def test_article_ignored(self) -> None:
        assert similarity("The Matrix", "Matrix") == 1.0

    def test_unrelated_is_low(self) -> None:
        assert similarity("The Matrix", "Finding Nemo") < 0.5

    def test_rank_order(self) -> None:
        ranked = rank_by_similarity(
            "Pushpa 2", ["Random Show", "Pushpa 2 The Rule", "Pushpa 2"], key=lambda s: s
        )
        assert ranked[0] == (1.0, "Pushpa 2")
        assert ranked[-1][1] == "Random Show"

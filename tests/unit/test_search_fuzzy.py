"""Unit tests for fuzzy scoring."""

import pytest

from portfolio_cms.search.fuzzy import (
    NO_MATCH,
    get_max_edit_distance,
    levenshtein_distance,
    term_score,
    text_score,
)


@pytest.mark.unit
class TestLevenshtein:
    @pytest.mark.parametrize(
        ("left", "right", "expected"),
        [("kitten", "sitting", 3), ("", "abc", 3), ("abc", "abc", 0), ("flaw", "lawn", 2)],
    )
    def test_distance(self, left, right, expected):
        assert levenshtein_distance(left, right) == expected

    def test_bails_out_past_max_distance(self):
        assert levenshtein_distance("short", "considerably longer", max_distance=2) == 3


@pytest.mark.unit
class TestScores:
    def test_edit_budget_grows_with_length(self):
        assert get_max_edit_distance(2) == 0
        assert get_max_edit_distance(4) == 1
        assert get_max_edit_distance(8) == 2

    def test_prefix_is_perfect(self):
        assert term_score("ba", "bar") == 0.0
        assert term_score("bar", "bar") == 0.0

    def test_short_tokens_need_prefix(self):
        assert term_score("bz", "bar") == NO_MATCH

    def test_typo_is_normalised_by_length(self):
        assert term_score("bard", "bird") == pytest.approx(0.25)
        assert term_score("pyhton", "python") == pytest.approx(2 / 6)

    def test_typo_in_prefix(self):
        assert term_score("bsr", "barista") == pytest.approx(1 / 3)

    def test_text_score_is_order_insensitive(self):
        assert text_score(["baz", "bar"], ["bar", "baz"]) == 0.0

    def test_text_score_averages_query_tokens(self):
        assert text_score(["bar", "zzz"], ["bar"]) == pytest.approx(0.5)

    def test_empty_inputs(self):
        assert text_score([], ["bar"]) == NO_MATCH
        assert text_score(["bar"], []) == NO_MATCH

"""Fuzzy scoring for typo-tolerant, prefix-friendly search.

Scores run from 0.0 (perfect) to 1.0 (no match), so a row is kept when its
score is at or below the configured threshold.

Smart defaults:
- A query token that prefixes a text token scores 0 ("ba" vs "bar")
- 1-2 char tokens must match exactly or as a prefix
- 3-5 char tokens tolerate 1 edit, 6+ char tokens tolerate 2
"""

from __future__ import annotations

from collections.abc import Sequence


NO_MATCH = 1.0


def levenshtein_distance(s1: str, s2: str, max_distance: int | None = None) -> int:
    """Calculate the Levenshtein (edit) distance between two strings.

    Uses two rolling rows and bails out once every cell of a row exceeds
    ``max_distance``, returning ``max_distance + 1`` in that case.

    Examples:
        >>> levenshtein_distance("kitten", "sitting")
        3
        >>> levenshtein_distance("", "abc")
        3
    """
    if not s1:
        return len(s2)
    if not s2:
        return len(s1)

    if len(s1) > len(s2):
        s1, s2 = s2, s1

    m, n = len(s1), len(s2)

    if max_distance is not None and n - m > max_distance:
        return max_distance + 1

    prev_row = list(range(m + 1))
    curr_row = [0] * (m + 1)

    for j in range(1, n + 1):
        curr_row[0] = j
        row_min = j
        for i in range(1, m + 1):
            cost = 0 if s1[i - 1] == s2[j - 1] else 1
            curr_row[i] = min(
                prev_row[i] + 1,
                curr_row[i - 1] + 1,
                prev_row[i - 1] + cost,
            )
            row_min = min(row_min, curr_row[i])

        if max_distance is not None and row_min > max_distance:
            return max_distance + 1

        prev_row, curr_row = curr_row, prev_row

    return prev_row[m]


def get_max_edit_distance(term_length: int) -> int:
    """Maximum edits tolerated for a query token of ``term_length`` characters."""
    if term_length <= 2:
        return 0
    if term_length <= 5:
        return 1
    return 2


def term_score(query_term: str, candidate: str) -> float:
    """Score one query token against one text token (both already lower-cased)."""
    if not query_term or not candidate:
        return NO_MATCH
    if candidate.startswith(query_term):
        return 0.0

    max_distance = get_max_edit_distance(len(query_term))
    if max_distance == 0:
        return NO_MATCH

    # A typo in a prefix ("bsr" for "barista") is compared against the same-length prefix.
    distance = min(
        levenshtein_distance(query_term, candidate, max_distance),
        levenshtein_distance(query_term, candidate[: len(query_term)], max_distance),
    )
    if distance > max_distance:
        return NO_MATCH
    return distance / len(query_term)


def text_score(query_tokens: Sequence[str], text_tokens: Sequence[str]) -> float:
    """Mean over query tokens of their best match anywhere in the text.

    Token order is irrelevant, so "baz bar" matches "bar baz" perfectly.
    """
    if not query_tokens or not text_tokens:
        return NO_MATCH
    vocabulary = set(text_tokens)
    total = 0.0
    for query_term in query_tokens:
        best = NO_MATCH
        for candidate in vocabulary:
            score = term_score(query_term, candidate)
            if score < best:
                best = score
                if best == 0.0:
                    break
        total += best
    return total / len(query_tokens)

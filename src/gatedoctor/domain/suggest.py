"""Fuzzy model-id suggestions for typo'd model names."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Final

PREFIX_BONUS: Final = 10
SUBSTRING_BONUS: Final = 6
DEFAULT_SUGGESTION_LIMIT: Final = 5


def levenshtein_distance(a: str, b: str) -> int:
    """Minimum number of single-character edits turning ``b`` into ``a``."""

    if a == b:
        return 0
    if len(a) < len(b):
        return levenshtein_distance(b, a)
    if not b:
        return len(a)

    previous_row = list(range(len(b) + 1))
    for i, char_a in enumerate(a):
        current_row = [i + 1]
        for j, char_b in enumerate(b):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (char_a != char_b)
            current_row.append(min(insertions, deletions, substitutions))
        previous_row = current_row
    return previous_row[-1]


def score_candidate(query: str, candidate: str) -> int:
    """Edit distance minus a prefix/substring bonus, clamped at zero.

    Both arguments are expected to be lower-cased already.
    """

    score = levenshtein_distance(query, candidate)
    if candidate.startswith(query):
        score -= PREFIX_BONUS
    elif query in candidate:
        score -= SUBSTRING_BONUS
    return max(0, score)


def max_accepted_score(query: str) -> int:
    return max(4, int(len(query) * 0.6) + 2)


def suggest_models(
    query: str,
    candidates: Iterable[str],
    limit: int = DEFAULT_SUGGESTION_LIMIT,
) -> list[str]:
    """Rank ``candidates`` against ``query``, best first, at most ``limit``."""

    normalized_query = query.strip().lower()
    if not normalized_query or limit <= 0:
        return []

    scored = sorted(
        (
            (score_candidate(normalized_query, candidate.lower()), candidate.lower(), candidate)
            for candidate in candidates
        ),
    )
    threshold = max_accepted_score(normalized_query)
    return [candidate for score, _, candidate in scored if score <= threshold][:limit]


__all__ = [
    "DEFAULT_SUGGESTION_LIMIT",
    "levenshtein_distance",
    "max_accepted_score",
    "score_candidate",
    "suggest_models",
]

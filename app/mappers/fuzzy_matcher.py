"""
app/mappers/fuzzy_matcher.py

Levenshtein-based similarity for reconciling free-text CSV values with
canonical reference names.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

DEFAULT_MIN_SCORE = 0.5


@dataclass(frozen=True)
class FuzzyMatch:
    value: str
    score: float


def normalize_for_match(text: str | None) -> str:
    return (text or "").strip().lower()


def levenshtein_distance(left: str, right: str) -> int:
    """
    Edit distance counting single-character inserts, deletes and substitutions.
    """

    if len(left) < len(right):
        left, right = right, left
    if not right:
        return len(left)

    previous_row = list(range(len(right) + 1))
    for i, left_char in enumerate(left):
        current_row = [i + 1]
        for j, right_char in enumerate(right):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (left_char != right_char)
            current_row.append(min(insertions, deletions, substitutions))
        previous_row = current_row
    return previous_row[-1]


def similarity(left: str | None, right: str | None) -> float:
    """
    Return ``(max_len - distance) / max_len`` on case-folded, trimmed text.
    """

    a = normalize_for_match(left)
    b = normalize_for_match(right)
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - levenshtein_distance(a, b)) / longest


def find_best_match(
    value: str | None,
    candidates: Iterable[str],
    *,
    min_score: float = DEFAULT_MIN_SCORE,
) -> FuzzyMatch | None:
    """
    Return the highest-scoring candidate when its score exceeds ``min_score``.

    Equal scores keep the candidate seen first, so callers that need a stable
    answer must pass candidates in a stable order.
    """

    best: FuzzyMatch | None = None
    for candidate in candidates:
        score = similarity(value, candidate)
        if best is None or score > best.score:
            best = FuzzyMatch(value=candidate, score=score)
            if score == 1.0:
                break

    if best is None or best.score <= min_score:
        return None
    return best

"""
Text similarity helpers for representative-article selection and
live-search deduplication.

Similarity is the Dice coefficient over character bigrams with whitespace
removed: ``2 * |common bigrams| / (|bigrams(a)| + |bigrams(b)|)`` counting
bigram multiplicity.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Callable, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_DUPLICATE_THRESHOLD = 0.7


def _bigrams(text: str) -> Counter[str]:
    return Counter(text[i : i + 2] for i in range(len(text) - 1))


def compare_two_strings(first: str, second: str) -> float:
    """Return the Dice bigram similarity of two strings in [0, 1]."""
    a = "".join(first.split())
    b = "".join(second.split())
    if a == b:
        return 1.0
    if len(a) < 2 or len(b) < 2:
        return 0.0
    bigrams_a = _bigrams(a)
    bigrams_b = _bigrams(b)
    intersection = sum((bigrams_a & bigrams_b).values())
    return (2.0 * intersection) / (len(a) + len(b) - 2)


def mean_similarities(texts: Sequence[str]) -> list[float]:
    """Mean similarity of each text to every other text. A single text scores 0."""
    n = len(texts)
    if n < 2:
        return [0.0] * n
    totals = [0.0] * n
    for i in range(n):
        for j in range(i + 1, n):
            score = compare_two_strings(texts[i], texts[j])
            totals[i] += score
            totals[j] += score
    return [total / (n - 1) for total in totals]


def most_representative_index(texts: Sequence[str]) -> int | None:
    """Index of the text with the highest mean similarity; first occurrence wins ties."""
    if not texts:
        return None
    scores = mean_similarities(texts)
    best = 0
    for i, score in enumerate(scores):
        if score > scores[best]:
            best = i
    return best


def dedupe_by_title(
    items: Sequence[T],
    title_of: Callable[[T], str],
    threshold: float = DEFAULT_DUPLICATE_THRESHOLD,
) -> list[T]:
    """Drop items whose lowercased title is more than ``threshold`` similar to an earlier kept one."""
    kept: list[T] = []
    kept_titles: list[str] = []
    for item in items:
        title = title_of(item).lower()
        if any(compare_two_strings(title, seen) > threshold for seen in kept_titles):
            continue
        kept.append(item)
        kept_titles.append(title)
    if len(kept) != len(items):
        logger.debug("Title dedup removed %d/%d items", len(items) - len(kept), len(items))
    return kept

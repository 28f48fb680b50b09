"""
Bigram (Dice coefficient) text similarity.

Scores are in [0, 1]. Every function here is pure.
"""

from __future__ import annotations

from collections import Counter

from chatfilter.engine.normalizer import clean_for_similarity, remove_emotes

DEFAULT_THRESHOLD = 0.85
DEFAULT_MIN_LENGTH = 6


def bigrams(text: str) -> list[str]:
    """
    Adjacent two-character windows of the cleaned text.

    Texts shorter than two characters after cleaning have no bigrams.
    """
    cleaned = clean_for_similarity(text)
    if len(cleaned) < 2:
        return []
    return [cleaned[i:i + 2] for i in range(len(cleaned) - 1)]


def dice_coefficient(a: str, b: str) -> float:
    """
    Dice coefficient over bigram multisets.

    ``2 * sum(min(count_a, count_b)) / (len(bigrams_a) + len(bigrams_b))``
    """
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    grams_a = bigrams(a)
    grams_b = bigrams(b)
    if not grams_a or not grams_b:
        return 0.0
    intersection = sum((Counter(grams_a) & Counter(grams_b)).values())
    return (2 * intersection) / (len(grams_a) + len(grams_b))


def similarity(a: str, b: str) -> float:
    """Similarity of two already-cleaned strings."""
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    return dice_coefficient(a, b)


def similarity_score(a: str, b: str) -> float:
    """Similarity of two raw strings, ignoring emoji."""
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    return similarity(remove_emotes(a), remove_emotes(b))


def are_similar(
    a: str,
    b: str,
    min_length: int = DEFAULT_MIN_LENGTH,
    threshold: float = DEFAULT_THRESHOLD,
) -> bool:
    """
    Decide whether two raw strings are near-duplicates.

    Strings shorter than ``min_length`` are never similar to anything but
    themselves, since short chat fragments match each other too easily.
    """
    if not a or not b:
        return False
    if a == b:
        return True
    if min(len(a), len(b)) < min_length:
        return False
    return similarity_score(a, b) >= threshold

from __future__ import annotations

from rapidfuzz.distance import Levenshtein


def _prepare(value: str) -> str:
    return value.strip().casefold()


def distance(a: str, b: str) -> int:
    """Levenshtein distance between two strings, ignoring case and outer whitespace."""
    return Levenshtein.distance(_prepare(a), _prepare(b))


def similarity_ratio(a: str, b: str) -> float:
    """Edit distance relative to the longer prepared string; 0.0 means identical."""
    return Levenshtein.normalized_distance(_prepare(a), _prepare(b))

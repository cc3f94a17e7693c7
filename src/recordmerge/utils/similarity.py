"""Edit-distance and token-overlap primitives used by the field matchers."""

from __future__ import annotations

from collections import Counter
from functools import lru_cache
from typing import Sequence

import jellyfish

from .logging import get_logger


_LOGGER = get_logger(module=__name__)

# Pairwise distances repeat heavily inside a chunk (same names compared against many rows).
_DISTANCE_CACHE_SIZE = 8192
# Long free-text values are not worth caching and would pin memory.
_MAX_CACHED_LENGTH = 200


def _ordered_pair(text1: str, text2: str) -> tuple[str, str]:
    """Return a deterministic ordering of two strings for cache keys."""

    return (text1, text2) if text1 <= text2 else (text2, text1)


@lru_cache(maxsize=_DISTANCE_CACHE_SIZE)
def _levenshtein_cached(text1: str, text2: str) -> int:
    return jellyfish.levenshtein_distance(text1, text2)


def edit_distance(text1: str, text2: str) -> int:
    """Return the Levenshtein distance with unit insert/delete/substitute costs."""

    text1 = text1 or ""
    text2 = text2 or ""
    if text1 == text2:
        return 0
    if not text1:
        return len(text2)
    if not text2:
        return len(text1)
    ordered_1, ordered_2 = _ordered_pair(text1, text2)
    if len(ordered_1) > _MAX_CACHED_LENGTH or len(ordered_2) > _MAX_CACHED_LENGTH:
        return jellyfish.levenshtein_distance(ordered_1, ordered_2)
    return _levenshtein_cached(ordered_1, ordered_2)


def similarity_ratio(text1: str, text2: str) -> float:
    """Return ``100 * (1 - distance / max_len)`` clamped to ``[0, 100]``.

    Two empty strings are considered identical and score 100.
    """

    text1 = text1 or ""
    text2 = text2 or ""
    longest = max(len(text1), len(text2))
    if longest == 0:
        return 100.0
    distance = edit_distance(text1, text2)
    score = 100.0 * (1.0 - distance / longest)
    return max(0.0, min(100.0, score))


def common_token_count(tokens1: Sequence[str], tokens2: Sequence[str]) -> int:
    """Count tokens shared by both sequences, each token matched at most once."""

    shared = Counter(tokens1) & Counter(tokens2)
    return sum(shared.values())


def token_overlap_score(tokens1: Sequence[str], tokens2: Sequence[str]) -> float:
    """Jaccard-style overlap: ``100 * common / (n1 + n2 - common)``."""

    if not tokens1 and not tokens2:
        return 100.0
    common = common_token_count(tokens1, tokens2)
    union = len(tokens1) + len(tokens2) - common
    if union <= 0:
        return 0.0
    score = 100.0 * common / union
    _LOGGER.debug(
        "Computed token overlap",
        score=score,
        common=common,
        union=union,
    )
    return score


def clear_similarity_caches() -> None:
    """Drop memoized distances, e.g. between independent jobs."""

    _levenshtein_cached.cache_clear()


__all__ = [
    "edit_distance",
    "similarity_ratio",
    "common_token_count",
    "token_overlap_score",
    "clear_similarity_caches",
]

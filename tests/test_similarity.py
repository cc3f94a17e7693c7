"""Tests for edit-distance and token overlap primitives."""

from __future__ import annotations

import itertools

import pytest

from recordmerge.utils.similarity import (
    clear_similarity_caches,
    common_token_count,
    edit_distance,
    similarity_ratio,
    token_overlap_score,
)

WORDS = ["kitten", "sitting", "", "acme", "acme corp", "globex", "a"]


def test_edit_distance_basics() -> None:
    assert edit_distance("kitten", "sitting") == 3
    assert edit_distance("", "abc") == 3
    assert edit_distance("abc", "") == 3
    assert edit_distance("abc", "abc") == 0


@pytest.mark.parametrize("a,b,c", list(itertools.permutations(WORDS[:5], 3)))
def test_edit_distance_triangle_inequality(a: str, b: str, c: str) -> None:
    assert edit_distance(a, b) <= edit_distance(a, c) + edit_distance(c, b)


@pytest.mark.parametrize("a,b", list(itertools.combinations(WORDS, 2)))
def test_similarity_ratio_is_symmetric_and_bounded(a: str, b: str) -> None:
    score = similarity_ratio(a, b)
    assert score == similarity_ratio(b, a)
    assert 0.0 <= score <= 100.0


def test_similarity_ratio_values() -> None:
    assert similarity_ratio("", "") == 100.0
    assert similarity_ratio("abc", "abd") == pytest.approx(66.6667, abs=1e-3)
    assert similarity_ratio("abc", "xyz") == 0.0
    assert similarity_ratio("abc", "") == 0.0


def test_long_strings_bypass_the_cache() -> None:
    clear_similarity_caches()
    long_a = "a" * 250
    long_b = "a" * 249 + "b"
    assert edit_distance(long_a, long_b) == 1


def test_common_token_count_matches_each_token_once() -> None:
    assert common_token_count(["a", "a", "b"], ["a", "b", "b"]) == 2
    assert common_token_count([], ["a"]) == 0


def test_token_overlap_score() -> None:
    assert token_overlap_score(["100", "pine", "st"], ["100", "pine", "st", "ste", "2"]) == pytest.approx(60.0)
    assert token_overlap_score([], []) == 100.0
    assert token_overlap_score(["a"], ["b"]) == 0.0

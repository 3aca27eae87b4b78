from __future__ import annotations

import pytest

from caption_refiner.similarity import char_similarity, line_similarity, token_jaccard


def test_identical_lines_score_one() -> None:
    assert line_similarity("hello world", "hello world") == pytest.approx(1.0)


def test_empty_input_scores_zero() -> None:
    assert line_similarity("", "hello") == 0.0
    assert line_similarity("hello", "") == 0.0


def test_char_similarity_edges() -> None:
    assert char_similarity("", "") == 1.0
    assert char_similarity("abc", "") == 0.0
    # "ab" fully covered by the longer string's characters: 2 / 4
    assert char_similarity("abcd", "ab") == pytest.approx(0.5)


def test_token_jaccard_keeps_apostrophes_and_ignores_case() -> None:
    assert token_jaccard("Don't stop", "don't go") == pytest.approx(1 / 3)
    assert token_jaccard("!!!", "???") == 0.0


def test_weighted_blend() -> None:
    a, b = "the cat", "the dog"
    expected = 0.7 * char_similarity(a, b) + 0.3 * token_jaccard(a, b)
    assert line_similarity(a, b) == pytest.approx(expected)
    assert 0.0 <= line_similarity(a, b) <= 1.0

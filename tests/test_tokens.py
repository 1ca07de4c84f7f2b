"""Tests for the 4-chars-per-token estimator."""

import math

import pytest

from worldbuilding.tokens import estimate_tokens


def test_empty_string_is_zero():
    assert estimate_tokens("") == 0


def test_none_is_zero():
    assert estimate_tokens(None) == 0


@pytest.mark.parametrize("text", ["a", "abcd", "abcde", "x" * 4001, "Hello, traveller!"])
def test_ceil_of_length_over_four(text):
    assert estimate_tokens(text) == math.ceil(len(text) / 4)


def test_partial_token_rounds_up():
    assert estimate_tokens("abc") == 1
    assert estimate_tokens("abcdefghi") == 3

# tests/test_predicates.py
from __future__ import annotations

import pytest

from scanrules.domain.severity import matches_override
from scanrules.domain.text_match import regexp_matches


@pytest.mark.parametrize(
    "value, threshold, expected",
    [
        (0.0, 0.0, True),
        (0.5, 0.0, False),
        (-1.0, -1.0, True),
        (5.0, -1.0, False),
        (0.0, -1.0, False),
        (5.0, 5.0, True),
        (9.8, 5.0, True),
        (4.9, 5.0, False),
        (None, 5.0, False),
        (None, None, False),
        (3.0, None, True),
    ],
)
def test_matches_override(value, threshold, expected) -> None:
    assert matches_override(value, threshold) is expected


def test_zero_threshold_matches_only_zero() -> None:
    for v in (-2.0, -0.5, 0.0, 0.1, 7.5, 10.0):
        assert matches_override(v, 0.0) is (v == 0.0)


def test_regexp_matches() -> None:
    assert regexp_matches("cpe:/a:apache:http_server:2.4", r"apache:http_server:2\.\d") is True
    assert regexp_matches("abc", "^b") is False
    assert regexp_matches("abc", "(") is False
    assert regexp_matches(None, "a") is False
    assert regexp_matches("a", None) is False

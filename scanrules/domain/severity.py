# /scanrules/domain/severity.py
from __future__ import annotations


def matches_override(value: float | None, threshold: float | None) -> bool:
    """Severity check used by overrides.

    A non-positive threshold is a sentinel and only matches the same value;
    otherwise the value must reach the threshold. No value never matches,
    no threshold always does.
    """
    if value is None:
        return False
    if threshold is None:
        return True
    if threshold <= 0:
        return value == threshold
    return value >= threshold

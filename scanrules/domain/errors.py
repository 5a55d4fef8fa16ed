# /scanrules/domain/errors.py
from __future__ import annotations


class RuleError(Exception):
    """Base error for rule-function input problems."""

    def __init__(self, message: str, token: str | None = None) -> None:
        self.message = message
        self.token = token
        super().__init__(message if token is None else f"{message}: {token!r}")


class ParseError(RuleError, ValueError):
    """A host atom or recurrence component could not be parsed."""


class RangeInvalid(ParseError):
    """Range end precedes its start, or a prefix length is out of bounds."""

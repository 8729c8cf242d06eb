"""
Leaf constraints: single-value checks against a string-typed fact.

A constraint never yields ``Unknown``; a missing fact is detected by the
rule node that owns the constraint. Input that cannot be interpreted for
the constraint's type is a failed check (``NotMet``), not an error.
"""

import re
from dataclasses import dataclass
from typing import Optional, Union

from .status import Status

_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")


def parse_int(value: str) -> Optional[int]:
    """Parse a signed decimal integer, returning None if it is not one.

    Only an optional sign followed by ASCII digits is accepted; surrounding
    whitespace, ``_`` separators and non-ASCII digits are rejected. Non-string
    input is not an integer either.
    """
    if not isinstance(value, str) or _INTEGER_PATTERN.fullmatch(value) is None:
        return None
    return int(value)


def _status(condition: bool) -> Status:
    return Status.MET if condition else Status.NOT_MET


@dataclass(frozen=True)
class StringEquals:
    """Exact string comparison."""
    expected: str

    def check(self, value: str) -> Status:
        return _status(value == self.expected)


@dataclass(frozen=True)
class IntEquals:
    """Integer equality; non-integer input is ``NotMet``."""
    expected: int

    def check(self, value: str) -> Status:
        parsed = parse_int(value)
        return _status(parsed is not None and parsed == self.expected)


@dataclass(frozen=True)
class IntRange:
    """Integer within ``[low, high]``, inclusive on both ends."""
    low: int
    high: int

    def check(self, value: str) -> Status:
        parsed = parse_int(value)
        return _status(parsed is not None and self.low <= parsed <= self.high)


@dataclass(frozen=True)
class Boolean:
    """Boolean comparison.

    Only ``"true"`` (any case) reads as true; every other value, including
    malformed or non-string input, reads as false.
    """
    expected: bool

    def check(self, value: str) -> Status:
        observed = isinstance(value, str) and value.lower() == "true"
        return _status(observed == self.expected)


Constraint = Union[StringEquals, IntEquals, IntRange, Boolean]

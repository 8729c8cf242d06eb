"""
Convenience constructors for rule trees.

These are the intended way to build a tree; nodes are immutable once built.
"""

from typing import Iterable

from .constraints import Boolean, IntEquals, IntRange, StringEquals
from .models import And, Leaf, NumberOf, Or, Rule


def and_(rules: Iterable[Rule]) -> Rule:
    """Creates a rule where all child rules must be ``Met``.

    * If any are ``NotMet``, the result is ``NotMet``
    * If the results contain only ``Met`` and ``Unknown``, the result is ``Unknown``
    * Only results in ``Met`` if all children are ``Met``
    """
    return And(tuple(rules))


def or_(rules: Iterable[Rule]) -> Rule:
    """Creates a rule where any child rule must be ``Met``.

    * If any are ``Met``, the result is ``Met``
    * If the results contain only ``NotMet`` and ``Unknown``, the result is ``Unknown``
    * Only results in ``NotMet`` if all children are ``NotMet``
    """
    return Or(tuple(rules))


def n_of(n: int, rules: Iterable[Rule]) -> Rule:
    """Creates a rule where ``n`` child rules must be ``Met``.

    * If ``>= n`` are ``Met``, the result is ``Met``
    * If more than ``len(rules) - n`` are ``NotMet``, the result is ``NotMet``
    * Otherwise the result is ``Unknown``
    """
    return NumberOf(n, tuple(rules))


def string_equals(description: str, field: str, value: str) -> Rule:
    """Creates a rule for string comparison."""
    return Leaf(description, field, StringEquals(value))


def int_equals(description: str, field: str, value: int) -> Rule:
    """Creates a rule for int comparison.

    If the checked value is not convertible to an integer, the result is ``NotMet``.
    """
    return Leaf(description, field, IntEquals(value))


def int_range(description: str, field: str, low: int, high: int) -> Rule:
    """Creates a rule for int range comparison over ``[low, high]``."""
    return Leaf(description, field, IntRange(low, high))


def boolean(description: str, field: str, value: bool) -> Rule:
    """Creates a rule for boolean comparison.

    Only ``"true"`` (case-insensitive) is considered true; everything else is false.
    """
    return Leaf(description, field, Boolean(value))

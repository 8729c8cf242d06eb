"""
Three-valued status shared by constraints, rules and results.

AND:
    &        | Met      NotMet   Unknown
    ---------|--------------------------
    Met      | Met      NotMet   Unknown
    NotMet   | NotMet   NotMet   NotMet
    Unknown  | Unknown  NotMet   Unknown

OR:
    |        | Met      NotMet   Unknown
    ---------|--------------------------
    Met      | Met      Met      Met
    NotMet   | Met      NotMet   Unknown
    Unknown  | Met      Unknown  Unknown
"""

from enum import Enum
from functools import reduce
from typing import Iterable


class Status(str, Enum):
    """Outcome of checking a rule node."""
    MET = "Met"
    NOT_MET = "NotMet"
    UNKNOWN = "Unknown"

    def __and__(self, other: "Status") -> "Status":
        if not isinstance(other, Status):
            return NotImplemented
        if self is Status.NOT_MET or other is Status.NOT_MET:
            return Status.NOT_MET
        if self is Status.MET and other is Status.MET:
            return Status.MET
        return Status.UNKNOWN

    def __or__(self, other: "Status") -> "Status":
        if not isinstance(other, Status):
            return NotImplemented
        if self is Status.MET or other is Status.MET:
            return Status.MET
        if self is Status.UNKNOWN or other is Status.UNKNOWN:
            return Status.UNKNOWN
        return Status.NOT_MET

    # Statuses have no ordering
    def __lt__(self, other):
        return NotImplemented

    __le__ = __gt__ = __ge__ = __lt__

    @classmethod
    def all_of(cls, statuses: Iterable["Status"]) -> "Status":
        """Fold statuses with AND, starting from ``Met``."""
        return reduce(lambda acc, status: acc & status, statuses, cls.MET)

    @classmethod
    def any_of(cls, statuses: Iterable["Status"]) -> "Status":
        """Fold statuses with OR, starting from ``NotMet``."""
        return reduce(lambda acc, status: acc | status, statuses, cls.NOT_MET)

    def __str__(self) -> str:
        return self.value

"""
Rules engine package.

Defines the rule tree model and the evaluation algorithm used by the
Rules Service. Rule trees combine leaf constraints with And, Or and
"at least n of" nodes; checking a tree against a mapping of facts yields
a three-valued status (Met, NotMet, Unknown) at every node, returned as a
result tree with the same shape for explainability.

Modules of interest:
- status: The three-valued Status and its AND/OR combination.
- constraints: Leaf value checks against a string-typed fact.
- models: Rule nodes, result nodes and API schemas.
- builders: Convenience constructors for rule trees.
- engine: Evaluation algorithm and the in-memory rule registry.
- serialization: Tagged interchange encoding for rules and results.

Trees are immutable once built, so one tree may be checked against any
number of fact sets, including from several threads at once.
"""

from .status import Status
from .constraints import Boolean, IntEquals, IntRange, StringEquals
from .models import And, Leaf, NumberOf, Or, Rule, RuleResult
from .builders import and_, or_, n_of, string_equals, int_equals, int_range, boolean
from .engine import RuleEngine, check

__all__ = [
    "Status",
    "StringEquals",
    "IntEquals",
    "IntRange",
    "Boolean",
    "And",
    "Or",
    "NumberOf",
    "Leaf",
    "Rule",
    "RuleResult",
    "and_",
    "or_",
    "n_of",
    "string_equals",
    "int_equals",
    "int_range",
    "boolean",
    "check",
    "RuleEngine",
]

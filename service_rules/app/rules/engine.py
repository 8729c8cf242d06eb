"""
Rule evaluation engine for the rule engine service.
"""

import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional, List, Union

import yaml

from shared.logging import get_logger
from shared.errors import RuleNotFoundError, ValidationError
from shared.metrics import MetricsCollector
from .models import COMBINATOR_TYPES, And, Or, NumberOf, Leaf, Rule, RuleResult, StoredRule, Facts
from .serialization import rule_from_dict
from .status import Status


def check(rule: Rule, facts: Facts) -> RuleResult:
    """Check ``rule`` and all of its descendants against ``facts``.

    Walks the tree depth-first, left to right, and evaluates every node
    (combinators never short-circuit) so the returned result tree always
    mirrors the rule tree. An explicit stack is used so deep trees are not
    bounded by the interpreter's recursion limit.
    """
    results: List[RuleResult] = []
    stack: List[tuple] = [(rule, False)]

    while stack:
        node, expanded = stack.pop()

        if isinstance(node, Leaf):
            results.append(_check_leaf(node, facts))
        elif not isinstance(node, COMBINATOR_TYPES):
            raise TypeError(f"Unsupported rule node: {type(node).__name__}")
        elif not expanded:
            stack.append((node, True))
            for child in reversed(node.rules):
                stack.append((child, False))
        else:
            split = len(results) - len(node.rules)
            children = results[split:]
            del results[split:]
            results.append(_combine(node, children))

    return results[0]


def _check_leaf(leaf: Leaf, facts: Facts) -> RuleResult:
    if leaf.field in facts:
        status = leaf.constraint.check(facts[leaf.field])
    else:
        status = Status.UNKNOWN
    return RuleResult(name=leaf.description, status=status)


def _combine(node: Union[And, Or, NumberOf], children: List[RuleResult]) -> RuleResult:
    statuses = [child.status for child in children]

    if isinstance(node, And):
        return RuleResult("And", Status.all_of(statuses), children)

    if isinstance(node, Or):
        return RuleResult("Or", Status.any_of(statuses), children)

    met_count = statuses.count(Status.MET)
    failed_count = statuses.count(Status.NOT_MET)
    if met_count >= node.n:
        status = Status.MET
    elif failed_count > len(children) - node.n:
        # Not enough children left for n to be reached
        status = Status.NOT_MET
    else:
        status = Status.UNKNOWN
    return RuleResult(f"At least {node.n} of", status, children)


class RuleEngine:
    """Registry of named rule trees plus instrumented evaluation."""

    def __init__(self, metrics: Optional[MetricsCollector] = None):
        self.logger = get_logger("rules.engine")
        self.metrics = metrics
        self.rules: Dict[str, StoredRule] = {}
        self.evaluations: Dict[str, int] = {status.value: 0 for status in Status}
        self._lock = threading.Lock()

    def add_rule(self, rule_id: str, rule: Rule, name: Optional[str] = None) -> StoredRule:
        """Add a rule to the engine, replacing any rule with the same id."""
        stored = StoredRule(rule_id=rule_id, rule=rule, name=name)
        with self._lock:
            self.rules[rule_id] = stored
        self.logger.info("Rule added", rule_id=rule_id, name=name)
        return stored

    def update_rule(self, rule_id: str, rule: Rule, name: Optional[str] = None) -> StoredRule:
        """Replace the tree (and optionally the name) of a registered rule."""
        with self._lock:
            stored = self.rules.get(rule_id)
            if stored is None:
                raise RuleNotFoundError(rule_id)
            stored.rule = rule
            if name is not None:
                stored.name = name
            stored.updated_at = datetime.now()
        self.logger.info("Rule updated", rule_id=rule_id, name=stored.name)
        return stored

    def remove_rule(self, rule_id: str) -> bool:
        """Remove a rule from the engine."""
        with self._lock:
            stored = self.rules.pop(rule_id, None)
        if stored is None:
            return False
        self.logger.info("Rule removed", rule_id=rule_id, name=stored.name)
        return True

    def get_rule(self, rule_id: str) -> Optional[StoredRule]:
        """Get a rule by ID."""
        return self.rules.get(rule_id)

    def list_rules(self) -> List[StoredRule]:
        """Get all registered rules ordered by id."""
        with self._lock:
            snapshot = list(self.rules.items())
        return [stored for _, stored in sorted(snapshot, key=lambda item: item[0])]

    def check(self, rule: Rule, facts: Facts) -> RuleResult:
        """Check a rule tree, recording the outcome."""
        start_time = time.time()
        result = check(rule, facts)
        duration = time.time() - start_time

        with self._lock:
            self.evaluations[result.status.value] += 1
        if self.metrics is not None:
            self.metrics.record_rule_evaluation(result.status.value, duration)

        self.logger.debug(
            "Rule evaluation result",
            status=result.status.value,
            facts=len(facts),
            evaluation_time_ms=round(duration * 1000, 3)
        )
        return result

    def evaluate(self, rule_id: str, facts: Facts) -> RuleResult:
        """Check a registered rule against ``facts``."""
        stored = self.get_rule(rule_id)
        if stored is None:
            raise RuleNotFoundError(rule_id)
        return self.check(stored.rule, facts)

    def load_definitions(self, path: Union[str, Path]) -> int:
        """Load stored rule definitions from a YAML or JSON file.

        The document maps rule ids either to an encoded rule or to
        ``{"name": ..., "rule": <encoded rule>}``. Returns the number of
        rules loaded.
        """
        with open(path, "r", encoding="utf-8") as f:
            document = yaml.safe_load(f)

        if document is None:
            return 0
        if not isinstance(document, dict):
            raise ValidationError("Rule definitions must be a mapping of rule ids", {"path": str(path)})

        # Decode everything before touching the registry
        decoded = []
        for rule_id, definition in document.items():
            name = None
            if isinstance(definition, dict) and "rule" in definition:
                name = definition.get("name")
                definition = definition["rule"]
            decoded.append((str(rule_id), rule_from_dict(definition, path=str(rule_id)), name))

        for rule_id, rule, name in decoded:
            self.add_rule(rule_id, rule, name=name)

        self.logger.info("Rule definitions loaded", path=str(path), count=len(decoded))
        return len(decoded)

    def get_engine_stats(self) -> Dict[str, Any]:
        """Get engine statistics."""
        with self._lock:
            evaluations = dict(self.evaluations)
            total_rules = len(self.rules)
        return {
            "total_rules": total_rules,
            "evaluations": evaluations,
            "total_evaluations": sum(evaluations.values())
        }

    def clear_all_rules(self):
        """Clear all rules from the engine."""
        with self._lock:
            self.rules.clear()
        self.logger.info("All rules cleared")

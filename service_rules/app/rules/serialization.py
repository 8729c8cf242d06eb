"""
Interchange encoding for rule trees and result trees.

Rules use an externally tagged layout, one key per node naming its variant::

    {"And": {"rules": [...]}}
    {"Or": {"rules": [...]}}
    {"NumberOf": {"n": 2, "rules": [...]}}
    {"Rule": {"desc": "...", "field": "...", "constraint": {"IntRange": [1, 10]}}}

Constraints encode as ``{"StringEquals": "x"}``, ``{"IntEquals": 5}``,
``{"IntRange": [1, 10]}`` and ``{"Boolean": true}``. Results encode as
``{"name": "...", "status": "Met", "children": [...]}``.
"""

import json
from typing import Any, Dict, List

from pydantic import ValidationError as PydanticValidationError

from shared.errors import ValidationError
from .constraints import Boolean, Constraint, IntEquals, IntRange, StringEquals
from .models import And, Leaf, NumberOf, Or, Rule, RuleResult, RuleResultModel


def rule_to_dict(rule: Rule) -> Dict[str, Any]:
    """Encode a rule tree."""
    if isinstance(rule, And):
        return {"And": {"rules": [rule_to_dict(child) for child in rule.rules]}}
    if isinstance(rule, Or):
        return {"Or": {"rules": [rule_to_dict(child) for child in rule.rules]}}
    if isinstance(rule, NumberOf):
        return {"NumberOf": {"n": rule.n, "rules": [rule_to_dict(child) for child in rule.rules]}}
    if isinstance(rule, Leaf):
        return {
            "Rule": {
                "desc": rule.description,
                "field": rule.field,
                "constraint": constraint_to_dict(rule.constraint),
            }
        }
    raise TypeError(f"Unsupported rule node: {type(rule).__name__}")


def constraint_to_dict(constraint: Constraint) -> Dict[str, Any]:
    """Encode a leaf constraint."""
    if isinstance(constraint, StringEquals):
        return {"StringEquals": constraint.expected}
    if isinstance(constraint, IntEquals):
        return {"IntEquals": constraint.expected}
    if isinstance(constraint, IntRange):
        return {"IntRange": [constraint.low, constraint.high]}
    if isinstance(constraint, Boolean):
        return {"Boolean": constraint.expected}
    raise TypeError(f"Unsupported constraint: {type(constraint).__name__}")


def _invalid(path: str, message: str) -> ValidationError:
    return ValidationError(f"Invalid rule at {path}: {message}", {"path": path})


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _single_tag(data: Any, tags, path: str):
    if not isinstance(data, dict) or len(data) != 1:
        raise _invalid(path, f"expected an object with exactly one of {sorted(tags)}")
    tag, body = next(iter(data.items()))
    if tag not in tags:
        raise _invalid(path, f"unknown variant '{tag}'")
    return tag, body


def _children(body: Dict[str, Any], path: str) -> List[Rule]:
    rules = body.get("rules")
    if not isinstance(rules, list):
        raise _invalid(path, "'rules' must be a list")
    return [rule_from_dict(child, f"{path}.rules[{i}]") for i, child in enumerate(rules)]


def rule_from_dict(data: Any, path: str = "$") -> Rule:
    """Decode a rule tree, raising ValidationError on malformed input."""
    tag, body = _single_tag(data, ("And", "Or", "NumberOf", "Rule"), path)
    node_path = f"{path}.{tag}"
    if not isinstance(body, dict):
        raise _invalid(node_path, "expected an object")

    if tag == "And":
        return And(tuple(_children(body, node_path)))

    if tag == "Or":
        return Or(tuple(_children(body, node_path)))

    if tag == "NumberOf":
        n = body.get("n")
        if not _is_int(n) or n < 0:
            raise _invalid(node_path, "'n' must be a non-negative integer")
        return NumberOf(n, tuple(_children(body, node_path)))

    desc = body.get("desc")
    field = body.get("field")
    if not isinstance(desc, str):
        raise _invalid(node_path, "'desc' must be a string")
    if not isinstance(field, str):
        raise _invalid(node_path, "'field' must be a string")
    if "constraint" not in body:
        raise _invalid(node_path, "'constraint' is required")
    return Leaf(desc, field, constraint_from_dict(body["constraint"], f"{node_path}.constraint"))


def constraint_from_dict(data: Any, path: str = "$") -> Constraint:
    """Decode a leaf constraint, raising ValidationError on malformed input."""
    tag, value = _single_tag(data, ("StringEquals", "IntEquals", "IntRange", "Boolean"), path)
    value_path = f"{path}.{tag}"

    if tag == "StringEquals":
        if not isinstance(value, str):
            raise _invalid(value_path, "expected a string")
        return StringEquals(value)

    if tag == "IntEquals":
        if not _is_int(value):
            raise _invalid(value_path, "expected an integer")
        return IntEquals(value)

    if tag == "IntRange":
        if not isinstance(value, (list, tuple)) or len(value) != 2 or not all(_is_int(v) for v in value):
            raise _invalid(value_path, "expected a pair of integers [low, high]")
        return IntRange(value[0], value[1])

    if not isinstance(value, bool):
        raise _invalid(value_path, "expected a boolean")
    return Boolean(value)


def rule_to_json(rule: Rule, **kwargs) -> str:
    """Encode a rule tree as JSON."""
    return json.dumps(rule_to_dict(rule), **kwargs)


def rule_from_json(payload: str) -> Rule:
    """Decode a rule tree from JSON."""
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise ValidationError("Rule payload is not valid JSON", {"error": str(e)}) from e
    return rule_from_dict(data)


def result_to_dict(result: RuleResult) -> Dict[str, Any]:
    """Encode a result tree."""
    return {
        "name": result.name,
        "status": result.status.value,
        "children": [result_to_dict(child) for child in result.children],
    }


def _result_from_model(model: RuleResultModel) -> RuleResult:
    return RuleResult(
        name=model.name,
        status=model.status,
        children=tuple(_result_from_model(child) for child in model.children),
    )


def result_from_dict(data: Any) -> RuleResult:
    """Decode a result tree, raising ValidationError on malformed input."""
    try:
        model = RuleResultModel.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid rule result",
            {"errors": [{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()]}
        ) from e
    return _result_from_model(model)


def result_to_json(result: RuleResult, **kwargs) -> str:
    """Encode a result tree as JSON."""
    return json.dumps(result_to_dict(result), **kwargs)


def result_from_json(payload: str) -> RuleResult:
    """Decode a result tree from JSON."""
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise ValidationError("Result payload is not valid JSON", {"error": str(e)}) from e
    return result_from_dict(data)

"""
Unit tests for rule tree evaluation and the RuleEngine registry.
"""

import dataclasses
import json
import threading

import pytest
from unittest.mock import MagicMock

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.errors import RuleNotFoundError, ValidationError
from service_rules.app.rules import (
    Status, RuleEngine, check,
    and_, or_, n_of, string_equals, int_equals, int_range, boolean,
)
from service_rules.app.rules.models import And, Leaf, RuleResult
from service_rules.app.rules.serialization import rule_to_dict


def met():
    return string_equals("always met", "present", "yes")


def not_met():
    return string_equals("never met", "present", "no")


def unknown():
    return string_equals("missing fact", "absent", "anything")


FACTS = {"present": "yes"}


def shape(result: RuleResult):
    return [shape(child) for child in result.children]


def rule_shape(rule):
    return [rule_shape(child) for child in getattr(rule, "rules", ())]


class TestEvaluation:
    """Test cases for check()."""

    @pytest.fixture
    def tree(self):
        """The name / favourite number eligibility tree."""
        return and_([
            string_equals("Name is John Doe", "name", "John Doe"),
            or_([
                int_equals("Favorite number is 10", "fav_number", 10),
                int_range("Fav number between 11 and 16", "fav_number", 11, 16),
            ]),
        ])

    def test_end_to_end_met(self, tree):
        """Test every branch satisfied."""
        result = check(tree, {"name": "John Doe", "fav_number": "10"})

        assert result.status is Status.MET
        assert result.name == "And"
        assert result.children[0].name == "Name is John Doe"
        assert result.children[1].name == "Or"
        assert result.children[1].status is Status.MET
        assert result.children[1].children[0].status is Status.MET
        assert result.children[1].children[1].status is Status.NOT_MET

    def test_end_to_end_not_met(self, tree):
        """Test a failed leaf under AND."""
        result = check(tree, {"name": "Jane Doe", "fav_number": "10"})

        assert result.status is Status.NOT_MET
        assert result.children[0].status is Status.NOT_MET
        assert result.children[1].status is Status.MET

    def test_end_to_end_unknown(self, tree):
        """Test a missing fact propagates as Unknown."""
        result = check(tree, {"fav_number": "10"})

        assert result.status is Status.UNKNOWN
        assert result.children[0].status is Status.UNKNOWN
        assert result.children[1].status is Status.MET

    def test_method_form(self, tree):
        """Test rule.check() delegates to check()."""
        facts = {"name": "John Doe", "fav_number": "12"}
        assert tree.check(facts) == check(tree, facts)

    def test_empty_and_is_met(self):
        result = check(and_([]), {})
        assert result.status is Status.MET
        assert result.children == ()

    def test_empty_or_is_not_met(self):
        assert check(or_([]), {}).status is Status.NOT_MET

    def test_and_not_met_beats_unknown(self):
        rule = and_([unknown(), met(), not_met(), unknown()])
        assert check(rule, FACTS).status is Status.NOT_MET

    def test_and_unknown_without_failures(self):
        assert check(and_([met(), unknown()]), FACTS).status is Status.UNKNOWN

    def test_or_met_beats_unknown(self):
        rule = or_([unknown(), not_met(), met()])
        assert check(rule, FACTS).status is Status.MET

    def test_or_unknown_without_successes(self):
        assert check(or_([not_met(), unknown()]), FACTS).status is Status.UNKNOWN
        assert check(or_([not_met(), not_met()]), FACTS).status is Status.NOT_MET

    def test_no_short_circuit(self):
        """Test every child appears in the result even when the verdict is settled early."""
        result = check(and_([not_met(), met(), unknown()]), FACTS)

        assert [child.status for child in result.children] == [
            Status.NOT_MET, Status.MET, Status.UNKNOWN
        ]

    @pytest.mark.parametrize("children", [
        [],
        [not_met()],
        [unknown(), unknown()],
        [not_met(), not_met(), unknown()],
    ])
    def test_n_of_zero_always_met(self, children):
        assert check(n_of(0, children), FACTS).status is Status.MET

    def test_n_of_name(self):
        assert check(n_of(2, [met()]), FACTS).name == "At least 2 of"

    def test_n_of_threshold_reached(self):
        rule = n_of(2, [met(), not_met(), met(), unknown()])
        assert check(rule, FACTS).status is Status.MET

    def test_n_of_all_unknown(self):
        rule = n_of(2, [unknown(), unknown(), unknown()])
        assert check(rule, FACTS).status is Status.UNKNOWN

    def test_n_of_still_reachable(self):
        # 1 met, 1 failed, 1 unknown: the unknown could still supply the second met
        rule = n_of(2, [met(), not_met(), unknown()])
        assert check(rule, FACTS).status is Status.UNKNOWN

    def test_n_of_impossible(self):
        # 2 of 3 failed: at most one met is possible
        rule = n_of(2, [not_met(), not_met(), unknown()])
        assert check(rule, FACTS).status is Status.NOT_MET

    def test_n_of_threshold_above_child_count(self):
        """Test a threshold larger than the child count can never be reached."""
        assert check(n_of(3, [met(), met()]), FACTS).status is Status.NOT_MET
        assert check(n_of(3, [unknown(), unknown()]), FACTS).status is Status.NOT_MET
        assert check(n_of(1, []), FACTS).status is Status.NOT_MET

    def test_n_of_equal_to_child_count_behaves_like_and(self):
        children = [met(), unknown()]
        assert check(n_of(2, children), FACTS).status is check(and_(children), FACTS).status
        children = [met(), met()]
        assert check(n_of(2, children), FACTS).status is Status.MET

    @pytest.mark.parametrize("leaf", [
        string_equals("string", "missing", "x"),
        int_equals("int", "missing", 1),
        int_range("range", "missing", 1, 2),
        boolean("bool", "missing", False),
    ])
    def test_missing_field_is_unknown_for_every_constraint(self, leaf):
        result = check(leaf, {"other": "true"})
        assert result.status is Status.UNKNOWN
        assert result.children == ()

    def test_leaf_result_uses_description(self):
        result = check(boolean("Is active", "active", True), {"active": "True"})
        assert result.name == "Is active"
        assert result.status is Status.MET

    def test_result_mirrors_tree_shape(self, tree):
        rule = n_of(1, [tree, or_([met(), and_([])]), unknown()])
        for facts in ({}, FACTS, {"name": "John Doe", "fav_number": "x"}):
            assert shape(check(rule, facts)) == rule_shape(rule)

    def test_tree_is_not_mutated(self, tree):
        before = rule_to_dict(tree)
        check(tree, {"name": "John Doe", "fav_number": "10"})
        check(tree, {})
        assert rule_to_dict(tree) == before

    def test_nodes_are_immutable(self, tree):
        with pytest.raises(dataclasses.FrozenInstanceError):
            tree.rules = ()
        assert isinstance(tree.rules, tuple)

    def test_children_given_as_list_are_frozen(self):
        children = [met()]
        rule = And(children)
        children.append(not_met())
        assert len(rule.rules) == 1

    def test_deep_tree_does_not_exhaust_stack(self):
        """Test a tree deeper than the recursion limit evaluates."""
        rule = met()
        depth = sys.getrecursionlimit() * 3
        for _ in range(depth):
            rule = and_([rule])

        result = check(rule, FACTS)

        assert result.status is Status.MET
        node = result
        levels = 0
        while node.children:
            node = node.children[0]
            levels += 1
        assert levels == depth

    def test_unsupported_node(self):
        with pytest.raises(TypeError):
            check(and_(["not a rule"]), FACTS)

    def test_unsupported_node_reports_type(self):
        with pytest.raises(TypeError, match="int"):
            check(or_([met(), 42]), FACTS)

    def test_non_string_fact_values_do_not_raise(self):
        """Test typed or null fact values fail their checks instead of raising."""
        rule = and_([
            int_equals("Age is 5", "age", 5),
            int_range("Score 1..10", "score", 1, 10),
            boolean("Active", "active", True),
            string_equals("Name", "name", "5"),
        ])

        result = check(rule, {"age": 5, "score": None, "active": True, "name": 5})

        assert result.status is Status.NOT_MET
        assert [child.status for child in result.children] == [Status.NOT_MET] * 4

    def test_concurrent_checks_share_tree(self, tree):
        """Test one tree can be checked from several threads."""
        outcomes = []

        def worker(name):
            for _ in range(50):
                outcomes.append(check(tree, {"name": name, "fav_number": "12"}).status)

        threads = [threading.Thread(target=worker, args=(n,)) for n in ("John Doe", "Jane Doe")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count(Status.MET) == 50
        assert outcomes.count(Status.NOT_MET) == 50


class TestRuleEngine:
    """Test cases for RuleEngine."""

    @pytest.fixture
    def rule_engine(self):
        """Create RuleEngine instance."""
        return RuleEngine()

    @pytest.fixture
    def sample_rule(self):
        return and_([
            string_equals("Region is EU", "region", "eu"),
            int_range("Age between 18 and 65", "age", 18, 65),
        ])

    def test_add_rule(self, rule_engine, sample_rule):
        stored = rule_engine.add_rule("rule-1", sample_rule, name="Adult in EU")

        assert stored.rule_id == "rule-1"
        assert rule_engine.get_rule("rule-1").rule == sample_rule
        assert rule_engine.get_rule("rule-1").name == "Adult in EU"

    def test_add_rule_replaces_existing(self, rule_engine, sample_rule):
        rule_engine.add_rule("rule-1", sample_rule)
        rule_engine.add_rule("rule-1", and_([]))

        assert len(rule_engine.rules) == 1
        assert rule_engine.get_rule("rule-1").rule == and_([])

    def test_update_rule(self, rule_engine, sample_rule):
        rule_engine.add_rule("rule-1", sample_rule, name="Original")

        stored = rule_engine.update_rule("rule-1", or_([]))

        assert stored.rule == or_([])
        assert stored.name == "Original"
        assert stored.updated_at >= stored.created_at

    def test_update_rule_not_found(self, rule_engine, sample_rule):
        with pytest.raises(RuleNotFoundError):
            rule_engine.update_rule("missing", sample_rule)

    def test_remove_rule(self, rule_engine, sample_rule):
        rule_engine.add_rule("rule-1", sample_rule)

        assert rule_engine.remove_rule("rule-1") is True
        assert rule_engine.get_rule("rule-1") is None
        assert rule_engine.remove_rule("rule-1") is False

    def test_list_rules_sorted(self, rule_engine, sample_rule):
        rule_engine.add_rule("b", sample_rule)
        rule_engine.add_rule("a", sample_rule)

        assert [stored.rule_id for stored in rule_engine.list_rules()] == ["a", "b"]

    def test_evaluate_registered_rule(self, rule_engine, sample_rule):
        rule_engine.add_rule("rule-1", sample_rule)

        assert rule_engine.evaluate("rule-1", {"region": "eu", "age": "30"}).status is Status.MET
        assert rule_engine.evaluate("rule-1", {"region": "eu", "age": "70"}).status is Status.NOT_MET
        assert rule_engine.evaluate("rule-1", {"region": "eu"}).status is Status.UNKNOWN

    def test_evaluate_not_found(self, rule_engine):
        with pytest.raises(RuleNotFoundError) as exc_info:
            rule_engine.evaluate("missing", {})

        assert exc_info.value.code == "RULE_NOT_FOUND"
        assert exc_info.value.details == {"rule_id": "missing"}

    def test_engine_stats(self, rule_engine, sample_rule):
        rule_engine.add_rule("rule-1", sample_rule)
        rule_engine.evaluate("rule-1", {"region": "eu", "age": "30"})
        rule_engine.evaluate("rule-1", {})

        stats = rule_engine.get_engine_stats()

        assert stats["total_rules"] == 1
        assert stats["total_evaluations"] == 2
        assert stats["evaluations"] == {"Met": 1, "NotMet": 0, "Unknown": 1}

    def test_check_records_metrics(self, sample_rule):
        metrics = MagicMock()
        engine = RuleEngine(metrics=metrics)

        engine.check(sample_rule, {"region": "us", "age": "30"})

        metrics.record_rule_evaluation.assert_called_once()
        assert metrics.record_rule_evaluation.call_args[0][0] == "NotMet"

    def test_list_rules_is_a_snapshot(self, rule_engine, sample_rule):
        rule_engine.add_rule("a", sample_rule)
        listed = rule_engine.list_rules()
        rule_engine.remove_rule("a")

        assert [stored.rule_id for stored in listed] == ["a"]
        assert rule_engine.get_engine_stats()["total_rules"] == 0

    def test_list_rules_during_concurrent_removal(self, rule_engine, sample_rule):
        """Test listing while other threads add and remove rules."""
        errors = []
        stop = threading.Event()

        def churn():
            i = 0
            while not stop.is_set():
                rule_id = f"rule-{i % 50}"
                rule_engine.add_rule(rule_id, sample_rule)
                rule_engine.remove_rule(rule_id)
                i += 1

        def reader():
            try:
                for _ in range(500):
                    rule_engine.list_rules()
                    rule_engine.get_engine_stats()
            except Exception as e:
                errors.append(e)

        writers = [threading.Thread(target=churn) for _ in range(2)]
        readers = [threading.Thread(target=reader) for _ in range(2)]
        for t in writers + readers:
            t.start()
        for t in readers:
            t.join()
        stop.set()
        for t in writers:
            t.join()

        assert errors == []

    def test_clear_all_rules(self, rule_engine, sample_rule):
        rule_engine.add_rule("rule-1", sample_rule)
        rule_engine.clear_all_rules()

        assert rule_engine.list_rules() == []

    def test_load_definitions_yaml(self, rule_engine, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text(
            "adult:\n"
            "  name: Adult\n"
            "  rule:\n"
            "    Rule:\n"
            "      desc: Age at least 18\n"
            "      field: age\n"
            "      constraint:\n"
            "        IntRange: [18, 150]\n"
            "any-flag:\n"
            "  Or:\n"
            "    rules:\n"
            "      - Rule: {desc: Flag A, field: a, constraint: {Boolean: true}}\n"
            "      - Rule: {desc: Flag B, field: b, constraint: {Boolean: true}}\n"
        )

        assert rule_engine.load_definitions(path) == 2
        assert rule_engine.get_rule("adult").name == "Adult"
        assert rule_engine.evaluate("adult", {"age": "21"}).status is Status.MET
        assert rule_engine.evaluate("any-flag", {"a": "false"}).status is Status.UNKNOWN

    def test_load_definitions_json(self, rule_engine, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({"empty": {"And": {"rules": []}}}))

        assert rule_engine.load_definitions(str(path)) == 1
        assert rule_engine.evaluate("empty", {}).status is Status.MET

    def test_load_definitions_empty_file(self, rule_engine, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text("")

        assert rule_engine.load_definitions(path) == 0

    def test_load_definitions_rejects_non_mapping(self, rule_engine, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ValidationError):
            rule_engine.load_definitions(path)

    def test_load_definitions_is_all_or_nothing(self, rule_engine, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text(
            "good:\n"
            "  And: {rules: []}\n"
            "bad:\n"
            "  Xor: {rules: []}\n"
        )

        with pytest.raises(ValidationError) as exc_info:
            rule_engine.load_definitions(path)

        assert exc_info.value.details["path"] == "bad"
        assert rule_engine.list_rules() == []


def test_leaf_fields():
    leaf = int_range("desc", "field", 1, 2)
    assert isinstance(leaf, Leaf)
    assert (leaf.description, leaf.field) == ("desc", "field")

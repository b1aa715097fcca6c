"""Tests for rule condition evaluation."""

from __future__ import annotations

from typing import Any

import pytest

from notify_dispatch.conditions import (
    ConditionOperatorRegistry,
    ConditionOperatorStrategy,
    build_default_registry,
    evaluate_conditions,
    resolve_field,
)
from notify_dispatch.domain import ConditionOperator, RuleCondition


def cond(field: str, operator: ConditionOperator, value: Any = None) -> RuleCondition:
    return RuleCondition(field=field, operator=operator, value=value)


class TestOperators:
    @pytest.mark.parametrize(
        ("operator", "field_value", "condition_value", "expected"),
        [
            (ConditionOperator.EQUALS, "high", "high", True),
            (ConditionOperator.EQUALS, "high", "low", False),
            (ConditionOperator.NOT_EQUALS, "high", "low", True),
            (ConditionOperator.CONTAINS, "machine offline", "offline", True),
            (ConditionOperator.CONTAINS, ["a", "b"], "b", True),
            (ConditionOperator.CONTAINS, None, "x", False),
            (ConditionOperator.GREATER_THAN, 10, 5, True),
            (ConditionOperator.GREATER_THAN, None, 5, False),
            (ConditionOperator.LESS_THAN, 3, 5, True),
            (ConditionOperator.IN, "a", ["a", "b"], True),
            (ConditionOperator.IN, "c", ["a", "b"], False),
            (ConditionOperator.IN, "a", [], False),
            (ConditionOperator.NOT_IN, "c", ["a", "b"], True),
            (ConditionOperator.NOT_IN, "a", [], True),
        ],
    )
    def test_default_operators(
        self,
        operator: ConditionOperator,
        field_value: Any,
        condition_value: Any,
        expected: bool,
    ) -> None:
        registry = build_default_registry()
        assert registry.evaluate(operator, field_value, condition_value) is expected

    def test_every_operator_is_registered(self) -> None:
        assert build_default_registry().supported_operators == set(ConditionOperator)

    def test_unregistered_operator_raises(self) -> None:
        with pytest.raises(ValueError, match="Unsupported condition operator"):
            ConditionOperatorRegistry().evaluate(ConditionOperator.EQUALS, 1, 1)

    def test_custom_operator_replaces_builtin(self) -> None:
        class CaseInsensitiveEquals(ConditionOperatorStrategy):
            @property
            def name(self) -> ConditionOperator:
                return ConditionOperator.EQUALS

            def evaluate(self, field_value: Any, condition_value: Any) -> bool:
                return str(field_value).lower() == str(condition_value).lower()

        registry = build_default_registry()
        registry.register(CaseInsensitiveEquals())

        assert evaluate_conditions(
            [cond("severity", ConditionOperator.EQUALS, "HIGH")],
            {"severity": "high"},
            registry=registry,
        )


class TestEvaluateConditions:
    def test_empty_conditions_match(self) -> None:
        assert evaluate_conditions([], {}) is True
        assert evaluate_conditions([], {}, match_all=False) is True

    def test_all_must_match(self) -> None:
        conditions = [
            cond("severity", ConditionOperator.EQUALS, "high"),
            cond("count", ConditionOperator.GREATER_THAN, 3),
        ]

        assert evaluate_conditions(conditions, {"severity": "high", "count": 5})
        assert not evaluate_conditions(conditions, {"severity": "high", "count": 1})

    def test_any_may_match(self) -> None:
        conditions = [
            cond("severity", ConditionOperator.EQUALS, "high"),
            cond("count", ConditionOperator.GREATER_THAN, 3),
        ]

        assert evaluate_conditions(
            conditions, {"severity": "low", "count": 5}, match_all=False
        )
        assert not evaluate_conditions(
            conditions, {"severity": "low", "count": 1}, match_all=False
        )

    def test_missing_field_resolves_to_none(self) -> None:
        assert evaluate_conditions(
            [cond("assignee", ConditionOperator.EQUALS, None)], {"other": 1}
        )

    def test_incompatible_types_propagate(self) -> None:
        with pytest.raises(TypeError):
            evaluate_conditions(
                [cond("count", ConditionOperator.GREATER_THAN, 3)], {"count": "many"}
            )


class TestResolveField:
    def test_dotted_path(self) -> None:
        data = {"machine": {"location": {"city": "Tashkent"}}}
        assert resolve_field(data, "machine.location.city") == "Tashkent"

    def test_literal_key_with_dot_wins(self) -> None:
        assert resolve_field({"a.b": 1, "a": {"b": 2}}, "a.b") == 1

    def test_missing_segment(self) -> None:
        assert resolve_field({"machine": {}}, "machine.location.city") is None

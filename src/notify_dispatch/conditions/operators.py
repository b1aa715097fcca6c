"""Built-in condition operators."""

from __future__ import annotations

from typing import Any

from ..domain.enums import ConditionOperator
from .evaluator import ConditionOperatorRegistry, ConditionOperatorStrategy


class EqualsOperator(ConditionOperatorStrategy):
    @property
    def name(self) -> ConditionOperator:
        return ConditionOperator.EQUALS

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return bool(field_value == condition_value)


class NotEqualsOperator(ConditionOperatorStrategy):
    @property
    def name(self) -> ConditionOperator:
        return ConditionOperator.NOT_EQUALS

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return bool(field_value != condition_value)


class ContainsOperator(ConditionOperatorStrategy):
    """Membership for collections, substring match for everything else."""

    @property
    def name(self) -> ConditionOperator:
        return ConditionOperator.CONTAINS

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        if field_value is None:
            return False
        if isinstance(field_value, (list, tuple, set, frozenset)):
            return condition_value in field_value
        return str(condition_value) in str(field_value)


class GreaterThanOperator(ConditionOperatorStrategy):
    @property
    def name(self) -> ConditionOperator:
        return ConditionOperator.GREATER_THAN

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        if field_value is None:
            return False
        return bool(field_value > condition_value)


class LessThanOperator(ConditionOperatorStrategy):
    @property
    def name(self) -> ConditionOperator:
        return ConditionOperator.LESS_THAN

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        if field_value is None:
            return False
        return bool(field_value < condition_value)


class InOperator(ConditionOperatorStrategy):
    @property
    def name(self) -> ConditionOperator:
        return ConditionOperator.IN

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        if not condition_value:
            return False
        return field_value in condition_value


class NotInOperator(ConditionOperatorStrategy):
    @property
    def name(self) -> ConditionOperator:
        return ConditionOperator.NOT_IN

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        if not condition_value:
            return True
        return field_value not in condition_value


def build_default_registry() -> ConditionOperatorRegistry:
    """Create a registry with every built-in operator."""
    registry = ConditionOperatorRegistry()
    registry.register_all(
        EqualsOperator(),
        NotEqualsOperator(),
        ContainsOperator(),
        GreaterThanOperator(),
        LessThanOperator(),
        InOperator(),
        NotInOperator(),
    )
    return registry


default_registry = build_default_registry()

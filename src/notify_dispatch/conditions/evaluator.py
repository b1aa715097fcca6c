"""
Rule condition evaluation.

Provides the ``ConditionOperatorStrategy`` interface, a registry mapping
``ConditionOperator`` → strategy, and ``evaluate_conditions`` which combines
an ordered condition list with AND/OR semantics.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..domain.enums import ConditionOperator
    from ..domain.rule import RuleCondition


class ConditionOperatorStrategy(ABC):
    """Evaluates one operator against a resolved field value."""

    @property
    @abstractmethod
    def name(self) -> ConditionOperator:
        """The operator this strategy handles."""
        ...

    @abstractmethod
    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        """
        Args:
            field_value: Value resolved from the event payload (``None`` if absent).
            condition_value: Value configured on the rule condition.
        """
        ...


class ConditionOperatorRegistry:
    """Registry of operator strategies keyed by ``ConditionOperator``."""

    def __init__(self) -> None:
        self._operators: dict[ConditionOperator, ConditionOperatorStrategy] = {}

    def register(self, operator: ConditionOperatorStrategy) -> None:
        self._operators[operator.name] = operator

    def register_all(self, *operators: ConditionOperatorStrategy) -> None:
        for op in operators:
            self.register(op)

    def get(self, name: ConditionOperator) -> ConditionOperatorStrategy | None:
        return self._operators.get(name)

    @property
    def supported_operators(self) -> set[ConditionOperator]:
        return set(self._operators.keys())

    def evaluate(
        self,
        name: ConditionOperator,
        field_value: Any,
        condition_value: Any,
    ) -> bool:
        """
        Look up the operator and evaluate.

        Raises:
            ValueError: If the operator is not registered.
        """
        op = self.get(name)
        if op is None:
            raise ValueError(f"Unsupported condition operator: {name}")
        return op.evaluate(field_value, condition_value)


_MISSING = object()


def resolve_field(data: Mapping[str, Any], path: str) -> Any:
    """Resolve ``a.b.c`` against nested mappings; missing segments yield ``None``."""
    if path in data:
        return data[path]
    current: Any = data
    for part in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(part, _MISSING)
        else:
            current = getattr(current, part, _MISSING)
        if current is _MISSING:
            return None
    return current


def evaluate_conditions(
    conditions: Sequence[RuleCondition],
    data: Mapping[str, Any],
    *,
    match_all: bool = True,
    registry: ConditionOperatorRegistry | None = None,
) -> bool:
    """Combine conditions with AND (``match_all``) or OR.

    An empty condition list always matches. Exceptions raised by operators
    (e.g. comparing incompatible types) propagate to the caller.
    """
    if not conditions:
        return True
    if registry is None:
        from .operators import default_registry

        registry = default_registry
    results = (
        registry.evaluate(c.operator, resolve_field(data, c.field), c.value)
        for c in conditions
    )
    return all(results) if match_all else any(results)

from .evaluator import (
    ConditionOperatorRegistry,
    ConditionOperatorStrategy,
    evaluate_conditions,
    resolve_field,
)
from .operators import build_default_registry, default_registry

__all__ = [
    "ConditionOperatorRegistry",
    "ConditionOperatorStrategy",
    "build_default_registry",
    "default_registry",
    "evaluate_conditions",
    "resolve_field",
]

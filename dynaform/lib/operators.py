"""Comparison operators for field conditions.

Each operator is a total predicate: it never raises, whatever the operand
types. Operators are looked up by name in an immutable table so engines can
be given a different table (extra operators, test doubles) without touching
process-wide state.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping

from dynaform.lib.values import (
    is_blank,
    is_sequence,
    strict_contains,
    strict_equals,
    to_number,
)

__all__ = [
    "DEFAULT_OPERATORS",
    "Operand",
    "Operator",
    "OperatorTable",
    "build_operator_table",
]


class Operand(Enum):
    """Which part of a condition an operator compares against."""

    VALUE = "value"  # condition.value
    VALUES = "values"  # condition.values (a list)
    NONE = "none"  # unary, field value only


@dataclass(frozen=True)
class Operator:
    """A named comparison predicate."""

    name: str
    predicate: Callable[..., bool]
    operand: Operand = Operand.VALUE

    def apply(self, field_value: Any, value: Any = None, values: Any = None) -> bool:
        """Apply the predicate with the operand this operator expects."""
        if self.operand is Operand.NONE:
            return bool(self.predicate(field_value))
        if self.operand is Operand.VALUES:
            return bool(self.predicate(field_value, [] if values is None else values))
        return bool(self.predicate(field_value, value))


OperatorTable = Mapping[str, Operator]


def _equals(field_value: Any, condition_value: Any) -> bool:
    return strict_equals(field_value, condition_value)


def _not_equals(field_value: Any, condition_value: Any) -> bool:
    return not strict_equals(field_value, condition_value)


def _contains(field_value: Any, condition_value: Any) -> bool:
    if isinstance(field_value, str) and isinstance(condition_value, str):
        return condition_value in field_value
    if is_sequence(field_value):
        return strict_contains(field_value, condition_value)
    return False


def _not_contains(field_value: Any, condition_value: Any) -> bool:
    return not _contains(field_value, condition_value)


def _numeric(compare: Callable[[float, float], bool]) -> Callable[[Any, Any], bool]:
    def predicate(field_value: Any, condition_value: Any) -> bool:
        left = to_number(field_value)
        right = to_number(condition_value)
        if math.isnan(left) or math.isnan(right):
            return False
        return compare(left, right)

    return predicate


def _in(field_value: Any, condition_values: Any) -> bool:
    return is_sequence(condition_values) and strict_contains(condition_values, field_value)


def _not_in(field_value: Any, condition_values: Any) -> bool:
    return not _in(field_value, condition_values)


def _not_empty(field_value: Any) -> bool:
    return not is_blank(field_value)


def build_operator_table(operators: Iterable[Operator]) -> OperatorTable:
    """Build a read-only operator table keyed by operator name."""
    return MappingProxyType({operator.name: operator for operator in operators})


DEFAULT_OPERATORS: OperatorTable = build_operator_table(
    [
        Operator("equals", _equals),
        Operator("notEquals", _not_equals),
        Operator("contains", _contains),
        Operator("notContains", _not_contains),
        Operator("gt", _numeric(lambda a, b: a > b)),
        Operator("gte", _numeric(lambda a, b: a >= b)),
        Operator("lt", _numeric(lambda a, b: a < b)),
        Operator("lte", _numeric(lambda a, b: a <= b)),
        Operator("empty", is_blank, Operand.NONE),
        Operator("notEmpty", _not_empty, Operand.NONE),
        Operator("in", _in, Operand.VALUES),
        Operator("notIn", _not_in, Operand.VALUES),
    ]
)

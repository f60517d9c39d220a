"""Conditional field logic.

Evaluates ``FieldCondition`` predicates against a form-data snapshot and
derives each field's visible/required/disabled state. ``ConditionsEngine``
keeps one snapshot per form session plus a per-field cache of derived
states.

Example:
    >>> engine = ConditionsEngine({"hasJob": True})
    >>> engine.register_field_conditions(
    ...     "salary", {"show": [{"field": "hasJob", "operator": "equals", "value": True}]}
    ... )
    >>> engine.get_field_state("salary").visible
    True
    >>> engine.update_form_data({"hasJob": False})
    >>> engine.get_field_state("salary").visible
    False
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional, Set, Union

from dynaform.lib.observability import get_structlog_logger
from dynaform.lib.operators import DEFAULT_OPERATORS, OperatorTable
from dynaform.lib.schema import ConditionalLogic, FieldCondition
from dynaform.lib.values import UNDEFINED, is_sequence

logger = get_structlog_logger(__name__)

__all__ = [
    "ConditionsEngine",
    "DerivedFieldState",
    "DEFAULT_FIELD_STATE",
    "evaluate_condition",
    "evaluate_conditions",
    "evaluate_field_logic",
    "get_nested_value",
]

ConditionInput = Union[FieldCondition, Mapping]
LogicInput = Union[ConditionalLogic, Mapping]


@dataclass(frozen=True)
class DerivedFieldState:
    """Visibility, required-ness and disabled-ness of a field at one moment."""

    visible: bool = True
    required: bool = False
    disabled: bool = False

    def to_dict(self) -> Dict[str, bool]:
        """Convert to dictionary for serialization."""
        return asdict(self)


DEFAULT_FIELD_STATE = DerivedFieldState()


def _as_condition(condition: ConditionInput) -> FieldCondition:
    if isinstance(condition, FieldCondition):
        return condition
    return FieldCondition.model_validate(condition)


def _as_logic(logic: LogicInput) -> ConditionalLogic:
    if isinstance(logic, ConditionalLogic):
        return logic
    return ConditionalLogic.model_validate(logic)


def get_nested_value(data: Any, path: str) -> Any:
    """Resolve a dotted path against nested mappings and lists.

    A decimal segment indexes into a list or tuple. A segment applied to a
    scalar, a missing key or an out-of-range index yields ``UNDEFINED``
    rather than raising.

    Example:
        >>> get_nested_value({"user": {"profile": {"name": "Ann"}}}, "user.profile.name")
        'Ann'
        >>> get_nested_value({"items": ["a", "b"]}, "items.1")
        'b'
        >>> get_nested_value({"user": None}, "user.profile")
        UNDEFINED
    """
    current = data
    for key in path.split("."):
        if isinstance(current, Mapping):
            if key not in current:
                return UNDEFINED
            current = current[key]
        elif is_sequence(current):
            if not (key.isascii() and key.isdigit()) or int(key) >= len(current):
                return UNDEFINED
            current = current[int(key)]
        else:
            return UNDEFINED
    return current


def evaluate_condition(
    condition: ConditionInput,
    form_data: Mapping,
    operators: OperatorTable = DEFAULT_OPERATORS,
) -> bool:
    """Evaluate one condition against form data.

    Unknown operators are logged and evaluate to False.
    """
    condition = _as_condition(condition)
    operator = operators.get(condition.operator)
    if operator is None:
        logger.warning(
            "unknown_operator",
            operator=condition.operator,
            field=condition.field,
        )
        return False

    field_value = get_nested_value(form_data, condition.field)
    return operator.apply(field_value, value=condition.value, values=condition.values)


def evaluate_conditions(
    conditions: Optional[Iterable[ConditionInput]],
    form_data: Mapping,
    logic: str = "and",
    operators: OperatorTable = DEFAULT_OPERATORS,
) -> bool:
    """Evaluate a list of conditions combined with AND or OR.

    An empty or missing list is vacuously true. Every condition is
    evaluated, so configuration errors are reported even when an earlier
    condition already decided the result.
    """
    if not conditions:
        return True

    results = [evaluate_condition(condition, form_data, operators) for condition in conditions]
    if not results:
        return True

    if logic == "or":
        return any(results)
    return all(results)


def evaluate_field_logic(
    conditional_logic: LogicInput,
    form_data: Mapping,
    operators: OperatorTable = DEFAULT_OPERATORS,
) -> DerivedFieldState:
    """Derive a field's state from its conditional logic.

    ``show`` decides visibility when present; ``hide`` evaluating true
    hides the field regardless of ``show``. ``required`` and ``disabled``
    stay False unless their own lists are present and pass.
    """
    logic = _as_logic(conditional_logic)
    mode = logic.logic or "and"

    visible = True
    required = False
    disabled = False

    if logic.show is not None:
        visible = evaluate_conditions(logic.show, form_data, mode, operators)

    # hide takes precedence over show
    if logic.hide is not None and evaluate_conditions(logic.hide, form_data, mode, operators):
        visible = False

    if logic.required is not None:
        required = evaluate_conditions(logic.required, form_data, mode, operators)

    if logic.disabled is not None:
        disabled = evaluate_conditions(logic.disabled, form_data, mode, operators)

    return DerivedFieldState(visible=visible, required=required, disabled=disabled)


class ConditionsEngine:
    """Conditional logic for all fields of one form session.

    Holds the current form-data snapshot, the registered logic per field and
    a cache of derived states. Any snapshot update clears the whole cache;
    re-registering a field evicts only that field.
    """

    def __init__(
        self,
        form_data: Optional[Mapping] = None,
        *,
        operators: OperatorTable = DEFAULT_OPERATORS,
    ) -> None:
        self._form_data: Dict[str, Any] = dict(form_data or {})
        self._operators = operators
        self._field_conditions: Dict[str, ConditionalLogic] = {}
        self._cache: Dict[str, DerivedFieldState] = {}

    @property
    def form_data(self) -> Dict[str, Any]:
        """Copy of the current snapshot."""
        return dict(self._form_data)

    @property
    def registered_fields(self) -> List[str]:
        """Fields with registered logic, in registration order."""
        return list(self._field_conditions)

    def update_form_data(self, data: Mapping) -> None:
        """Replace the snapshot wholesale and invalidate every cached state."""
        self._form_data = dict(data)
        self._cache.clear()

    def register_field_conditions(self, field_name: str, conditions: LogicInput) -> None:
        """Store (or overwrite) the conditional logic for a field."""
        self._field_conditions[field_name] = _as_logic(conditions)
        self._cache.pop(field_name, None)

    def unregister_field_conditions(self, field_name: str) -> None:
        """Forget a field's conditional logic."""
        self._field_conditions.pop(field_name, None)
        self._cache.pop(field_name, None)

    def get_field_state(self, field_name: str) -> DerivedFieldState:
        """Derived state for a field, computed on first request after a change."""
        cached = self._cache.get(field_name)
        if cached is not None:
            return cached

        conditions = self._field_conditions.get(field_name)
        state = DEFAULT_FIELD_STATE
        if conditions is not None:
            state = evaluate_field_logic(conditions, self._form_data, self._operators)
            logger.debug("field_state_computed", field=field_name, **state.to_dict())

        self._cache[field_name] = state
        return state

    def get_all_field_states(self) -> Dict[str, DerivedFieldState]:
        """Derived state of every registered field."""
        return {name: self.get_field_state(name) for name in self._field_conditions}

    def get_field_dependencies(self, field_name: str) -> Set[str]:
        """Field paths referenced by any of a field's condition lists."""
        conditions = self._field_conditions.get(field_name)
        if conditions is None:
            return set()

        return {
            condition.field
            for condition_list in conditions.condition_lists()
            for condition in condition_list
        }

    def get_dependent_fields(self, field_name: str) -> List[str]:
        """Registered fields whose conditions reference ``field_name``."""
        return [
            name
            for name in self._field_conditions
            if field_name in self.get_field_dependencies(name)
        ]

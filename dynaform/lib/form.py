"""Headless form session.

``FormSession`` owns the values, per-field state and engines of one form
instance. It wires the conditions engine and the validation engine
together the way an interactive front-end would: every value change
refreshes conditional state, and change/blur/submit trigger validation
according to the schema's ``FormConfig``.

Example:
    >>> async def main():
    ...     async with FormSession(schema) as session:
    ...         await session.change("email", "not-an-email")
    ...         return await session.submit()
"""

from __future__ import annotations

import copy
import inspect
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from dynaform.lib.adapters import AdapterRegistry
from dynaform.lib.conditions import (
    DEFAULT_FIELD_STATE,
    ConditionsEngine,
    DerivedFieldState,
    evaluate_field_logic,
)
from dynaform.lib.engine import FieldValidationResult, FormValidationResult, ValidationEngine
from dynaform.lib.errors import ConfigurationError
from dynaform.lib.observability import get_structlog_logger
from dynaform.lib.operators import DEFAULT_OPERATORS, OperatorTable
from dynaform.lib.schema import FieldSchema, FieldType, FormSchema
from dynaform.lib.settings import FormSettings, get_settings
from dynaform.lib.validators import FieldError
from dynaform.lib.values import UNDEFINED, is_missing, strict_equals

logger = get_structlog_logger(__name__)

__all__ = [
    "FieldState",
    "FormEvents",
    "FormSession",
    "default_value_for_type",
]

SubmitHandler = Callable[[Dict[str, Any], bool], Union[None, Awaitable[None]]]
ChangeHandler = Callable[[str, Any, Dict[str, Any]], None]
FieldHandler = Callable[[str, Any], None]

_TYPE_DEFAULTS: Dict[FieldType, Any] = {
    FieldType.CHECKBOX: False,
    FieldType.SWITCH: False,
    FieldType.NUMBER: 0,
    FieldType.RANGE: 0,
    FieldType.MULTISELECT: [],
    FieldType.FILE: None,
}


def default_value_for_type(field_type: Union[FieldType, str]) -> Any:
    """Empty value for a field type: False, 0, [], None or ""."""
    try:
        field_type = FieldType(field_type)
    except ValueError:
        return ""
    return copy.copy(_TYPE_DEFAULTS.get(field_type, ""))


@dataclass
class FormEvents:
    """Optional callbacks fired by a ``FormSession``.

    Attributes:
        change: ``(field_name, value, values)`` after a value is set
        blur: ``(field_name, value)`` when a field loses focus
        focus: ``(field_name, value)`` when a field gains focus
        validate: ``(errors)`` after the whole form is validated
        submit: ``(values, is_valid)`` on submit, unless ``submit()`` is
            given its own handler; may return an awaitable
        reset: ``()`` after the form is reset
    """

    change: Optional[ChangeHandler] = None
    blur: Optional[FieldHandler] = None
    focus: Optional[FieldHandler] = None
    validate: Optional[Callable[[Dict[str, str]], None]] = None
    submit: Optional[SubmitHandler] = None
    reset: Optional[Callable[[], None]] = None


@dataclass
class FieldState:
    """Interactive state of one field.

    Attributes:
        name: The field name
        value: Current value
        error: Current error message, if any
        touched: Whether the field has been blurred or the form submitted
        dirty: Whether the value differs from the initial value
        validating: Whether a validation is waiting to complete
        valid: False while ``error`` is set
        visible: Derived visibility
        disabled: Derived or static disabled flag
        required: Derived or static required flag
    """

    name: str
    value: Any = ""
    error: Optional[str] = None
    touched: bool = False
    dirty: bool = False
    validating: bool = False
    valid: bool = True
    visible: bool = True
    disabled: bool = False
    required: bool = False

    def set_error(self, message: Optional[str]) -> None:
        """Set (or clear, with a falsy message) the error."""
        self.error = message or None
        self.valid = self.error is None

    def clear_error(self) -> None:
        self.set_error(None)

    def apply_derived(self, state: DerivedFieldState) -> None:
        self.visible = state.visible
        self.required = state.required
        self.disabled = state.disabled

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "value": self.value,
            "error": self.error,
            "touched": self.touched,
            "dirty": self.dirty,
            "validating": self.validating,
            "valid": self.valid,
            "visible": self.visible,
            "disabled": self.disabled,
            "required": self.required,
        }

    def __str__(self) -> str:
        marker = f"(error: {self.error})" if self.error else ""
        return f"{self.name}={self.value!r} {marker}".strip()


class FormSession:
    """Values, field states and validation for one form instance.

    Args:
        schema: Form definition (model or mapping)
        initial_data: Initial values by field name
        settings: Runtime settings (default: ``get_settings()``)
        adapters: External adapter registry for the validation engine
        operators: Operator table for conditional logic
        events: Callbacks for change, blur, focus, validate, submit and reset
    """

    def __init__(
        self,
        schema: Union[FormSchema, Mapping],
        initial_data: Optional[Mapping[str, Any]] = None,
        *,
        settings: Optional[FormSettings] = None,
        adapters: Optional[AdapterRegistry] = None,
        operators: OperatorTable = DEFAULT_OPERATORS,
        events: Optional[FormEvents] = None,
    ) -> None:
        if not isinstance(schema, FormSchema):
            schema = FormSchema.model_validate(schema)

        self.schema = schema
        self.settings = settings if settings is not None else get_settings()
        self.events = events if events is not None else FormEvents()
        self.conditions = ConditionsEngine(operators=operators)
        self.validation = ValidationEngine(adapters=adapters, settings=self.settings)
        self.submit_count = 0
        self.is_submitting = False
        self.is_validating = False

        self._operators = operators
        self._initial_data: Dict[str, Any] = dict(initial_data or {})
        self._fields: Dict[str, FieldSchema] = {}
        for field_schema in schema.fields:
            self._fields.setdefault(field_schema.name, field_schema)
            if field_schema.conditions is not None:
                self.conditions.register_field_conditions(
                    field_schema.name, field_schema.conditions
                )

        self._initial_values: Dict[str, Any] = {
            name: self._initial_value(field_schema) for name, field_schema in self._fields.items()
        }
        self._data: Dict[str, Any] = {}
        self._states: Dict[str, FieldState] = {}
        self._initialize()

    async def __aenter__(self) -> "FormSession":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.dispose()

    def _initial_value(self, field_schema: FieldSchema) -> Any:
        value = self._initial_data.get(field_schema.name, UNDEFINED)
        if is_missing(value):
            value = field_schema.default_value
        if is_missing(value):
            value = default_value_for_type(field_schema.type)
        return value

    def _initialize(self) -> None:
        self._data = {name: copy.deepcopy(value) for name, value in self._initial_values.items()}
        self._states = {
            name: FieldState(name=name, value=self._data[name]) for name in self._fields
        }
        self._sync_conditions()

    def _sync_conditions(self) -> None:
        self.conditions.update_form_data(self._data)
        for name, field_schema in self._fields.items():
            state = self._states[name]
            if field_schema.conditions is not None:
                derived = self.conditions.get_field_state(name)
                state.apply_derived(
                    DerivedFieldState(
                        visible=derived.visible,
                        required=derived.required or field_schema.is_required,
                        disabled=derived.disabled or field_schema.disabled,
                    )
                )
            else:
                state.apply_derived(
                    DerivedFieldState(
                        visible=True,
                        required=field_schema.is_required,
                        disabled=field_schema.disabled,
                    )
                )

    @property
    def debounce_seconds(self) -> float:
        """Debounce for change validation: form config, else settings."""
        debounce_ms = self.schema.config.debounce_ms
        if debounce_ms is None:
            return self.settings.debounce_seconds
        return debounce_ms / 1000.0

    @property
    def values(self) -> Dict[str, Any]:
        return dict(self._data)

    @property
    def errors(self) -> Dict[str, str]:
        return {name: state.error for name, state in self._states.items() if state.error}

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def is_dirty(self) -> bool:
        return any(state.dirty for state in self._states.values())

    @property
    def field_errors(self) -> List[FieldError]:
        """Current errors in declaration order."""
        return [
            FieldError(name, state.error, "validation", self._data.get(name))
            for name, state in self._states.items()
            if state.error
        ]

    @property
    def field_states(self) -> Dict[str, FieldState]:
        return dict(self._states)

    def get_field(self, name: str) -> FieldState:
        """State of a declared field.

        Raises:
            ConfigurationError: If the form declares no such field
        """
        state = self._states.get(name)
        if state is None:
            raise ConfigurationError(
                f"Unknown field '{name}'",
                field=name,
                suggestion=f"Declared fields: {', '.join(self._fields) or '(none)'}",
            )
        return state

    def visible_fields(self) -> List[FieldSchema]:
        """Field definitions currently visible, in declaration order."""
        return [
            field_schema
            for name, field_schema in self._fields.items()
            if self._states[name].visible
        ]

    def get_group_state(self, name: str) -> DerivedFieldState:
        """Derived state of a group from its own conditional logic."""
        group = self.schema.get_group(name)
        if group is None:
            raise ConfigurationError(f"Unknown group '{name}'", field=name)
        if group.conditions is None:
            return DEFAULT_FIELD_STATE
        return evaluate_field_logic(group.conditions, self._data, self._operators)

    def _assign(self, name: str, value: Any) -> None:
        state = self.get_field(name)
        self._data[name] = value
        state.value = value
        state.dirty = not strict_equals(value, self._initial_values[name])

    def _emit_change(self, names: List[str]) -> None:
        if self.events.change is None:
            return
        values = self.values
        for name in names:
            self.events.change(name, values[name], values)

    def set_value(self, name: str, value: Any) -> None:
        """Set one value and refresh conditional state. Does not validate."""
        self._assign(name, value)
        self._sync_conditions()
        logger.debug("field_changed", field=name)
        self._emit_change([name])

    def set_values(self, values: Mapping[str, Any]) -> None:
        """Set several values at once; undeclared names are skipped."""
        changed: List[str] = []
        for name, value in values.items():
            if name not in self._fields:
                logger.warning("unknown_field_ignored", field=name)
                continue
            self._assign(name, value)
            changed.append(name)
        self._sync_conditions()
        self._emit_change(changed)

    async def change(self, name: str, value: Any) -> Optional[FieldValidationResult]:
        """Set a value, then validate it if the form validates on change.

        Validation is debounced when the effective debounce is positive.
        """
        self.set_value(name, value)
        if not self.schema.config.validate_on_change:
            return None
        return await self._validate_one(name, debounced=True)

    def focus(self, name: str) -> None:
        """Report that a field gained focus. Does not change state."""
        self.get_field(name)
        if self.events.focus is not None:
            self.events.focus(name, self._data[name])

    async def blur(self, name: str) -> Optional[FieldValidationResult]:
        """Mark a field touched, then validate it if the form validates on blur."""
        self.get_field(name).touched = True
        if self.events.blur is not None:
            self.events.blur(name, self._data[name])
        if not self.schema.config.validate_on_blur:
            return None
        return await self._validate_one(name)

    async def validate_field(self, name: str) -> bool:
        """Validate one field now; True only for a valid verdict."""
        result = await self._validate_one(name)
        return result.is_valid

    async def _validate_one(self, name: str, debounced: bool = False) -> FieldValidationResult:
        state = self.get_field(name)
        field_schema = self._fields[name]
        value = self._data.get(name, UNDEFINED)

        state.validating = True
        delay = self.debounce_seconds
        if debounced and delay > 0:
            result = await self.validation.validate_field_debounced(
                field_schema, value, self._data, delay
            )
        else:
            result = await self.validation.validate_field(field_schema, value, self._data)

        state.validating = result.pending
        if not result.pending:
            state.set_error(result.message)
        return result

    async def validate_form(self) -> FormValidationResult:
        """Validate every field and update their error state."""
        self.is_validating = True
        try:
            result = await self.validation.validate_form(self.schema.fields, self._data)
        finally:
            self.is_validating = False

        for name, state in self._states.items():
            if name in result.pending_fields:
                continue
            state.set_error(result.errors.get(name))

        if self.events.validate is not None:
            self.events.validate(dict(result.errors))
        return result

    async def submit(self, on_submit: Optional[SubmitHandler] = None) -> bool:
        """Touch every field, validate, and hand the values to ``on_submit``.

        ``on_submit(values, is_valid)``, or ``events.submit`` when no handler
        is given, is called (and awaited when it returns an awaitable)
        whether or not the form is valid. A submit
        that starts while another is running is ignored and returns False.

        Returns:
            Whether the form was valid (always True when the form does not
            validate on submit)
        """
        if self.is_submitting:
            logger.warning("submit_in_progress", submit_count=self.submit_count)
            return False

        self.is_submitting = True
        self.submit_count += 1
        try:
            for state in self._states.values():
                state.touched = True

            is_valid = True
            if self.schema.config.validate_on_submit:
                result = await self.validate_form()
                is_valid = result.is_valid

            if on_submit is None:
                on_submit = self.events.submit
            if on_submit is not None:
                outcome = on_submit(self.values, is_valid)
                if inspect.isawaitable(outcome):
                    await outcome

            logger.info("form_submitted", valid=is_valid, submit_count=self.submit_count)

            if self.schema.config.reset_on_submit and is_valid:
                self.reset()
            return is_valid
        finally:
            self.is_submitting = False

    def reset(self) -> None:
        """Restore initial values and clear errors, touched and dirty flags."""
        for name in self._fields:
            self.validation.cancel_field_validation(name)
        self.submit_count = 0
        self._initialize()
        logger.debug("form_reset", fields=len(self._fields))
        if self.events.reset is not None:
            self.events.reset()

    def set_errors(self, errors: Mapping[str, Optional[str]]) -> None:
        """Set errors from outside, e.g. returned by a server."""
        for name, message in errors.items():
            state = self._states.get(name)
            if state is None:
                logger.warning("unknown_field_ignored", field=name)
                continue
            state.set_error(message)

    def clear_errors(self) -> None:
        for state in self._states.values():
            state.clear_error()

    def dispose(self) -> None:
        """Cancel outstanding validations; the session should not be reused."""
        self.validation.dispose()

"""Field and form validation.

``ValidationEngine`` runs a field's builtin validators (stopping at the
first failure), then its external validations, and reports a tagged
``FieldValidationResult``: valid, invalid with one ``FieldError``, or
cancelled because a newer validation of the same field superseded it.

Validator exceptions never reach callers; they become field errors.

Example:
    >>> async def main():
    ...     async with ValidationEngine() as engine:
    ...         result = await engine.validate_form(
    ...             [{"name": "age", "validation": {"min": 18}}],
    ...             {"age": 10},
    ...         )
    ...     return result.errors
    >>> asyncio.run(main())
    {'age': 'Minimum value: 18'}
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from dynaform.lib.adapters import AdapterRegistry, default_adapter_registry
from dynaform.lib.cancellation import CancellationToken
from dynaform.lib.errors import ValidationCancelled
from dynaform.lib.observability import get_structlog_logger
from dynaform.lib.schema import FieldSchema, ValidationRule
from dynaform.lib.settings import FormSettings, get_settings
from dynaform.lib.validators import (
    FieldError,
    Validator,
    custom,
    email,
    max_length,
    max_value,
    min_length,
    min_value,
    pattern,
    required,
    url,
)
from dynaform.lib.values import UNDEFINED

logger = get_structlog_logger(__name__)

__all__ = [
    "EXTERNAL_ADAPTER_ORDER",
    "FieldValidationResult",
    "FormValidationResult",
    "ValidationEngine",
    "ValidationStatus",
    "build_validators",
]

# External validations run in this order; custom runs last
EXTERNAL_ADAPTER_ORDER = ("pydantic", "jsonschema", "marshmallow")

CUSTOM_FAILED_MESSAGE = "Custom validation failed"
CUSTOM_ERROR_MESSAGE = "Custom validation error"

FieldInput = Union[FieldSchema, Mapping]


class ValidationStatus(str, Enum):
    """Outcome of one field validation."""

    VALID = "valid"
    INVALID = "invalid"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class FieldValidationResult:
    """Result of validating one field.

    A cancelled result is inconclusive: it is neither valid nor an error
    and should not be displayed as a failure.
    """

    field: str
    status: ValidationStatus
    error: Optional[FieldError] = None

    @classmethod
    def valid(cls, field_name: str) -> "FieldValidationResult":
        return cls(field_name, ValidationStatus.VALID)

    @classmethod
    def invalid(cls, error: FieldError) -> "FieldValidationResult":
        return cls(error.field, ValidationStatus.INVALID, error)

    @classmethod
    def cancelled(cls, field_name: str) -> "FieldValidationResult":
        return cls(field_name, ValidationStatus.CANCELLED)

    @property
    def is_valid(self) -> bool:
        return self.status is ValidationStatus.VALID

    @property
    def pending(self) -> bool:
        return self.status is ValidationStatus.CANCELLED

    @property
    def message(self) -> Optional[str]:
        """Error message, or None unless the result is invalid."""
        return self.error.message if self.error is not None else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "field": self.field,
            "status": self.status.value,
            "is_valid": self.is_valid,
            "pending": self.pending,
            "error": self.message,
        }


@dataclass
class FormValidationResult:
    """Aggregated result of validating several fields.

    Attributes:
        is_valid: True when no field has an error (cancelled fields are not
            errors)
        errors: Field name to error message
        field_errors: Errors in field declaration order
        pending_fields: Fields whose validation was cancelled
    """

    is_valid: bool
    errors: Dict[str, str] = field(default_factory=dict)
    field_errors: List[FieldError] = field(default_factory=list)
    pending_fields: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "is_valid": self.is_valid,
            "errors": dict(self.errors),
            "field_errors": [error.to_dict() for error in self.field_errors],
            "pending_fields": list(self.pending_fields),
        }


def build_validators(rule: Optional[Union[ValidationRule, Mapping]]) -> List[Validator]:
    """Materialize the builtin validators a rule asks for.

    Order is fixed: required, min_length, max_length, min, max, email, url,
    pattern, custom. ``rule.message`` overrides each default message.
    """
    if rule is None:
        return []
    if isinstance(rule, Mapping):
        rule = ValidationRule.model_validate(rule)

    message = rule.message
    validators: List[Validator] = []

    if rule.required:
        validators.append(required(message))
    if rule.min_length is not None:
        validators.append(min_length(rule.min_length, message))
    if rule.max_length is not None:
        validators.append(max_length(rule.max_length, message))
    if rule.min is not None:
        validators.append(min_value(rule.min, message))
    if rule.max is not None:
        validators.append(max_value(rule.max, message))
    if rule.email:
        validators.append(email(message))
    if rule.url:
        validators.append(url(message))
    if rule.pattern is not None:
        validators.append(pattern(rule.pattern, message))
    if rule.custom is not None:
        validators.append(custom(rule.custom, message))

    return validators


def _as_field(field_schema: FieldInput) -> FieldSchema:
    if isinstance(field_schema, FieldSchema):
        return field_schema
    return FieldSchema.model_validate(field_schema)


@dataclass
class _ScheduledValidation:
    """A debounced validation waiting for its timer."""

    handle: asyncio.TimerHandle
    fired: asyncio.Future

    def cancel(self) -> None:
        self.handle.cancel()
        if not self.fired.done():
            self.fired.set_result(False)


class ValidationEngine:
    """Runs field and form validation with per-field cancellation.

    One engine serves one form. Starting a validation for a field cancels
    the field's in-flight validation; the superseded call resolves as
    cancelled and never overwrites the newer verdict.

    Args:
        adapters: External adapter registry (default: pydantic, jsonschema,
            marshmallow)
        settings: Runtime settings (default: ``get_settings()``)
    """

    def __init__(
        self,
        *,
        adapters: Optional[AdapterRegistry] = None,
        settings: Optional[FormSettings] = None,
    ) -> None:
        self._adapters = adapters if adapters is not None else default_adapter_registry()
        self._settings = settings if settings is not None else get_settings()
        self._tokens: Dict[str, CancellationToken] = {}
        self._scheduled: Dict[str, _ScheduledValidation] = {}
        self._disposed = False

    async def __aenter__(self) -> "ValidationEngine":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.dispose()

    @property
    def adapters(self) -> AdapterRegistry:
        return self._adapters

    @property
    def settings(self) -> FormSettings:
        return self._settings

    @property
    def disposed(self) -> bool:
        return self._disposed

    def is_validating(self, field_name: str) -> bool:
        """Whether a validation for ``field_name`` is in flight."""
        return field_name in self._tokens

    def _warn_if_disposed(self, operation: str) -> None:
        if self._disposed:
            logger.warning("engine_disposed", operation=operation)

    def _cancel_in_flight(self, field_name: str) -> None:
        token = self._tokens.pop(field_name, None)
        if token is not None:
            token.cancel()

    def _cancel_scheduled(self, field_name: str) -> None:
        scheduled = self._scheduled.pop(field_name, None)
        if scheduled is not None:
            scheduled.cancel()

    def cancel_field_validation(self, field_name: str) -> None:
        """Cancel the in-flight and any scheduled validation of a field."""
        self._cancel_in_flight(field_name)
        self._cancel_scheduled(field_name)

    async def validate_field(
        self,
        field_schema: FieldInput,
        value: Any,
        form_data: Optional[Mapping[str, Any]] = None,
    ) -> FieldValidationResult:
        """Validate one field's value.

        Args:
            field_schema: Field definition (model or mapping)
            value: Current value of the field
            form_data: Whole-form data, read by cross-field validators

        Returns:
            Valid, invalid (with the first error) or cancelled result
        """
        self._warn_if_disposed("validate_field")
        field_schema = _as_field(field_schema)
        field_name = field_schema.name
        form_data = {} if form_data is None else form_data

        self._cancel_in_flight(field_name)
        token = CancellationToken(field_name)
        self._tokens[field_name] = token

        try:
            error = await self._run_builtin(field_schema, value, form_data, token)
            if error is None:
                error = await self._run_external(field_schema, value, form_data, token)
            token.raise_if_cancelled()
        except ValidationCancelled:
            logger.debug("validation_cancelled", field=field_name)
            return FieldValidationResult.cancelled(field_name)
        except Exception as exc:
            logger.warning(
                "validation_failed",
                field=field_name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            message = str(exc) or self._settings.fallback_error_message
            return FieldValidationResult.invalid(FieldError(field_name, message, "error", value))
        finally:
            # A newer call may already own this field's slot
            if self._tokens.get(field_name) is token:
                del self._tokens[field_name]

        if error is not None:
            logger.debug("field_invalid", field=field_name, type=error.type)
            return FieldValidationResult.invalid(error)
        return FieldValidationResult.valid(field_name)

    async def _run_builtin(
        self,
        field_schema: FieldSchema,
        value: Any,
        form_data: Mapping[str, Any],
        token: CancellationToken,
    ) -> Optional[FieldError]:
        field_name = field_schema.name

        for validator in build_validators(field_schema.validation):
            token.raise_if_cancelled()
            try:
                outcome = validator.validate(value, form_data, field_name)
                if inspect.isawaitable(outcome):
                    outcome = await token.run(outcome)
            except ValidationCancelled:
                raise
            except Exception as exc:
                logger.warning(
                    "validator_raised",
                    field=field_name,
                    validator=validator.type,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                message = str(exc) or self._settings.fallback_error_message
                return FieldError(field_name, message, "error", value)

            if outcome is not True:
                if isinstance(outcome, str) and outcome:
                    message = outcome
                else:
                    message = validator.message or self._settings.fallback_error_message
                return FieldError(field_name, message, validator.type, value)

        return None

    async def _run_external(
        self,
        field_schema: FieldSchema,
        value: Any,
        form_data: Mapping[str, Any],
        token: CancellationToken,
    ) -> Optional[FieldError]:
        external = field_schema.external_validation
        if external is None:
            return None

        field_name = field_schema.name
        for adapter_name in EXTERNAL_ADAPTER_ORDER:
            schema = getattr(external, adapter_name)
            if schema is None:
                continue
            token.raise_if_cancelled()
            errors = await self._run_adapter(adapter_name, schema, value, form_data, field_name, token)
            if errors:
                return replace(errors[0], field=field_name, value=value)

        if external.custom is not None:
            token.raise_if_cancelled()
            return await self._run_external_custom(external.custom, value, form_data, field_name, token)

        return None

    async def _run_adapter(
        self,
        adapter_name: str,
        schema: Any,
        value: Any,
        form_data: Mapping[str, Any],
        field_name: str,
        token: CancellationToken,
    ) -> List[FieldError]:
        adapter = self._adapters.get(adapter_name)
        if adapter is None:
            logger.warning("adapter_not_registered", adapter=adapter_name, field=field_name)
            return [
                FieldError(
                    field_name,
                    f"No validator adapter registered for '{adapter_name}'",
                    "error",
                    value,
                )
            ]

        try:
            return await token.run(adapter.validate(schema, value, form_data, field=field_name))
        except ValidationCancelled:
            raise
        except Exception as exc:
            logger.warning(
                "adapter_failed",
                adapter=adapter_name,
                field=field_name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            message = str(exc) or self._settings.fallback_error_message
            return [FieldError(field_name, message, "error", value)]

    async def _run_external_custom(
        self,
        check: Any,
        value: Any,
        form_data: Mapping[str, Any],
        field_name: str,
        token: CancellationToken,
    ) -> Optional[FieldError]:
        try:
            outcome = check(value, form_data)
            if inspect.isawaitable(outcome):
                outcome = await token.run(outcome)
        except ValidationCancelled:
            raise
        except Exception as exc:
            logger.warning(
                "validator_raised",
                field=field_name,
                validator="external_custom",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return FieldError(field_name, str(exc) or CUSTOM_ERROR_MESSAGE, "custom-error", value)

        if outcome is True:
            return None
        message = outcome if isinstance(outcome, str) and outcome else CUSTOM_FAILED_MESSAGE
        return FieldError(field_name, message, "custom", value)

    async def validate_form(
        self,
        fields: Iterable[FieldInput],
        form_data: Mapping[str, Any],
    ) -> FormValidationResult:
        """Validate every field concurrently and wait for all of them.

        One field failing, raising or being cancelled never affects the
        others. Errors are listed in the order ``fields`` declares them.
        """
        self._warn_if_disposed("validate_form")
        schemas = [_as_field(field_schema) for field_schema in fields]

        outcomes = await asyncio.gather(
            *(
                self.validate_field(schema, form_data.get(schema.name, UNDEFINED), form_data)
                for schema in schemas
            ),
            return_exceptions=True,
        )

        result = FormValidationResult(is_valid=True)
        for schema, outcome in zip(schemas, outcomes):
            name = schema.name
            if isinstance(outcome, FieldValidationResult):
                if outcome.pending:
                    result.pending_fields.append(name)
                    continue
                if outcome.error is None:
                    continue
                error = outcome.error
            elif isinstance(outcome, asyncio.CancelledError):
                result.pending_fields.append(name)
                continue
            else:
                logger.error(
                    "field_validation_crashed",
                    field=name,
                    error=str(outcome),
                    error_type=type(outcome).__name__,
                )
                error = FieldError(
                    name,
                    self._settings.fallback_error_message,
                    "error",
                    form_data.get(name, UNDEFINED),
                )

            result.errors[name] = error.message
            result.field_errors.append(error)

        result.is_valid = not result.errors
        logger.debug(
            "form_validated",
            fields=len(schemas),
            invalid=len(result.errors),
            pending=len(result.pending_fields),
        )
        return result

    async def validate_field_debounced(
        self,
        field_schema: FieldInput,
        value: Any,
        form_data: Optional[Mapping[str, Any]] = None,
        delay: Optional[float] = None,
    ) -> FieldValidationResult:
        """Validate a field once calls for it stop arriving for ``delay`` seconds.

        A newer call for the same field supersedes a scheduled one that has
        not fired yet; the superseded call resolves as cancelled.

        Args:
            delay: Quiet period in seconds (default: ``settings.debounce_seconds``)
        """
        self._warn_if_disposed("validate_field_debounced")
        field_schema = _as_field(field_schema)
        field_name = field_schema.name
        if delay is None:
            delay = self._settings.debounce_seconds

        self._cancel_scheduled(field_name)

        loop = asyncio.get_running_loop()
        fired = loop.create_future()

        def _fire() -> None:
            if self._scheduled.get(field_name) is scheduled:
                del self._scheduled[field_name]
            if not fired.done():
                fired.set_result(True)

        scheduled = _ScheduledValidation(loop.call_later(max(delay, 0), _fire), fired)
        self._scheduled[field_name] = scheduled

        try:
            should_run = await fired
        except asyncio.CancelledError:
            if self._scheduled.get(field_name) is scheduled:
                del self._scheduled[field_name]
            scheduled.handle.cancel()
            raise

        if not should_run:
            logger.debug("validation_cancelled", field=field_name, reason="debounce_superseded")
            return FieldValidationResult.cancelled(field_name)

        return await self.validate_field(field_schema, value, form_data)

    def dispose(self) -> None:
        """Cancel all in-flight and scheduled validations.

        The engine should not be used afterwards; later calls still run but
        log an ``engine_disposed`` warning.
        """
        in_flight = len(self._tokens)
        scheduled = len(self._scheduled)

        for token in list(self._tokens.values()):
            token.cancel()
        self._tokens.clear()

        for pending in list(self._scheduled.values()):
            pending.cancel()
        self._scheduled.clear()

        self._disposed = True
        logger.debug("engine_dispose", in_flight=in_flight, scheduled=scheduled)

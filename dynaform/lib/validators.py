"""Builtin field validators.

Each factory returns a ``Validator``: a type name, a ``validate`` callable
``(value, form_data, field_name)`` and a default message. ``validate``
returns True to pass, False to fail with ``message``, or a string to fail
with that string. ``custom`` validators may return an awaitable.

Every validator except ``required`` passes empty values (None, UNDEFINED
or ""), so format checks only run when a value is present.

Example:
    >>> validator = min_length(5)
    >>> validator.validate("hi", {}, "nickname")
    False
    >>> validator.validate("", {}, "nickname")
    True
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence, Union
from urllib.parse import urlsplit

from dynaform.lib.values import (
    UNDEFINED,
    is_missing,
    is_number,
    is_sequence,
    js_trim,
    strict_contains,
    strict_equals,
    to_display_string,
    to_number,
)

__all__ = [
    "BUILTIN_VALIDATORS",
    "FieldError",
    "Validator",
    "ValidatorFunction",
    "custom",
    "different_from",
    "email",
    "integer",
    "max_length",
    "max_value",
    "min_length",
    "min_value",
    "not_one_of",
    "number",
    "one_of",
    "pattern",
    "required",
    "same_as",
    "url",
]

ValidatorOutcome = Union[bool, str]
ValidatorFunction = Callable[
    [Any, Mapping[str, Any], str],
    Union[ValidatorOutcome, Awaitable[ValidatorOutcome]],
]

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_SCHEME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*$")


@dataclass(frozen=True)
class FieldError:
    """One validation failure for a field.

    Attributes:
        field: Field name, or a dotted path inside the value for errors
            reported by external libraries
        message: Human-readable failure message
        type: Validator type (``required``, ``min_length``, ...), ``error``
            for exceptions, or the external library's own error code
        value: The value that failed
    """

    field: str
    message: str
    type: str = "validation"
    value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "field": self.field,
            "message": self.message,
            "type": self.type,
            "value": None if self.value is UNDEFINED else self.value,
        }


@dataclass(frozen=True)
class Validator:
    """A named predicate with its failure message."""

    type: str
    validate: ValidatorFunction
    message: str


def _is_empty(value: Any) -> bool:
    return is_missing(value) or value == ""


def _message(message: Optional[str], default: str) -> str:
    return message or default


def _format_values(values: Sequence[Any]) -> str:
    return ", ".join(to_display_string(value) for value in values)


def required(message: Optional[str] = None) -> Validator:
    """Value must be present: not None, not blank text, not an empty list."""

    def validate(value: Any, form_data: Mapping[str, Any], field_name: str) -> bool:
        if is_missing(value):
            return False
        if isinstance(value, str):
            return js_trim(value) != ""
        if is_sequence(value):
            return len(value) > 0
        if isinstance(value, bool):
            return True
        if is_number(value):
            return not math.isnan(value)
        return True

    return Validator("required", validate, _message(message, "This field is required"))


def min_length(length: int, message: Optional[str] = None) -> Validator:
    """Display string of the value must have at least ``length`` characters."""

    def validate(value: Any, form_data: Mapping[str, Any], field_name: str) -> bool:
        if _is_empty(value):
            return True
        return len(to_display_string(value)) >= length

    return Validator(
        "min_length", validate, _message(message, f"Minimum length: {length} characters")
    )


def max_length(length: int, message: Optional[str] = None) -> Validator:
    """Display string of the value must have at most ``length`` characters."""

    def validate(value: Any, form_data: Mapping[str, Any], field_name: str) -> bool:
        if _is_empty(value):
            return True
        return len(to_display_string(value)) <= length

    return Validator(
        "max_length", validate, _message(message, f"Maximum length: {length} characters")
    )


def min_value(minimum: float, message: Optional[str] = None) -> Validator:
    """Numeric value must be at least ``minimum``; non-numeric values pass."""

    def validate(value: Any, form_data: Mapping[str, Any], field_name: str) -> bool:
        if _is_empty(value):
            return True
        number_value = to_number(value)
        return math.isnan(number_value) or number_value >= minimum

    return Validator(
        "min", validate, _message(message, f"Minimum value: {to_display_string(minimum)}")
    )


def max_value(maximum: float, message: Optional[str] = None) -> Validator:
    """Numeric value must be at most ``maximum``; non-numeric values pass."""

    def validate(value: Any, form_data: Mapping[str, Any], field_name: str) -> bool:
        if _is_empty(value):
            return True
        number_value = to_number(value)
        return math.isnan(number_value) or number_value <= maximum

    return Validator(
        "max", validate, _message(message, f"Maximum value: {to_display_string(maximum)}")
    )


def email(message: Optional[str] = None) -> Validator:
    """Value must look like ``local@domain.tld``."""

    def validate(value: Any, form_data: Mapping[str, Any], field_name: str) -> bool:
        if not value:
            return True
        return EMAIL_PATTERN.match(to_display_string(value)) is not None

    return Validator("email", validate, _message(message, "Enter a valid email address"))


def _is_absolute_url(text: str) -> bool:
    try:
        parts = urlsplit(text.strip())
    except ValueError:
        return False
    if not parts.scheme or not _SCHEME_PATTERN.match(parts.scheme):
        return False
    if parts.netloc:
        try:
            parts.port
        except ValueError:
            return False
        return True
    # Opaque URIs such as mailto:a@b.com or urn:isbn:123
    return bool(parts.path) and not parts.path.startswith("/")


def url(message: Optional[str] = None) -> Validator:
    """Value must parse as an absolute URL."""

    def validate(value: Any, form_data: Mapping[str, Any], field_name: str) -> bool:
        if not value:
            return True
        return _is_absolute_url(to_display_string(value))

    return Validator("url", validate, _message(message, "Enter a valid URL"))


def pattern(regex: Union[str, "re.Pattern[str]"], message: Optional[str] = None) -> Validator:
    """Value must match ``regex`` (searched anywhere, as in JS ``test``)."""
    compiled = re.compile(regex) if isinstance(regex, str) else regex

    def validate(value: Any, form_data: Mapping[str, Any], field_name: str) -> bool:
        if not value:
            return True
        return compiled.search(to_display_string(value)) is not None

    return Validator(
        "pattern", validate, _message(message, "Value does not match the required format")
    )


def one_of(values: Sequence[Any], message: Optional[str] = None) -> Validator:
    """Value must be one of ``values``."""
    allowed = list(values)

    def validate(value: Any, form_data: Mapping[str, Any], field_name: str) -> bool:
        if is_missing(value):
            return True
        return strict_contains(allowed, value)

    return Validator(
        "one_of", validate, _message(message, f"Value must be one of: {_format_values(allowed)}")
    )


def not_one_of(values: Sequence[Any], message: Optional[str] = None) -> Validator:
    """Value must not be any of ``values``."""
    forbidden = list(values)

    def validate(value: Any, form_data: Mapping[str, Any], field_name: str) -> bool:
        if is_missing(value):
            return True
        return not strict_contains(forbidden, value)

    return Validator(
        "not_one_of",
        validate,
        _message(message, f"Value cannot be one of: {_format_values(forbidden)}"),
    )


def number(message: Optional[str] = None) -> Validator:
    """Value must coerce to a number."""

    def validate(value: Any, form_data: Mapping[str, Any], field_name: str) -> bool:
        if _is_empty(value):
            return True
        return not math.isnan(to_number(value))

    return Validator("number", validate, _message(message, "Value must be a number"))


def integer(message: Optional[str] = None) -> Validator:
    """Value must coerce to a whole number."""

    def validate(value: Any, form_data: Mapping[str, Any], field_name: str) -> bool:
        if _is_empty(value):
            return True
        number_value = to_number(value)
        return math.isfinite(number_value) and number_value.is_integer()

    return Validator("integer", validate, _message(message, "Value must be a whole number"))


def custom(validator: ValidatorFunction, message: Optional[str] = None) -> Validator:
    """Wrap a caller-supplied predicate (sync or async)."""
    return Validator("custom", validator, _message(message, "Custom validation failed"))


def same_as(field_name: str, message: Optional[str] = None) -> Validator:
    """Value must equal the current value of another field."""

    def validate(value: Any, form_data: Mapping[str, Any], current_field: str) -> bool:
        return strict_equals(value, form_data.get(field_name, UNDEFINED))

    return Validator(
        "same_as", validate, _message(message, f"Value must match the {field_name} field")
    )


def different_from(field_name: str, message: Optional[str] = None) -> Validator:
    """Value must differ from the current value of another field."""

    def validate(value: Any, form_data: Mapping[str, Any], current_field: str) -> bool:
        return not strict_equals(value, form_data.get(field_name, UNDEFINED))

    return Validator(
        "different_from",
        validate,
        _message(message, f"Value must differ from the {field_name} field"),
    )


BUILTIN_VALIDATORS: Mapping[str, Callable[..., Validator]] = MappingProxyType(
    {
        "required": required,
        "min_length": min_length,
        "max_length": max_length,
        "min": min_value,
        "max": max_value,
        "email": email,
        "url": url,
        "pattern": pattern,
        "one_of": one_of,
        "not_one_of": not_one_of,
        "number": number,
        "integer": integer,
        "custom": custom,
        "same_as": same_as,
        "different_from": different_from,
    }
)

"""Declarative form schema models.

Pydantic models describing fields, validation rules and conditional logic.
Every model accepts both snake_case names and the camelCase keys used by
browser-side form schemas (``minLength``, ``defaultValue``,
``externalValidation``), so the same JSON/YAML document can drive either.

Engines only read these models; nothing in dynaform mutates a schema.

Example:
    >>> field = FieldSchema.model_validate({
    ...     "name": "salary",
    ...     "type": "number",
    ...     "validation": {"required": True, "min": 0},
    ...     "conditions": {"show": [{"field": "hasJob", "operator": "equals", "value": True}]},
    ... })
    >>> field.validation.min
    0
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from dynaform.lib.observability import get_structlog_logger
from dynaform.lib.values import UNDEFINED, is_sequence

logger = get_structlog_logger(__name__)

__all__ = [
    "ConditionalLogic",
    "ExternalValidation",
    "FieldCondition",
    "FieldOption",
    "FieldSchema",
    "FieldType",
    "FormConfig",
    "FormGroup",
    "FormSchema",
    "LogicMode",
    "ValidationRule",
]

LogicMode = Literal["and", "or"]

# Operators that compare against condition.values instead of condition.value
LIST_OPERATORS = ("in", "notIn")


class _SchemaModel(BaseModel):
    """Base for schema models: camelCase aliases, arbitrary callables allowed."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
        extra="ignore",
    )


class FieldType(str, Enum):
    """Input type of a form field."""

    TEXT = "text"
    EMAIL = "email"
    PASSWORD = "password"
    NUMBER = "number"
    TEL = "tel"
    URL = "url"
    TEXTAREA = "textarea"
    SELECT = "select"
    MULTISELECT = "multiselect"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    SWITCH = "switch"
    DATE = "date"
    DATETIME_LOCAL = "datetime-local"
    TIME = "time"
    FILE = "file"
    RANGE = "range"
    COLOR = "color"
    HIDDEN = "hidden"
    CUSTOM = "custom"


class FieldCondition(_SchemaModel):
    """A single predicate over form data.

    ``field`` may be a dotted path (``user.profile.name``). Operator names
    are checked when the condition is evaluated, not here, so a schema with
    a typo still loads and the bad condition simply evaluates false.
    """

    field: str = Field(..., min_length=1, description="Dotted path of the field to inspect")
    operator: str = Field(..., min_length=1, description="Operator name (equals, gt, in, ...)")
    value: Any = Field(default=UNDEFINED, description="Operand for binary operators")
    values: Any = Field(
        default=None,
        description="Operand list for in/notIn; anything but a list matches nothing",
    )

    @model_validator(mode="after")
    def warn_list_operator_without_values(self) -> "FieldCondition":
        """Warn when in/notIn has no values list."""
        if self.operator in LIST_OPERATORS and not is_sequence(self.values):
            logger.warning(
                "condition_missing_values",
                field=self.field,
                operator=self.operator,
            )
        return self


class ConditionalLogic(_SchemaModel):
    """Show/hide/required/disabled condition lists and their combinator."""

    show: Optional[List[FieldCondition]] = None
    hide: Optional[List[FieldCondition]] = None
    required: Optional[List[FieldCondition]] = None
    disabled: Optional[List[FieldCondition]] = None
    logic: LogicMode = "and"

    @field_validator("logic", mode="before")
    @classmethod
    def normalize_logic(cls, v: Any) -> Any:
        """Accept 'AND'/'Or' spellings."""
        if v is None:
            return "and"
        if isinstance(v, str):
            return v.lower()
        return v

    def condition_lists(self) -> List[List[FieldCondition]]:
        """All present condition lists, in show/hide/required/disabled order."""
        return [
            conditions
            for conditions in (self.show, self.hide, self.required, self.disabled)
            if conditions
        ]


class ValidationRule(_SchemaModel):
    """Declarative builtin validation for one field.

    Each key that is set becomes one validator; ``message`` overrides the
    default message of all of them.
    """

    required: Optional[bool] = None
    min_length: Optional[int] = Field(default=None, ge=0)
    max_length: Optional[int] = Field(default=None, ge=0)
    min: Optional[Union[int, float]] = None
    max: Optional[Union[int, float]] = None
    email: Optional[bool] = None
    url: Optional[bool] = None
    pattern: Optional[re.Pattern] = None
    custom: Optional[Callable[..., Any]] = None
    message: Optional[str] = None


class ExternalValidation(_SchemaModel):
    """Validation delegated to third-party libraries.

    Attributes:
        pydantic: A pydantic model class, type annotation or ``TypeAdapter``
        jsonschema: A JSON Schema document
        marshmallow: A marshmallow ``Schema`` (class or instance) or ``Field``
        custom: Callable ``(value, form_data)`` returning True, False or a
            message, optionally as an awaitable
    """

    pydantic: Any = None
    jsonschema: Optional[Dict[str, Any]] = None
    marshmallow: Any = None
    custom: Optional[Callable[..., Any]] = None


class FieldOption(_SchemaModel):
    """Choice for select, radio and multiselect fields."""

    label: str
    value: Any = None
    disabled: bool = False
    description: Optional[str] = None


class FieldSchema(_SchemaModel):
    """Declarative description of one form field."""

    name: str = Field(..., min_length=1)
    type: FieldType = FieldType.TEXT
    label: Optional[str] = None
    description: Optional[str] = None
    default_value: Any = UNDEFINED
    validation: Optional[ValidationRule] = None
    external_validation: Optional[ExternalValidation] = None
    options: Optional[List[FieldOption]] = None
    conditions: Optional[ConditionalLogic] = None
    disabled: bool = False
    group: Optional[str] = None
    order: Optional[int] = None

    @property
    def display_label(self) -> str:
        """Label for messages, derived from the name when not set."""
        return self.label or self.name.replace("_", " ").title()

    @property
    def is_required(self) -> bool:
        """Whether the static validation rule marks the field required."""
        return bool(self.validation and self.validation.required)


class FormConfig(_SchemaModel):
    """Per-form behaviour switches."""

    validate_on_change: bool = True
    validate_on_blur: bool = True
    validate_on_submit: bool = True
    reset_on_submit: bool = False
    debounce_ms: Optional[int] = Field(
        default=None, ge=0, description="Overrides the DYNAFORM_DEBOUNCE_MS setting"
    )


class FormGroup(_SchemaModel):
    """Named group of fields, optionally conditional."""

    name: str = Field(..., min_length=1)
    label: Optional[str] = None
    description: Optional[str] = None
    fields: List[str] = Field(default_factory=list)
    collapsible: bool = False
    collapsed: bool = False
    conditions: Optional[ConditionalLogic] = None


class FormSchema(_SchemaModel):
    """A complete form: fields in declaration order plus configuration."""

    fields: List[FieldSchema] = Field(default_factory=list)
    config: FormConfig = Field(default_factory=FormConfig)
    groups: List[FormGroup] = Field(default_factory=list)
    title: Optional[str] = None
    description: Optional[str] = None

    @property
    def field_names(self) -> List[str]:
        """Field names in declaration order."""
        return [field.name for field in self.fields]

    def get_field(self, name: str) -> Optional[FieldSchema]:
        """Return the first field declared with ``name``, if any."""
        for field in self.fields:
            if field.name == name:
                return field
        return None

    def get_group(self, name: str) -> Optional[FormGroup]:
        """Return the group declared with ``name``, if any."""
        for group in self.groups:
            if group.name == name:
                return group
        return None

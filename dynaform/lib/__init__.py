"""Dynaform library modules.

This package contains the conditions engine, the validation engine and
the schema, settings, logging and error support they share.
"""

from dynaform.lib.adapters import (
    AdapterRegistry,
    JsonSchemaAdapter,
    MarshmallowAdapter,
    PydanticAdapter,
    ValidatorAdapter,
    default_adapter_registry,
)
from dynaform.lib.cancellation import CancellationToken
from dynaform.lib.conditions import (
    DEFAULT_FIELD_STATE,
    ConditionsEngine,
    DerivedFieldState,
    evaluate_condition,
    evaluate_conditions,
    evaluate_field_logic,
    get_nested_value,
)
from dynaform.lib.engine import (
    FieldValidationResult,
    FormValidationResult,
    ValidationEngine,
    ValidationStatus,
    build_validators,
)
from dynaform.lib.errors import (
    ConfigurationError,
    DynaformError,
    SchemaLoadError,
    ValidationCancelled,
)
from dynaform.lib.form import FieldState, FormEvents, FormSession, default_value_for_type
from dynaform.lib.observability import get_structlog_logger, setup_logging
from dynaform.lib.operators import DEFAULT_OPERATORS, Operand, Operator, build_operator_table
from dynaform.lib.schema import (
    ConditionalLogic,
    ExternalValidation,
    FieldCondition,
    FieldOption,
    FieldSchema,
    FieldType,
    FormConfig,
    FormGroup,
    FormSchema,
    ValidationRule,
)
from dynaform.lib.schema_loader import (
    SchemaIssue,
    Severity,
    check_form_schema,
    format_issue_report,
    load_form_data,
    load_form_schema,
    parse_form_schema,
)
from dynaform.lib.settings import FormSettings, LoggingConfig, get_settings
from dynaform.lib.validators import BUILTIN_VALIDATORS, FieldError, Validator
from dynaform.lib.values import UNDEFINED, to_display_string, to_number

__all__ = [
    # Adapters
    "AdapterRegistry",
    "JsonSchemaAdapter",
    "MarshmallowAdapter",
    "PydanticAdapter",
    "ValidatorAdapter",
    "default_adapter_registry",
    # Conditions
    "ConditionsEngine",
    "DEFAULT_FIELD_STATE",
    "DerivedFieldState",
    "evaluate_condition",
    "evaluate_conditions",
    "evaluate_field_logic",
    "get_nested_value",
    # Operators
    "DEFAULT_OPERATORS",
    "Operand",
    "Operator",
    "build_operator_table",
    # Validation
    "BUILTIN_VALIDATORS",
    "CancellationToken",
    "FieldError",
    "FieldValidationResult",
    "FormValidationResult",
    "ValidationEngine",
    "ValidationStatus",
    "Validator",
    "build_validators",
    # Form session
    "FieldState",
    "FormEvents",
    "FormSession",
    "default_value_for_type",
    # Schema
    "ConditionalLogic",
    "ExternalValidation",
    "FieldCondition",
    "FieldOption",
    "FieldSchema",
    "FieldType",
    "FormConfig",
    "FormGroup",
    "FormSchema",
    "ValidationRule",
    "SchemaIssue",
    "Severity",
    "check_form_schema",
    "format_issue_report",
    "load_form_data",
    "load_form_schema",
    "parse_form_schema",
    # Settings, logging, errors
    "FormSettings",
    "LoggingConfig",
    "get_settings",
    "get_structlog_logger",
    "setup_logging",
    "ConfigurationError",
    "DynaformError",
    "SchemaLoadError",
    "ValidationCancelled",
    # Values
    "UNDEFINED",
    "to_display_string",
    "to_number",
]

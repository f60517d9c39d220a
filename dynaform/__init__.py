"""Headless dynamic forms: conditional field state and validation.

Describe a form declaratively (fields, validation rules, show/hide/
required/disabled conditions) and get deterministic field states and
validation verdicts, independent of any rendering layer.

Usage:
    python -m dynaform forms/signup.yaml --check
    python -m dynaform forms/signup.yaml --data submission.json
"""

from dynaform.lib.conditions import ConditionsEngine, DerivedFieldState
from dynaform.lib.engine import FieldValidationResult, FormValidationResult, ValidationEngine
from dynaform.lib.form import FormEvents, FormSession
from dynaform.lib.schema import FieldSchema, FormSchema
from dynaform.lib.schema_loader import load_form_schema
from dynaform.lib.values import UNDEFINED

__version__ = "0.1.0"

__all__ = [
    "ConditionsEngine",
    "DerivedFieldState",
    "FieldSchema",
    "FieldValidationResult",
    "FormEvents",
    "FormSchema",
    "FormSession",
    "FormValidationResult",
    "UNDEFINED",
    "ValidationEngine",
    "load_form_schema",
]

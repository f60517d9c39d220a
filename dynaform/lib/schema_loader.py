"""Load form schemas and form data from YAML/JSON files, and check schemas.

Example YAML (signup.yaml):
    title: Sign up
    config:
      validateOnChange: true
      debounceMs: 200
    fields:
      - name: email
        type: email
        validation: {required: true, email: true}
      - name: hasJob
        type: checkbox
      - name: salary
        type: number
        validation: {min: 0}
        conditions:
          show:
            - {field: hasJob, operator: equals, value: true}

Usage:
    schema = load_form_schema("./forms/signup.yaml")
    for issue in check_form_schema(schema):
        print(issue)
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import yaml
from pydantic import ValidationError

from dynaform.lib.adapters import AdapterRegistry, default_adapter_registry
from dynaform.lib.errors import SchemaLoadError
from dynaform.lib.engine import EXTERNAL_ADAPTER_ORDER
from dynaform.lib.observability import get_structlog_logger
from dynaform.lib.operators import DEFAULT_OPERATORS, OperatorTable
from dynaform.lib.schema import LIST_OPERATORS, ConditionalLogic, FieldCondition, FormSchema
from dynaform.lib.values import is_sequence

logger = get_structlog_logger(__name__)

__all__ = [
    "SchemaIssue",
    "Severity",
    "check_form_schema",
    "format_issue_report",
    "load_form_data",
    "load_form_schema",
    "parse_form_schema",
]

_CONDITION_LISTS = ("show", "hide", "required", "disabled")


class Severity(Enum):
    """Severity of schema issues."""

    ERROR = "error"  # Schema will misbehave at runtime
    WARNING = "warning"  # Probably a mistake, but the form works


@dataclass
class SchemaIssue:
    """A problem found in a form schema."""

    severity: Severity
    message: str
    location: str
    suggestion: Optional[str] = None

    def __str__(self) -> str:
        prefix = "ERROR" if self.severity == Severity.ERROR else "WARNING"
        result = f"[{prefix}] {self.location}: {self.message}"
        if self.suggestion:
            result += f"\n  Fix: {self.suggestion}"
        return result

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "severity": self.severity.value,
            "message": self.message,
            "location": self.location,
            "suggestion": self.suggestion,
        }


def _read_document(path: Union[str, Path]) -> Any:
    path = Path(path)
    if not path.exists():
        raise SchemaLoadError(
            f"File not found: {path}",
            path=path,
            suggestion="Check the path; relative paths are resolved from the current directory.",
        )

    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise SchemaLoadError(f"Invalid YAML/JSON syntax in {path.name}", path=path, cause=e) from e
    except OSError as e:
        raise SchemaLoadError(f"Could not read {path.name}", path=path, cause=e) from e


def parse_form_schema(
    document: Any, *, path: Optional[Union[str, Path]] = None
) -> FormSchema:
    """Build a ``FormSchema`` from an already-parsed mapping.

    A bare list is accepted as the ``fields`` list.

    Raises:
        SchemaLoadError: If the document does not describe a form
    """
    if isinstance(document, list):
        document = {"fields": document}
    if not isinstance(document, dict):
        raise SchemaLoadError(
            f"Form schema must be a mapping, got {type(document).__name__}",
            path=path,
        )

    try:
        return FormSchema.model_validate(document)
    except ValidationError as e:
        details = {
            ".".join(str(part) for part in error["loc"]) or "schema": error["msg"]
            for error in e.errors()
        }
        raise SchemaLoadError(
            f"Invalid form schema ({e.error_count()} error(s))",
            path=path,
            cause=e,
            details=details,
        ) from e


def load_form_schema(path: Union[str, Path]) -> FormSchema:
    """Load a form schema from a YAML or JSON file.

    Raises:
        SchemaLoadError: If the file is missing, unparseable or invalid
    """
    document = _read_document(path)
    if document is None:
        raise SchemaLoadError("Empty form schema file", path=path)

    schema = parse_form_schema(document, path=path)
    logger.debug("schema_loaded", path=str(path), fields=len(schema.fields))
    return schema


def load_form_data(path: Union[str, Path]) -> Dict[str, Any]:
    """Load form values (a mapping of field name to value) from YAML or JSON.

    An empty file yields an empty mapping.

    Raises:
        SchemaLoadError: If the file is missing, unparseable or not a mapping
    """
    document = _read_document(path)
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise SchemaLoadError(
            f"Form data must be a mapping of field names to values, got {type(document).__name__}",
            path=path,
            suggestion="Write the data as 'field: value' pairs.",
        )
    return document


def _iter_conditions(
    location: str, logic: Optional[ConditionalLogic]
) -> Iterator[Tuple[str, FieldCondition]]:
    if logic is None:
        return
    for list_name in _CONDITION_LISTS:
        for index, condition in enumerate(getattr(logic, list_name) or []):
            yield f"{location}.conditions.{list_name}[{index}]", condition


def check_form_schema(
    schema: FormSchema,
    *,
    operators: OperatorTable = DEFAULT_OPERATORS,
    adapters: Optional[AdapterRegistry] = None,
) -> List[SchemaIssue]:
    """Check a form schema for mistakes that loading does not catch.

    Returns a list of issues. Empty list means the schema looks correct.

    Args:
        schema: Loaded form schema
        operators: Operator table conditions will be evaluated with
        adapters: Adapter registry used to check external validations

    Returns:
        List of SchemaIssue objects
    """
    issues: List[SchemaIssue] = []
    adapters = adapters if adapters is not None else default_adapter_registry()
    field_names = set(schema.field_names)

    for name, count in Counter(schema.field_names).items():
        if count > 1:
            issues.append(
                SchemaIssue(
                    severity=Severity.ERROR,
                    location=f"fields.{name}",
                    message=f"Field name declared {count} times",
                    suggestion="Give every field a unique name",
                )
            )

    condition_sources = [(f"fields.{field.name}", field.conditions) for field in schema.fields]
    condition_sources += [(f"groups.{group.name}", group.conditions) for group in schema.groups]

    for source, logic in condition_sources:
        for location, condition in _iter_conditions(source, logic):
            if condition.operator not in operators:
                issues.append(
                    SchemaIssue(
                        severity=Severity.ERROR,
                        location=location,
                        message=f"Unknown operator '{condition.operator}'",
                        suggestion=f"Use one of: {', '.join(operators)}",
                    )
                )
            elif condition.operator in LIST_OPERATORS and not is_sequence(condition.values):
                issues.append(
                    SchemaIssue(
                        severity=Severity.ERROR,
                        location=location,
                        message=f"Operator '{condition.operator}' requires a 'values' list",
                        suggestion="Add values: [...] to the condition",
                    )
                )

            root = condition.field.split(".", 1)[0]
            if root not in field_names:
                issues.append(
                    SchemaIssue(
                        severity=Severity.WARNING,
                        location=location,
                        message=f"Condition references undeclared field '{condition.field}'",
                        suggestion="Check the field name; undeclared fields always read as missing",
                    )
                )

    for field in schema.fields:
        rule = field.validation
        if rule is not None:
            if (
                rule.min_length is not None
                and rule.max_length is not None
                and rule.min_length > rule.max_length
            ):
                issues.append(
                    SchemaIssue(
                        severity=Severity.WARNING,
                        location=f"fields.{field.name}.validation",
                        message=f"minLength ({rule.min_length}) exceeds maxLength ({rule.max_length})",
                        suggestion="No value can satisfy both; swap or correct the limits",
                    )
                )
            if rule.min is not None and rule.max is not None and rule.min > rule.max:
                issues.append(
                    SchemaIssue(
                        severity=Severity.WARNING,
                        location=f"fields.{field.name}.validation",
                        message=f"min ({rule.min}) exceeds max ({rule.max})",
                        suggestion="No value can satisfy both; swap or correct the limits",
                    )
                )

        external = field.external_validation
        if external is not None:
            for adapter_name in EXTERNAL_ADAPTER_ORDER:
                if getattr(external, adapter_name) is None:
                    continue
                adapter = adapters.get(adapter_name)
                if adapter is None or not adapter.is_available():
                    issues.append(
                        SchemaIssue(
                            severity=Severity.WARNING,
                            location=f"fields.{field.name}.externalValidation.{adapter_name}",
                            message=f"{adapter_name} is not installed; this check will always fail",
                            suggestion="pip install 'dynaform[adapters]'",
                        )
                    )

    for group in schema.groups:
        for member in group.fields:
            if member not in field_names:
                issues.append(
                    SchemaIssue(
                        severity=Severity.WARNING,
                        location=f"groups.{group.name}",
                        message=f"Group lists undeclared field '{member}'",
                    )
                )

    return issues


def format_issue_report(issues: List[SchemaIssue]) -> str:
    """Format schema issues as a readable report."""
    if not issues:
        return "Schema is valid."

    errors = [i for i in issues if i.severity == Severity.ERROR]
    warnings = [i for i in issues if i.severity == Severity.WARNING]

    lines = []

    if errors:
        lines.append(f"Found {len(errors)} error(s):")
        lines.append("-" * 40)
        for error in errors:
            lines.append(str(error))
            lines.append("")

    if warnings:
        lines.append(f"Found {len(warnings)} warning(s):")
        lines.append("-" * 40)
        for warning in warnings:
            lines.append(str(warning))
            lines.append("")

    return "\n".join(lines)

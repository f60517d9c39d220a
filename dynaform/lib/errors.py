"""Structured exception hierarchy for dynaform.

Validation verdicts are never exceptions: validators, adapters and engines
resolve every failure to a result object. The exceptions below cover
configuration problems (bad schemas, unknown fields) and the internal
cancellation signal used by the validation engine.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Union

__all__ = [
    "DynaformError",
    "ConfigurationError",
    "SchemaLoadError",
    "ValidationCancelled",
]


class DynaformError(Exception):
    """Base exception for all dynaform errors.

    Provides structured error information for debugging.
    """

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        self.message = message
        self.details = details or {}
        self.suggestion = suggestion

        parts = [message]

        if details:
            detail_lines = [f"  {k}: {v}" for k, v in details.items()]
            parts.append("\nDetails:")
            parts.extend(detail_lines)

        if suggestion:
            parts.append(f"\nSuggestion: {suggestion}")

        super().__init__("\n".join(parts) if len(parts) > 1 else message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "suggestion": self.suggestion,
        }


class ConfigurationError(DynaformError):
    """Error in form configuration.

    Raised when a schema is invalid or a caller refers to a field the
    form does not declare.
    """

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Any = None,
        **kwargs: Any,
    ) -> None:
        self.field = field
        self.value = value

        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)

        super().__init__(message, details=details, **kwargs)


class SchemaLoadError(ConfigurationError):
    """A form schema or form data file could not be loaded."""

    def __init__(
        self,
        message: str,
        *,
        path: Optional[Union[str, Path]] = None,
        cause: Optional[Exception] = None,
        **kwargs: Any,
    ) -> None:
        self.path = str(path) if path is not None else None
        self.cause = cause

        details = kwargs.pop("details", {})
        if path is not None:
            details["path"] = str(path)
        if cause:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__

        suggestion = kwargs.pop("suggestion", None)
        if not suggestion:
            suggestion = (
                "Check that the file exists and contains a mapping with a "
                "'fields' list. Run 'dynaform SCHEMA --check' for details."
            )

        super().__init__(message, details=details, suggestion=suggestion, **kwargs)


class ValidationCancelled(DynaformError):
    """A field validation was superseded or the engine was disposed.

    Internal signal raised at resumption points; the validation engine
    turns it into a cancelled result and never lets it reach callers.
    """

    def __init__(self, field: Optional[str] = None) -> None:
        self.field = field
        message = "Validation cancelled"
        if field:
            message = f"Validation cancelled for field '{field}'"
        super().__init__(message)

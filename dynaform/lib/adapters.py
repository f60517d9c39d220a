"""Adapters for third-party validation libraries.

Each adapter turns a library-specific schema (a pydantic type, a JSON
Schema document, a marshmallow schema or field) into a flat list of
``FieldError``. Libraries are looked up when an adapter is used, not when
this module is imported, so only pydantic has to be installed; jsonschema
and marshmallow come with the ``adapters`` extra.

A missing library is reported as a validation error, never as a pass.

Example:
    >>> registry = default_adapter_registry()
    >>> errors = asyncio.run(registry["pydantic"].validate(int, "abc", {}))
    >>> errors[0].type
    'int_parsing'
"""

from __future__ import annotations

import importlib.util
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Sequence, Tuple

from dynaform.lib.observability import get_structlog_logger
from dynaform.lib.validators import FieldError
from dynaform.lib.values import UNDEFINED

logger = get_structlog_logger(__name__)

__all__ = [
    "AdapterRegistry",
    "JsonSchemaAdapter",
    "MarshmallowAdapter",
    "PydanticAdapter",
    "ValidatorAdapter",
    "default_adapter_registry",
]

UNKNOWN_FIELD = "unknown"

# Key marshmallow uses for schema-level errors
MARSHMALLOW_SCHEMA_KEY = "_schema"


def _join_path(path: Iterable[Any]) -> str:
    return ".".join(str(part) for part in path)


class ValidatorAdapter:
    """Base class for external validation adapters.

    Subclasses set ``name`` (the key used in ``ExternalValidation``),
    ``library`` (the importable module) and ``display_name``, and implement
    ``_validate``.
    """

    name: str = ""
    library: str = ""
    display_name: str = ""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(library={self.library!r})"

    def is_available(self) -> bool:
        """Whether the library can be imported in this environment."""
        try:
            return importlib.util.find_spec(self.library) is not None
        except (ImportError, ValueError):
            return False

    async def validate(
        self,
        schema: Any,
        value: Any,
        form_data: Mapping[str, Any],
        *,
        field: str = UNKNOWN_FIELD,
    ) -> List[FieldError]:
        """Validate ``value`` against ``schema``.

        Args:
            schema: Library-specific schema object
            value: Value to validate (``UNDEFINED`` is passed on as None)
            form_data: Full form data, offered to libraries that take context
            field: Name reported on errors that carry no path of their own

        Returns:
            Flattened errors, empty when the value is valid
        """
        if value is UNDEFINED:
            value = None

        if not self.is_available():
            return [
                FieldError(
                    field=field,
                    message=f"{self.display_name} library is not available",
                    type="error",
                    value=value,
                )
            ]

        try:
            return list(self._validate(schema, value, form_data, field))
        except Exception as exc:
            logger.warning(
                "adapter_failed",
                adapter=self.name,
                field=field,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return [
                FieldError(
                    field=field,
                    message=str(exc) or f"{self.display_name} validation failed",
                    type="error",
                    value=value,
                )
            ]

    def _validate(
        self, schema: Any, value: Any, form_data: Mapping[str, Any], field: str
    ) -> Iterable[FieldError]:
        raise NotImplementedError


class PydanticAdapter(ValidatorAdapter):
    """Validate with a pydantic model class, type annotation or ``TypeAdapter``.

    Form data is passed as validation context, so model validators can read
    sibling fields through ``info.context``.
    """

    name = "pydantic"
    library = "pydantic"
    display_name = "Pydantic"

    def _validate(
        self, schema: Any, value: Any, form_data: Mapping[str, Any], field: str
    ) -> Iterable[FieldError]:
        from pydantic import TypeAdapter, ValidationError

        type_adapter = schema if isinstance(schema, TypeAdapter) else TypeAdapter(schema)
        try:
            type_adapter.validate_python(value, context=dict(form_data))
        except ValidationError as exc:
            return [
                FieldError(
                    field=_join_path(error["loc"]) or field,
                    message=error["msg"],
                    type=error["type"],
                    value=error.get("input", value),
                )
                for error in exc.errors()
            ]
        return []


class JsonSchemaAdapter(ValidatorAdapter):
    """Validate with a JSON Schema document (any draft jsonschema supports)."""

    name = "jsonschema"
    library = "jsonschema"
    display_name = "jsonschema"

    def _validate(
        self, schema: Any, value: Any, form_data: Mapping[str, Any], field: str
    ) -> Iterable[FieldError]:
        from jsonschema.exceptions import SchemaError
        from jsonschema.validators import validator_for

        validator_class = validator_for(schema)
        try:
            validator_class.check_schema(schema)
        except SchemaError as exc:
            return [
                FieldError(
                    field=field,
                    message=f"Invalid JSON schema: {exc.message}",
                    type="error",
                    value=value,
                )
            ]

        validator = validator_class(schema, format_checker=validator_class.FORMAT_CHECKER)
        return [
            FieldError(
                field=_join_path(error.absolute_path) or field,
                message=error.message,
                type=str(error.validator),
                value=error.instance,
            )
            for error in validator.iter_errors(value)
        ]


def _flatten_messages(messages: Any, path: str = "") -> Iterator[Tuple[str, str]]:
    """Flatten marshmallow's nested error messages into (path, message) pairs."""
    if isinstance(messages, Mapping):
        for key, nested in messages.items():
            key_path = f"{path}.{key}" if path else str(key)
            yield from _flatten_messages(nested, key_path)
    elif isinstance(messages, (list, tuple)):
        for message in messages:
            yield from _flatten_messages(message, path)
    else:
        yield path, str(messages)


class MarshmallowAdapter(ValidatorAdapter):
    """Validate with a marshmallow ``Schema`` (class or instance) or ``Field``.

    A field deserializes the value directly; a schema validates a mapping
    value and reports one error per message, with ``_schema`` level
    messages attributed to the form field itself.
    """

    name = "marshmallow"
    library = "marshmallow"
    display_name = "marshmallow"

    def _validate(
        self, schema: Any, value: Any, form_data: Mapping[str, Any], field: str
    ) -> Iterable[FieldError]:
        import marshmallow

        if isinstance(schema, type) and issubclass(schema, marshmallow.Schema):
            schema = schema()

        if isinstance(schema, marshmallow.fields.Field):
            try:
                schema.deserialize(value)
            except marshmallow.ValidationError as exc:
                return self._to_errors(exc.messages, field, value)
            return []

        if isinstance(schema, marshmallow.Schema):
            return self._to_errors(schema.validate(value), field, value)

        raise TypeError(
            f"Unsupported marshmallow schema type: {type(schema).__name__}"
        )

    @staticmethod
    def _to_errors(messages: Any, field: str, value: Any) -> List[FieldError]:
        errors = []
        for path, message in _flatten_messages(messages):
            if path in ("", MARSHMALLOW_SCHEMA_KEY):
                path = field
            errors.append(FieldError(field=path, message=message, type="validation", value=value))
        return errors


class AdapterRegistry(Mapping):
    """Read-only mapping of adapter name to adapter.

    Registries are never modified in place; ``with_adapter`` returns a new
    registry, so an engine's adapters cannot change underneath it.
    """

    def __init__(self, adapters: Iterable[ValidatorAdapter] = ()) -> None:
        self._adapters: Mapping[str, ValidatorAdapter] = MappingProxyType(
            {adapter.name: adapter for adapter in adapters}
        )

    def __getitem__(self, name: str) -> ValidatorAdapter:
        return self._adapters[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._adapters)

    def __len__(self) -> int:
        return len(self._adapters)

    def __repr__(self) -> str:
        return f"AdapterRegistry({list(self._adapters)})"

    def available(self) -> List[str]:
        """Names of adapters whose library is installed."""
        return [name for name, adapter in self._adapters.items() if adapter.is_available()]

    def with_adapter(self, adapter: ValidatorAdapter) -> "AdapterRegistry":
        """Return a new registry with ``adapter`` added or replacing its namesake."""
        adapters: Dict[str, ValidatorAdapter] = dict(self._adapters)
        adapters[adapter.name] = adapter
        return AdapterRegistry(adapters.values())

    def status(self) -> Sequence[Tuple[str, str, bool]]:
        """(name, library, available) for every adapter, in registration order."""
        return [
            (name, adapter.library, adapter.is_available())
            for name, adapter in self._adapters.items()
        ]


def default_adapter_registry() -> AdapterRegistry:
    """Registry with the pydantic, jsonschema and marshmallow adapters."""
    return AdapterRegistry([PydanticAdapter(), JsonSchemaAdapter(), MarshmallowAdapter()])

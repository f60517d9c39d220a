"""Tests for external validation adapters."""

from __future__ import annotations

import asyncio
from typing import Any, Dict

import pytest
from pydantic import BaseModel, TypeAdapter, field_validator
from structlog.testing import capture_logs

from dynaform.lib.adapters import (
    AdapterRegistry,
    JsonSchemaAdapter,
    MarshmallowAdapter,
    PydanticAdapter,
    ValidatorAdapter,
    default_adapter_registry,
)
from dynaform.lib.values import UNDEFINED


def run(adapter: ValidatorAdapter, schema: Any, value: Any, form_data: Dict[str, Any] = None, **kwargs):
    return asyncio.run(adapter.validate(schema, value, form_data or {}, **kwargs))


class MissingLibraryAdapter(ValidatorAdapter):
    """Adapter whose library is never installed."""

    name = "ghost"
    library = "dynaform_no_such_library"
    display_name = "Ghost"

    def _validate(self, schema, value, form_data, field):
        raise AssertionError("must not be called")


class ExplodingAdapter(ValidatorAdapter):
    """Adapter whose library raises an unexpected error."""

    name = "exploding"
    library = "json"
    display_name = "Exploding"

    def _validate(self, schema, value, form_data, field):
        raise RuntimeError("library blew up")


class Address(BaseModel):
    street: str
    zip_code: str

    @field_validator("zip_code")
    @classmethod
    def five_digits(cls, v: str) -> str:
        if not (v.isdigit() and len(v) == 5):
            raise ValueError("zip code must be 5 digits")
        return v


class TestAdapterBase:
    """Tests for behaviour shared by every adapter."""

    def test_unavailable_library_is_an_error(self) -> None:
        adapter = MissingLibraryAdapter()
        assert adapter.is_available() is False
        errors = run(adapter, {}, "value", field="email")
        assert len(errors) == 1
        assert errors[0].message == "Ghost library is not available"
        assert errors[0].type == "error"
        assert errors[0].field == "email"

    def test_library_exception_becomes_error(self) -> None:
        with capture_logs() as logs:
            errors = run(ExplodingAdapter(), {}, "value")
        assert [(e.message, e.type, e.field) for e in errors] == [("library blew up", "error", "unknown")]
        assert any(entry["event"] == "adapter_failed" for entry in logs)


class TestPydanticAdapter:
    """Tests for the pydantic adapter."""

    def test_valid_value(self) -> None:
        assert run(PydanticAdapter(), int, "42") == []

    def test_scalar_error(self) -> None:
        errors = run(PydanticAdapter(), int, "abc", field="age")
        assert len(errors) == 1
        assert errors[0].field == "age"
        assert errors[0].type == "int_parsing"

    def test_model_errors_are_flattened(self) -> None:
        errors = run(PydanticAdapter(), Address, {"zip_code": "12"})
        fields = {error.field for error in errors}
        assert fields == {"street", "zip_code"}
        assert any("5 digits" in error.message for error in errors)

    def test_accepts_type_adapter(self) -> None:
        assert run(PydanticAdapter(), TypeAdapter(list[int]), [1, "2"]) == []

    def test_form_data_is_validation_context(self) -> None:
        class Confirm(BaseModel):
            value: str

            @field_validator("value")
            @classmethod
            def matches_password(cls, v, info):
                if v != (info.context or {}).get("password"):
                    raise ValueError("passwords differ")
                return v

        adapter = PydanticAdapter()
        assert run(adapter, Confirm, {"value": "pw"}, {"password": "pw"}) == []
        errors = run(adapter, Confirm, {"value": "pw"}, {"password": "other"})
        assert "passwords differ" in errors[0].message

    def test_undefined_is_passed_as_none(self) -> None:
        assert run(PydanticAdapter(), type(None), UNDEFINED) == []


class TestJsonSchemaAdapter:
    """Tests for the jsonschema adapter."""

    @pytest.fixture(autouse=True)
    def _require_jsonschema(self) -> None:
        pytest.importorskip("jsonschema")

    def test_valid_value(self) -> None:
        assert run(JsonSchemaAdapter(), {"type": "integer", "minimum": 1}, 5) == []

    def test_errors_carry_keyword_and_path(self) -> None:
        schema = {
            "type": "object",
            "properties": {"age": {"type": "integer", "minimum": 18}},
            "required": ["name"],
        }
        errors = run(JsonSchemaAdapter(), schema, {"age": 10}, field="person")
        by_type = {error.type: error for error in errors}
        assert by_type["minimum"].field == "age"
        assert by_type["required"].field == "person"

    def test_invalid_schema(self) -> None:
        errors = run(JsonSchemaAdapter(), {"type": "not-a-type"}, 1)
        assert len(errors) == 1
        assert errors[0].message.startswith("Invalid JSON schema")


class TestMarshmallowAdapter:
    """Tests for the marshmallow adapter."""

    @pytest.fixture(autouse=True)
    def _require_marshmallow(self) -> None:
        pytest.importorskip("marshmallow")

    def test_field(self) -> None:
        from marshmallow import fields, validate

        field = fields.Integer(validate=validate.Range(min=1))
        assert run(MarshmallowAdapter(), field, "5") == []
        errors = run(MarshmallowAdapter(), field, "0", field="count")
        assert errors[0].field == "count"

    def test_schema_class_errors_are_flattened(self) -> None:
        from marshmallow import Schema, fields

        class Person(Schema):
            name = fields.String(required=True)
            email = fields.Email()

        errors = run(MarshmallowAdapter(), Person, {"email": "bad"})
        assert {error.field for error in errors} == {"name", "email"}

    def test_unsupported_schema_type(self) -> None:
        errors = run(MarshmallowAdapter(), object(), 1)
        assert errors[0].type == "error"
        assert "Unsupported marshmallow schema type" in errors[0].message


class TestAdapterRegistry:
    """Tests for the immutable registry."""

    def test_default_registry(self) -> None:
        registry = default_adapter_registry()
        assert list(registry) == ["pydantic", "jsonschema", "marshmallow"]
        assert "pydantic" in registry.available()

    def test_with_adapter_returns_new_registry(self) -> None:
        registry = default_adapter_registry()
        extended = registry.with_adapter(MissingLibraryAdapter())
        assert "ghost" in extended
        assert "ghost" not in registry
        assert "ghost" not in extended.available()

    def test_with_adapter_replaces_namesake(self) -> None:
        class FakePydantic(PydanticAdapter):
            pass

        replacement = FakePydantic()
        registry = default_adapter_registry().with_adapter(replacement)
        assert registry["pydantic"] is replacement
        assert len(registry) == 3

    def test_get_missing(self) -> None:
        assert AdapterRegistry().get("pydantic") is None

    def test_status(self) -> None:
        status = AdapterRegistry([PydanticAdapter(), MissingLibraryAdapter()]).status()
        assert status == [("pydantic", "pydantic", True), ("ghost", "dynaform_no_such_library", False)]

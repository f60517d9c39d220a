"""Shared fixtures for dynaform tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Generator

import pytest
import structlog

from dynaform.lib.settings import FormSettings, get_settings


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Drop the cached settings so environment changes in one test don't leak."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def quiet_structlog() -> Generator[None, None, None]:
    """Keep unconfigured structlog from printing events into captured stdout."""
    structlog.configure(logger_factory=structlog.ReturnLoggerFactory())
    yield
    structlog.reset_defaults()


@pytest.fixture
def settings() -> FormSettings:
    """Settings with a short debounce so timing tests stay fast."""
    return FormSettings(debounce_ms=20, fallback_error_message="Validation error")


@pytest.fixture
def signup_schema() -> Dict[str, Any]:
    """A small form exercising validation and conditional logic."""
    return {
        "title": "Sign up",
        "fields": [
            {
                "name": "email",
                "type": "email",
                "validation": {"required": True, "email": True},
            },
            {
                "name": "age",
                "type": "number",
                "validation": {"min": 18},
            },
            {"name": "hasJob", "type": "checkbox"},
            {
                "name": "salary",
                "type": "number",
                "validation": {"min": 0},
                "conditions": {
                    "show": [{"field": "hasJob", "operator": "equals", "value": True}],
                    "required": [{"field": "hasJob", "operator": "equals", "value": True}],
                },
            },
        ],
        "config": {"debounceMs": 0},
    }


@pytest.fixture
def schema_file(tmp_path: Path) -> Generator[Path, None, None]:
    """Create a temporary YAML form schema."""
    schema = tmp_path / "signup.yaml"
    schema.write_text(
        """
title: Sign up
fields:
  - name: email
    type: email
    validation:
      required: true
      email: true
  - name: hasJob
    type: checkbox
  - name: salary
    type: number
    validation:
      min: 0
    conditions:
      show:
        - field: hasJob
          operator: equals
          value: true
""",
        encoding="utf-8",
    )
    yield schema

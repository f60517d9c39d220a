"""Tests for logging setup."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Generator

import pytest
import structlog

from dynaform.lib.observability import (
    get_structlog_logger,
    setup_logging,
    setup_logging_from_settings,
)
from dynaform.lib.settings import FormSettings


@pytest.fixture(autouse=True)
def restore_logging() -> Generator[None, None, None]:
    """Put the root logger and structlog back the way they were."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    structlog.reset_defaults()


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_levels(self) -> None:
        setup_logging()
        assert logging.getLogger().level == logging.INFO
        setup_logging(verbose=True)
        assert logging.getLogger().level == logging.DEBUG

    def test_replaces_handlers(self) -> None:
        setup_logging()
        setup_logging()
        assert len(logging.getLogger().handlers) == 1

    def test_json_log_file(self, tmp_path: Path) -> None:
        log_file = tmp_path / "forms.log"
        setup_logging(json_format=True, log_file=str(log_file))
        get_structlog_logger("dynaform.test").info("form_submitted", valid=True)
        for handler in logging.getLogger().handlers:
            handler.flush()

        record = json.loads(log_file.read_text(encoding="utf-8").strip().splitlines()[-1])
        assert record["event"] == "form_submitted"
        assert record["valid"] is True
        assert record["logger"] == "dynaform.test"
        assert record["level"] == "info"

    def test_from_settings(self, tmp_path: Path) -> None:
        log_file = tmp_path / "settings.log"
        settings = FormSettings(log_level="DEBUG", log_format="json", log_file=str(log_file), _env_file=None)
        setup_logging_from_settings(settings)
        assert logging.getLogger().level == logging.DEBUG
        assert len(logging.getLogger().handlers) == 2

    def test_flags_override_settings(self, tmp_path: Path) -> None:
        settings = FormSettings(
            log_level="INFO", log_format="console", log_file=str(tmp_path / "unused.log"), _env_file=None
        )
        override = tmp_path / "flag.log"
        setup_logging_from_settings(settings, verbose=True, log_file=str(override))
        assert logging.getLogger().level == logging.DEBUG
        files = [h.baseFilename for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)]
        assert files == [str(override)]

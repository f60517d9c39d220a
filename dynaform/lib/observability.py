"""Logging utilities for dynaform.

Library modules obtain loggers through ``get_structlog_logger`` and emit
structured events; only applications (or the CLI) call ``setup_logging``.
Structlog is routed through the standard library so third-party loggers
share the same handlers and formatting.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, List, Optional

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from dynaform.lib.settings import FormSettings

__all__ = [
    "get_structlog_logger",
    "setup_logging",
    "setup_logging_from_settings",
]


def _shared_processors() -> List[Processor]:
    """Processors applied to both structlog and foreign stdlib records."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def setup_logging(
    verbose: bool = False,
    json_format: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """Configure logging for dynaform.

    Args:
        verbose: Enable debug-level logging
        json_format: Use JSON output format (for log aggregation)
        log_file: Optional file path to write logs to
    """
    level = logging.DEBUG if verbose else logging.INFO
    shared_processors = _shared_processors()

    renderer: Processor
    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=False,
            exception_formatter=structlog.dev.plain_traceback,
        )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    logging.getLogger("asyncio").setLevel(logging.WARNING)


def setup_logging_from_settings(
    settings: "FormSettings",
    *,
    verbose: bool = False,
    json_format: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """Configure logging from a ``FormSettings`` instance.

    Explicit arguments (usually CLI flags) win over the settings: either
    source can turn on debug output or JSON, and ``log_file`` replaces
    ``settings.log_file``.
    """
    setup_logging(
        verbose=verbose or settings.log_level == "DEBUG",
        json_format=json_format or settings.log_format == "json",
        log_file=log_file or settings.log_file,
    )


def get_structlog_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ from the calling module)

    Returns:
        Structlog logger bound to ``name``
    """
    return structlog.get_logger(name)

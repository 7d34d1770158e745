"""Structured logging setup using structlog."""

from __future__ import annotations

import logging
import sys

import structlog

from .config import ConnectorConfig


def setup_logging(*, json: bool = True, level: str = "INFO") -> None:
    """Configure structlog for a connector process.

    Parameters
    ----------
    json:
        If *True* (the default, suitable for a scheduler-managed process),
        output JSON lines with tracebacks rendered as structured dicts.
        If *False*, use a human-friendly console renderer.
    level:
        Root log level name (e.g. ``"DEBUG"``, ``"INFO"``).

    Logs go to stderr so command output on stdout stays machine-readable.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    renderer: structlog.types.Processor
    if json:
        shared_processors.append(structlog.processors.dict_tracebacks)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())


def setup_logging_from(config: ConnectorConfig) -> None:
    """Configure logging from a connector config and bind the connector name."""
    setup_logging(json=config.log_json, level=config.log_level)
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(connector=config.name)

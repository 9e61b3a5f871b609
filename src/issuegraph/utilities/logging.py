"""
issuegraph.utilities.logging - Structured logging setup.

Every module logs through structlog with an event name plus key/value
context::

    import structlog
    logger = structlog.get_logger()

    logger.warning("issue_unavailable", key="PROJ-1", error="...")

Output always goes to stderr: stdout carries the MCP stdio transport and
the CLI's own output.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog


def configure_logging(
    *,
    level: str = "INFO",
    json_output: bool = False,
) -> None:
    """
    Configure structlog + stdlib logging for the process.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
        json_output: If True, emit JSON lines; otherwise human-readable
                     console output (coloured when stderr is a terminal).

    Calling it again only updates the level; no second handler is added.
    """
    log_level = getattr(logging, str(level).upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

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
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    root = logging.getLogger()
    existing = _structlog_handler(root)
    if existing is None:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)
        root.addHandler(handler)
    else:
        existing.setFormatter(formatter)

    root.setLevel(log_level)

    # Request lines from the HTTP stack are noise at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def configure_from_config(
    config: dict[str, Any], verbose: bool = False, quiet: bool = False
) -> None:
    """Configure logging from the ``[logging]`` section and CLI flags.

    ``verbose`` forces DEBUG and ``quiet`` forces ERROR.
    """
    section = config.get("logging", {})
    level = section.get("level", "INFO")
    if verbose:
        level = "DEBUG"
    elif quiet:
        level = "ERROR"
    configure_logging(level=level, json_output=bool(section.get("json", False)))


def _structlog_handler(root: logging.Logger) -> logging.Handler | None:
    for handler in root.handlers:
        if isinstance(handler, logging.StreamHandler) and isinstance(
            handler.formatter, structlog.stdlib.ProcessorFormatter
        ):
            return handler
    return None

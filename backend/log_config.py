# Cirrus/backend/log_config.py
"""Structured logging configuration for the Cirrus backend.

Usage:
    from log_config import get_logger

    logger = get_logger(__name__)
    logger.info("config_saved", project_id=project_id, name=name)
"""


from __future__ import annotations

import logging
import sys
from typing import Any, Optional

import structlog


def configure_logging(level: str = "info", fmt: str = "json") -> None:
    """Configure structlog and the standard library root logger.

    Should be called once at application startup (``create_app``).

    Args:
        level: Log level name (debug, info, warning, error, critical).
        fmt: ``"json"`` for one JSON object per line, ``"console"`` for
            coloured human readable output during development.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    renderer: Any
    if fmt == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
        force=True,
    )

    # Werkzeug logs every request line at INFO
    logging.getLogger("werkzeug").setLevel(max(log_level, logging.WARNING))


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to ``name``."""
    return structlog.get_logger(name)

from __future__ import annotations

import logging
import os
import sys
from typing import Any, Optional

import structlog

from .config import ENV_LOG_LEVEL


DEFAULT_LEVEL = "WARNING"


def _resolve_level(level: Optional[str]) -> int:
    name = (level or os.environ.get(ENV_LOG_LEVEL) or DEFAULT_LEVEL).strip().upper()
    value = logging.getLevelName(name)
    # getLevelName returns "Level X" for unknown names
    return value if isinstance(value, int) else logging.WARNING


def configure_logging(level: Optional[str] = None, *, json: bool = False) -> None:
    """Configure structlog for the process.

    - `level`: level name; defaults to `BUDGET_LOG_LEVEL`, then WARNING.
    - `json`: render JSON lines instead of the console renderer.
    Output goes to stderr.
    """
    renderer: Any = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer(colors=False)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_resolve_level(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def ensure_logging() -> None:
    """Apply the default configuration unless the host application already did."""
    if not structlog.is_configured():
        configure_logging()


def get_logger(component: str) -> Any:
    return structlog.get_logger(component=component)


__all__ = ["configure_logging", "ensure_logging", "get_logger"]

"""structlog setup shared by the CLI and the engine.

The initial level is read from the environment so that a malformed
config.toml can still be logged. EXTRA_CONTAINER_LOGGING__LEVEL is the same
variable Settings reads for [logging].level; LOG_LEVEL is accepted as a
fallback. Once Settings loads, the CLI calls set_level. Output goes to stderr
so stdout stays clean for `list` and `show-ip`.
"""

from __future__ import annotations

import logging
import os
import sys

import structlog


def initial_level(environ=os.environ) -> int:
    level_name = environ.get("EXTRA_CONTAINER_LOGGING__LEVEL") or environ.get("LOG_LEVEL", "INFO")
    return getattr(logging, level_name.upper(), logging.INFO)


def _setup_logging() -> structlog.stdlib.BoundLogger:
    level = initial_level()

    # Configure stdlib root logger first so structlog's filter_by_level works
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger()


logger = _setup_logging()


def set_level(level_name: str) -> None:
    """Apply the configured level once Settings is available."""
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.getLogger().setLevel(level)

"""
Logging setup.

Router components log through structlog. ``configure_logging`` sends those
events through the standard library so uvicorn, httpx and alertrouter write
to one stream: JSON lines for the server, a console renderer for CLI
commands.

Per-call context (receiver, group key, config file) is attached with
``bind_context``; context that should follow every event inside a block,
such as the HTTP endpoint that received a batch, uses ``log_context``.
"""

import logging
from contextlib import contextmanager
from typing import Any, Iterator

import structlog

# Libraries that log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    return logging.getLevelNamesMapping().get(level.upper(), logging.INFO)


def configure_logging(level: int | str = logging.INFO, json: bool = True) -> None:
    """Configure structlog/standard logging bridge."""
    level = resolve_level(level)
    renderer: Any = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level, format="%(message)s")
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def bind_context(**kwargs: Any) -> structlog.stdlib.BoundLogger:
    """A logger carrying ``kwargs`` on every event it emits."""
    logger = structlog.get_logger()
    return logger.bind(**kwargs)


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Attach ``kwargs`` to every event logged in this block, from any module."""
    with structlog.contextvars.bound_contextvars(**kwargs):
        yield

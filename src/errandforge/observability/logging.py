"""Structured logging for the errand system.

Events are rendered by structlog as JSON lines or as console output. While
a session is being processed (``session_scope``), every event carries its
``session_id`` so the log of one session can be filtered out of a
long-running process.
"""

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Optional

import structlog

_session_id: ContextVar[Optional[str]] = ContextVar("errandforge_session_id", default=None)


def current_session_id() -> Optional[str]:
    """Session bound to the current context, None outside a session scope."""
    return _session_id.get()


@contextmanager
def session_scope(session_id: str) -> Iterator[str]:
    """Bind a session to log events emitted inside the block.

    Scopes nest; leaving a scope restores the enclosing session (or none).
    Each asyncio task works on its own copy of the context, so concurrently
    dispatched items cannot see each other's binding.

    Example:
        >>> with session_scope("session-1"):
        ...     logger.info("relay_started")  # carries session_id="session-1"
    """
    token = _session_id.set(session_id)
    try:
        yield session_id
    finally:
        _session_id.reset(token)


def add_session_id(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """structlog processor injecting the bound session id.

    An explicit ``session_id`` passed with the event is kept.
    """
    session_id = current_session_id()
    if session_id is not None:
        event_dict.setdefault("session_id", session_id)
    return event_dict


def _renderers(json_logs: bool) -> list[Any]:
    if json_logs:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.processors.ExceptionPrettyPrinter(), structlog.dev.ConsoleRenderer()]


def setup_logging(log_level: str = "INFO", json_logs: bool = True) -> None:
    """Configure structlog on top of the standard library logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: JSON lines when True, console output otherwise

    Example:
        >>> setup_logging(log_level="DEBUG", json_logs=False)
        >>> get_logger(__name__).info("daily_scan_started", scans=3)
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_session_id,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            *_renderers(json_logs),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, typically with ``__name__``."""
    return structlog.get_logger(name)

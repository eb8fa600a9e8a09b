"""Session ID logging context for tracing a visitor's conversation.

Every log line carries the chat session ID, so a single visitor's turns
can be followed across the orchestrator, coordinator, and store modules,
including store writes that run in worker threads (``asyncio.to_thread``
copies the current context).

Usage:
    from copilot.logging_context import get_session_logger, session_scope

    logger = get_session_logger(__name__)
    with session_scope("default-chat-session"):
        logger.info("Posting question")
    # 2026-01-01 10:00:00 [copilot.x] [default-chat-session] INFO: Posting question
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Iterator

NO_SESSION = "-"

SESSION_LOG_FORMAT = "%(asctime)s [%(name)s] [%(session_id)s] %(levelname)s: %(message)s"

_session_id: ContextVar[str] = ContextVar("session_id", default=NO_SESSION)


def set_session_id(session_id: str) -> Token:
    """Set the session ID for the current async context."""
    return _session_id.set(session_id or NO_SESSION)


def get_session_id() -> str:
    """Retrieve the current session ID."""
    return _session_id.get()


@contextmanager
def session_scope(session_id: str) -> Iterator[None]:
    """Tag log lines with ``session_id`` inside the block, then restore the previous ID."""
    token = set_session_id(session_id)
    try:
        yield
    finally:
        _session_id.reset(token)


class SessionIdFilter(logging.Filter):
    """Injects session_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = _session_id.get()  # type: ignore[attr-defined]
        return True


def _has_session_filter(filterer: logging.Filterer) -> bool:
    return any(isinstance(f, SessionIdFilter) for f in filterer.filters)


def get_session_logger(name: str) -> logging.Logger:
    """Return a logger with the SessionIdFilter attached."""
    logger = logging.getLogger(name)
    if not _has_session_filter(logger):
        logger.addFilter(SessionIdFilter())
    return logger


def configure_logging(level: int = logging.INFO) -> None:
    """Install the root handler with the session ID in its format.

    The filter is attached to the root handlers as well, so records from
    plain ``logging.getLogger`` loggers render ``%(session_id)s`` too.
    """
    logging.basicConfig(level=level, format=SESSION_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    for handler in logging.getLogger().handlers:
        if not _has_session_filter(handler):
            handler.addFilter(SessionIdFilter())

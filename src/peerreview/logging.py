"""Structured logging for peerreview.

Log lines are emitted through structlog and handed to a single stdlib
handler on the root logger, either stdout or a size-rotated file. Records
are rendered as JSON for collection or as coloured console lines for local
work.

Every line logged while handling a request carries the review container,
the acting user and a request id once they are bound:

    >>> from peerreview.config import LoggingConfig
    >>> from peerreview.logging import get_logger, review_request, setup_logging
    >>>
    >>> setup_logging(LoggingConfig(format="console"))
    >>> logger = get_logger(__name__)
    >>> with review_request(review_obj=42, user_id=7):
    ...     logger.info("review_submitted", form_id=3)
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

import structlog

from peerreview.config import LoggingConfig


def _review_context(
    review_obj: int, user_id: int | None, request_id: str | None = None
) -> dict[str, Any]:
    context: dict[str, Any] = {"review_obj": review_obj}
    if user_id is not None:
        context["user_id"] = user_id
    if request_id is not None:
        context["request_id"] = request_id
    return context


def bind_review_context(review_obj: int, user_id: int | None = None) -> None:
    """Bind the review container and acting user to all subsequent logs.

    The binding lives in the current context until
    ``structlog.contextvars.clear_contextvars()`` is called.
    """
    structlog.contextvars.bind_contextvars(**_review_context(review_obj, user_id))


@contextmanager
def review_request(
    review_obj: int,
    user_id: int | None = None,
    request_id: str | None = None,
) -> Iterator[str]:
    """Scope log context to the handling of one request.

    Args:
        review_obj: Id of the review container the request operates on.
        user_id: Id of the acting user, if known.
        request_id: Id to correlate the request's log lines; generated if None.

    Yields:
        The request id bound to the log context.
    """
    request_id = request_id or uuid.uuid4().hex
    with structlog.contextvars.bound_contextvars(
        **_review_context(review_obj, user_id, request_id)
    ):
        yield request_id


def _build_handler(config: LoggingConfig) -> logging.Handler:
    if config.file is None:
        return logging.StreamHandler(sys.stdout)

    config.file.parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(
        filename=config.file,
        maxBytes=config.rotation_size_mb * 1024 * 1024,
        backupCount=config.retention_count,
        encoding="utf-8",
    )


def _build_renderer(config: LoggingConfig) -> Any:
    if config.format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def setup_logging(config: LoggingConfig) -> None:
    """Install the handler and configure structlog.

    Replaces any handler already attached to the root logger, so calling it
    again reconfigures logging.

    Args:
        config: Logging section of PeerReviewConfig.
    """
    level = getattr(logging, config.level)

    handler = _build_handler(config)
    handler.setLevel(level)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _build_renderer(config),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, typically for ``__name__``."""
    return structlog.get_logger(name)

"""Structured logging for the action resolution pipeline.

Every component logs through structlog with key/value events. A workflow
run binds its id and type with ``workflow_context`` so each event the
steps emit can be traced back to the run that produced it.

Example:
    >>> from tabletop_actions.core.logging import get_logger, workflow_context
    >>> logger = get_logger(__name__)
    >>> with workflow_context("a1b2", "attack-damage"):
    ...     logger.info("Step completed", step="attack")
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import Processor


if TYPE_CHECKING:
    from structlog.types import EventDict, WrappedLogger

    from tabletop_actions.core.config import Settings


APP_NAME = "tabletop_actions"
STDLIB_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def add_app_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Tag every event with the package name.

    Args:
        logger: The wrapped logger instance.
        method_name: Name of the logging method called.
        event_dict: The event dictionary to modify.

    Returns:
        The event dictionary with ``app`` set.
    """
    event_dict["app"] = APP_NAME
    return event_dict


def build_processors(*, json_format: bool) -> list[Processor]:
    """Processor chain for console or JSON output.

    Args:
        json_format: Render JSON lines instead of colored console output.

    Returns:
        The structlog processors, renderer last.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_app_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if json_format:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(colors=True, exception_formatter=structlog.dev.plain_traceback)
        )
    return processors


def configure_logging(
    *,
    level: str = "INFO",
    json_format: bool = False,
    log_file: str | None = None,
) -> None:
    """Configure structlog and the standard library root logger.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: Emit JSON lines for log shippers.
        log_file: Also write standard library records to this file.

    Example:
        >>> configure_logging(level="DEBUG", json_format=True)
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    structlog.configure(
        processors=build_processors(json_format=json_format),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format=STDLIB_FORMAT, level=numeric_level, stream=sys.stdout, force=True)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter(STDLIB_FORMAT))
        logging.getLogger().addHandler(file_handler)


def configure_from_settings(settings: Settings | None = None) -> None:
    """Configure logging from settings.

    Args:
        settings: Settings to read; defaults to ``get_settings()``.
    """
    if settings is None:
        from tabletop_actions.core.config import get_settings

        settings = get_settings()
    level = "DEBUG" if settings.debug else settings.log_level
    configure_logging(level=level, json_format=settings.json_logs)


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a logger, typically with ``__name__``."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind key/value pairs to every subsequent event in this context.

    Example:
        >>> bind_context(actor="Kira")
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Drop every bound context variable."""
    structlog.contextvars.clear_contextvars()


@contextmanager
def workflow_context(workflow_id: str, workflow_type: str, **extra: Any) -> Iterator[None]:
    """Bind a workflow run's identity for the length of a block.

    Previously bound values are restored on exit, so nested runs (a
    workflow triggered from inside another) keep their own context.

    Args:
        workflow_id: Run identifier.
        workflow_type: Workflow name.
        **extra: Additional key/value pairs to bind.
    """
    with structlog.contextvars.bound_contextvars(
        workflow_id=workflow_id,
        workflow_type=workflow_type,
        **extra,
    ):
        yield


__all__ = [
    "APP_NAME",
    "add_app_context",
    "build_processors",
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "bind_context",
    "clear_context",
    "workflow_context",
]

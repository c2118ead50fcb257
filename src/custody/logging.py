"""Structured logging for the treasury.

Log calls use an event name plus key/value context:

    logger = get_logger(__name__)
    logger.info("disbursement_recorded", tenant=1, token="usdc", quantity=50)

JSON output is meant for log aggregation; the console renderer is used
when attached to a terminal.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

_SERVICE_NAME = "custody"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    event_dict.setdefault("service", _SERVICE_NAME)
    return event_dict


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # Resolved per logger so a replaced sys.stderr is honoured
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(
    level: str = "INFO",
    json_format: Optional[bool] = None,
    service: str = "custody",
) -> None:
    """Configure structlog once at process start.

    Args:
        level: Minimum level (DEBUG, INFO, WARNING, ERROR).
        json_format: True for JSON, False for console, None for JSON when
            stdout is not a TTY.
        service: Service name added to every record.
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    if json_format is None:
        json_format = not sys.stdout.isatty()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        _add_service_metadata,
    ]
    if json_format:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


def get_logger(name: Optional[str] = None) -> Any:
    return structlog.get_logger(name)

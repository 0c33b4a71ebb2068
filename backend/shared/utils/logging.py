"""
Structured logging for all Scorecast services.
Uses structlog for context-rich, machine-parseable logs.
"""
from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

import structlog

from shared.config import Environment, Settings, get_settings

_NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "asyncio", "sqlalchemy.engine")


def setup_logging(
    service_name: str,
    extra_context: dict[str, Any] | None = None,
    settings: Settings | None = None,
    stream: TextIO | None = None,
) -> None:
    """
    Configure structured logging for a service.

    Args:
        service_name: The service identifier (api, scheduler).
        extra_context: Additional static context fields bound to every log entry.
        settings: Explicit settings; defaults to the process-wide instance.
        stream: Log destination; stdout unless the process reserves stdout for output.
    """
    settings = settings or get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    render_chain: list[structlog.types.Processor]
    if settings.environment == Environment.DEV:
        render_chain = [structlog.dev.ConsoleRenderer(colors=True)]
    else:
        # JSON lines carry tracebacks as a string field, e.g. poll_tick_failed
        render_chain = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

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
            *render_chain,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    structlog.contextvars.clear_contextvars()
    bound: dict[str, Any] = {"service": service_name, "instance_id": settings.instance_id}
    if extra_context:
        bound.update(extra_context)
    structlog.contextvars.bind_contextvars(**bound)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a named structured logger."""
    return structlog.get_logger(name)


# Re-exported so callers can scope per-cycle context (cycle_id, trigger) to a block.
bound_log_context = structlog.contextvars.bound_contextvars

"""
fleet-spine logging - structured events for orchestrator runs.

Events are named ``<area>.<stage>[.<outcome>]`` (``fleet.readiness.tick``,
``command.poll.failed``, ``resource.imported``). The orchestrator binds the
run's ``document_name`` and, once known, its ``dispatch_id`` into the
contextvars, so every readiness tick, poll tick and output line of one run
carries them without being passed around.

In JSON mode run fields are renamed to ECS keys so a log aggregator can
group a run by ``command.id`` and a failing member by ``host.id``::

    dispatch_id    -> command.id
    document_name  -> command.document
    target_id      -> host.id
    timestamp      -> @timestamp
    level          -> log.level

Console mode keeps the short names.

Examples:
    >>> from fleetspine.core.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> get_logger(__name__).info("fleet.readiness.tick", online=2, provisioned=3)
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from fleetspine import __version__

ECS_FIELDS: dict[str, str] = {
    "dispatch_id": "command.id",
    "document_name": "command.document",
    "target_id": "host.id",
    "timestamp": "@timestamp",
    "level": "log.level",
}


def _add_service(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service.name", "fleet-spine")
    event_dict.setdefault("service.version", __version__)
    return event_dict


def _rename_ecs_fields(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    for short, ecs in ECS_FIELDS.items():
        if short in event_dict:
            event_dict[ecs] = event_dict.pop(short)
    return event_dict


def configure_logging(level: str = "INFO", json_format: bool | None = None) -> None:
    """Configure structlog for the process.

    Args:
        level: Minimum level (DEBUG, INFO, WARNING, ERROR).
        json_format: JSON lines with ECS field names when true, console
            output when false, JSON unless stdout is a tty when None.
    """
    if json_format is None:
        json_format = not sys.stdout.isatty()

    processors: list[Processor] = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service,
    ]
    if json_format:
        processors += [_rename_ecs_fields, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    numeric_level = getattr(logging, level.upper())
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # botocore logs through the stdlib; keep it in step with our level
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Bind run fields for the duration of a ``with`` block.

    Example:
        with LogContext(document_name="AWS-RunShellScript"):
            logger.info("fleet.readiness.started")
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args: Any) -> None:
        unbind_context(*self._context.keys())


__all__ = [
    "ECS_FIELDS",
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]

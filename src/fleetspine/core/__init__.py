"""fleet-spine core -- errors, logging, settings and collaborator protocols.

Architecture::

    errors.py      Typed error hierarchy (FleetSpineError and stage errors)
    logging.py     structlog configuration and context binding
    settings.py    FleetSettings (pydantic-settings, FLEETSPINE_* env vars)
    protocols.py   Registry, command service and object store contracts
"""

from fleetspine.core.errors import (
    ConfigError,
    DispatchNotFoundError,
    DispatchSubmissionError,
    ErrorCategory,
    ErrorContext,
    FleetSpineError,
    InvocationFailedError,
    InvocationQueryError,
    OutputRetrievalError,
    PollTimeoutError,
    ReadinessTimeoutError,
    RegistryQueryError,
    RequestValidationError,
    StateCorruptError,
    StateNotFoundError,
)
from fleetspine.core.logging import LogContext, bind_context, configure_logging, get_logger
from fleetspine.core.settings import FleetSettings, clear_settings_cache, get_settings

__all__ = [
    "ConfigError",
    "DispatchNotFoundError",
    "DispatchSubmissionError",
    "ErrorCategory",
    "ErrorContext",
    "FleetSpineError",
    "InvocationFailedError",
    "InvocationQueryError",
    "OutputRetrievalError",
    "PollTimeoutError",
    "ReadinessTimeoutError",
    "RegistryQueryError",
    "RequestValidationError",
    "StateNotFoundError",
    "StateCorruptError",
    "LogContext",
    "bind_context",
    "configure_logging",
    "get_logger",
    "FleetSettings",
    "clear_settings_cache",
    "get_settings",
]

"""
Structlog-based logging configuration for worldserver.

structlog renders on top of the standard library logging module so that
uvicorn, SQLAlchemy and application loggers all share one output stream.
"""

# pylint: disable=too-few-public-methods  # Reason: Logging configuration state holder with focused responsibility

import logging
import sys
from typing import Any

import structlog
from structlog.contextvars import merge_contextvars
from structlog.stdlib import BoundLogger, LoggerFactory

from .logging_processors import sanitize_sensitive_data, stringify_uuids

# NOTE: Infrastructure code may call structlog.get_logger() directly; everything
# else must go through get_logger() below.
logger = structlog.get_logger(__name__)


class _LoggingState:
    """State container for logging initialization to avoid global statements."""

    initialized: bool = False
    signature: tuple[str, str, str] | None = None


_logging_state = _LoggingState()


def configure_structlog(environment: str = "development", log_level: str = "INFO", log_format: str = "json") -> None:
    """
    Configure structlog and the root stdlib logger.

    Args:
        environment: Environment name, added to every log entry
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: "json" for machine-readable output, "console" for key/value lines
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    shared_processors: list[Any] = [
        sanitize_sensitive_data,
        merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        stringify_uuids,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    def add_environment(_logger: Any, _name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("environment", environment)
        return event_dict

    renderer: Any
    if log_format == "console":
        renderer = structlog.processors.KeyValueRenderer(key_order=["timestamp", "level", "event"])
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[structlog.stdlib.filter_by_level, add_environment, *shared_processors, renderer],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=False,
    )

    root_logger = logging.getLogger()
    if not any(getattr(h, "_worldserver_handler", False) for h in root_logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(message)s"))
        handler._worldserver_handler = True  # type: ignore[attr-defined]  # Reason: marker attribute to avoid duplicate handlers on reconfigure
        root_logger.addHandler(handler)
    root_logger.setLevel(level)


def setup_logging(
    environment: str = "development",
    log_level: str = "INFO",
    log_format: str = "json",
    *,
    force_reconfigure: bool = False,
) -> None:
    """
    Set up process-wide logging once.

    Repeated calls with the same settings are no-ops unless force_reconfigure is set.
    """
    signature = (environment, log_level.upper(), log_format)
    if _logging_state.initialized and not force_reconfigure and _logging_state.signature == signature:
        get_logger("worldserver.structured_logging.setup").debug(
            "setup_logging skipped; logging system already initialized",
            environment=environment,
        )
        return

    configure_structlog(environment, log_level, log_format)
    _configure_uvicorn_logging()

    _logging_state.initialized = True
    _logging_state.signature = signature
    get_logger("worldserver.structured_logging.setup").info(
        "Logging system initialized",
        environment=environment,
        log_level=log_level,
        log_format=log_format,
    )


def _configure_uvicorn_logging() -> None:
    """Route uvicorn's loggers through the root handler."""
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = []
        uvicorn_logger.propagate = True


def get_logger(name: str) -> Any:  # Returns BoundLogger but typed as Any for flexibility
    """
    Get a structlog logger with the specified name.

    This is the public API for obtaining loggers. Application code should use
    this function rather than calling structlog.get_logger() directly.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)


def log_exception_once(
    bound_logger: BoundLogger,
    level: str,
    message: str,
    *,
    exc: Exception | None = None,
    **kwargs: Any,
) -> None:
    """
    Log an exception once, skipping exceptions that have already been logged.

    Args:
        bound_logger: Structlog bound logger instance
        level: Logging level to use (for example "error" or "warning")
        message: Log message to emit
        exc: Optional exception to include in the log entry
        **kwargs: Additional key-value pairs for structured logging
    """
    if exc is not None:
        if getattr(exc, "already_logged", False):
            return
        kwargs.setdefault("error_type", type(exc).__name__)
        kwargs.setdefault("error", str(exc))

    log_method = getattr(bound_logger, level.lower(), bound_logger.error)
    log_method(message, **kwargs)

    if exc is not None:
        marker = getattr(exc, "mark_logged", None)
        if callable(marker):
            marker()

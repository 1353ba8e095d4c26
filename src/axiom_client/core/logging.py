# src/axiom_client/core/logging.py
"""Structured logging configuration for axiom_client.

Library modules log through structlog.get_logger(__name__) and never
configure output themselves. Applications that want the client's diagnostics
rendered call configure_logging().

Architecture:
    structlog hands its events to stdlib logging (wrap_for_formatter), and a
    single ProcessorFormatter renders both those events and plain stdlib
    records from httpx and uvicorn, as JSON or console lines. The handler is
    attached to the library's own loggers, never to the root logger, so the
    host application's logging setup is left alone.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import ProcessorFormatter

PACKAGE_LOGGER = "axiom_client"

# Loggers configure_logging() owns. The third-party ones are held at WARNING
# or above; they are excessively verbose at DEBUG.
LIBRARY_LOGGERS: tuple[str, ...] = (PACKAGE_LOGGER, "httpx", "httpcore", "uvicorn")

HANDLER_NAME = "axiom_client"


def _remove_internal_fields(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Remove the bookkeeping fields ProcessorFormatter always adds."""
    del event_dict["_record"]
    del event_dict["_from_structlog"]
    return event_dict


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
    propagate: bool = False,
) -> None:
    """Render client, httpx and uvicorn diagnostics through structlog.

    Only the loggers in LIBRARY_LOGGERS are touched. Handlers on the root
    logger and on any other logger of the host application stay as they are.
    Calling this again replaces the handler installed by the previous call.

    structlog itself is configured globally, since library modules obtain
    their loggers through structlog.get_logger().

    Args:
        json_output: If True, output JSON. If False, human-readable.
        level: Log level (DEBUG, INFO, WARNING, ERROR) for axiom_client;
            third-party loggers never go below WARNING.
        propagate: Also pass records on to the host's handlers.
    """
    log_level = getattr(logging, level.upper())

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        final_processors: list[Any] = [
            _remove_internal_fields,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        final_processors = [
            _remove_internal_fields,
            structlog.dev.ConsoleRenderer(colors=False),
        ]

    structlog.configure(
        processors=[*shared_processors, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Caching would pin loggers created before a reconfiguration
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(
        ProcessorFormatter(
            processors=final_processors,
            foreign_pre_chain=shared_processors,
        )
    )

    for logger_name in LIBRARY_LOGGERS:
        stdlib_logger = logging.getLogger(logger_name)
        for existing in [h for h in stdlib_logger.handlers if h.get_name() == HANDLER_NAME]:
            stdlib_logger.removeHandler(existing)
            existing.close()
        stdlib_logger.addHandler(handler)
        stdlib_logger.propagate = propagate
        if logger_name == PACKAGE_LOGGER:
            stdlib_logger.setLevel(log_level)
        else:
            stdlib_logger.setLevel(max(log_level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a bound logger for a module.

    Args:
        name: Logger name (typically __name__).

    Returns:
        Bound structlog logger.
    """
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger

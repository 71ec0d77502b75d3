"""
Escher Guard Logging
====================
structlog setup and the event logger handed to the authenticator.

Usage:
    from escher_guard.log import configure_logging, AuthEventLogger

    configure_logging(service_name="suite-api")
    authenticator = create_authenticator(config, AuthEventLogger())
"""

import logging
import sys
from typing import Optional

import structlog


def configure_logging(
    service_name: str,
    level: str = "INFO",
    json_output: bool = True,
) -> None:
    """
    Configure structlog for a service.

    Args:
        service_name: Name bound to every log entry as ``service``
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Render JSON (production) instead of console lines
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service=service_name)

    structlog.get_logger(__name__).info("logging_configured", service=service_name, level=level)


class AuthEventLogger:
    """
    Logger satisfying the authenticator's ``error(event, message, error)`` contract.

    Entries go through structlog with the message and the error type as
    fields and the exception attached for the traceback.
    """

    def __init__(self, name: Optional[str] = None):
        self._logger = structlog.get_logger(name or "escher_guard")

    def error(self, event: str, message: str, error: BaseException) -> None:
        self._logger.error(
            event,
            message=message,
            error_type=type(error).__name__,
            exc_info=error,
        )

"""Logging configuration for the commerce service.

Application code logs through ``structlog.get_logger(__name__)`` with
key/value context. ``configure_logging`` wires structlog onto the standard
library so protean's and uvicorn's records share one output.
"""

import logging
import os
import sys

import structlog


def get_log_level() -> str:
    """Log level for the current environment, overridable with LOG_LEVEL."""
    env = (os.getenv("PROTEAN_ENV") or "development").lower()
    level_map = {
        "production": "INFO",
        "development": "DEBUG",
        "test": "WARNING",
    }
    return os.getenv("LOG_LEVEL", level_map.get(env, "INFO"))


def configure_logging() -> None:
    log_level = get_log_level()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [logging.StreamHandler(sys.stdout)]

    # Protean is chatty about unit-of-work internals
    logging.getLogger("protean").setLevel(logging.WARNING)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if (os.getenv("PROTEAN_ENV") or "").lower() == "production":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_request_context(**kwargs) -> None:
    """Attach context (request id, order id) to every log line of the current request."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()

"""structlog setup for the engine.

Coordinators log snake_case events with key/value context; each public call
binds an `operation_id` so its log lines can be correlated. Output is one JSON
object per line on stdout through the standard logging module.
"""
import logging
import sys
import uuid

import structlog


def setup_structured_logging(log_level: str = "INFO"):
    """
    Route structlog through stdlib logging and render JSON.

    Call once at startup, typically with Settings.log_level.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def generate_operation_id() -> str:
    """Short unique id, e.g. op-3f2a9c1b7d4e."""
    return f"op-{uuid.uuid4().hex[:12]}"

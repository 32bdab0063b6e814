"""Structured logging setup for the synthesizer."""

import logging
import os

import structlog


def setup_logging(service_name: str = "banking-telemetry"):
    # TELEMETRY_LOG_LEVEL takes a stdlib level name such as DEBUG or WARNING
    level = logging.getLevelName(os.getenv("TELEMETRY_LOG_LEVEL", "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    return structlog.get_logger(service=service_name)

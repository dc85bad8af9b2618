"""
Logging configuration shared by the API and the ingestion worker.
Uses structlog; JSON lines in production, coloured console output locally.
"""

import logging
import sys

import structlog

from .config import JSON_LOGS, LOG_LEVEL

# Libraries that log every request at INFO
_NOISY_LOGGERS = ("httpx", "openai", "sentence_transformers", "urllib3")


def setup_logging(log_level: str = "INFO", json_logs: bool = False):
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_logs: If True, output JSON. If False, use pretty console output.

    Returns:
        A structlog logger; pipeline code binds job / chat ids onto it
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    # Standard logging still carries uvicorn / celery / sqlalchemy output
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]

    if json_logs:
        renderers = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderers = [
            structlog.dev.ConsoleRenderer(
                colors=sys.stdout.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        ]

    structlog.configure(
        processors=shared_processors + renderers,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )

    return structlog.get_logger("lexchat")


logger = setup_logging(log_level=LOG_LEVEL, json_logs=JSON_LOGS)

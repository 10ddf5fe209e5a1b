"""Structured logging setup using structlog.

Uses one shared processor chain (context vars, log level, timestamps,
exception info) that ends in either a coloured ConsoleRenderer for local
development or a JSONRenderer for production.  The environment is passed
in from :class:`~src.config.settings.Settings` so that the worker pool,
the API and the tests all agree on the format.

Standard-library ``logging`` is bridged through the same renderer so that
uvicorn, httpx, boto3 and chromadb output looks identical to ours.
"""

from __future__ import annotations

import logging
import sys

import structlog

# Third-party loggers that are far too chatty at INFO.
_NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "httpx", "chromadb.telemetry")


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def configure_logging(
    log_level: str = "INFO",
    app_env: str = "development",
    json_output: bool = False,
) -> structlog.BoundLogger:
    """Configure structlog for the given environment.

    Args:
        log_level: Logging level string (DEBUG, INFO, WARNING, ERROR).
        app_env: Application environment; ``"production"`` selects JSON.
        json_output: Force JSON output regardless of ``app_env``.

    Returns:
        A configured structlog BoundLogger.
    """
    shared = _shared_processors()
    if json_output or app_env == "production":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=[*shared, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a structlog logger bound with ``logger_name``.

    Falls back to :func:`configure_logging` defaults when nothing has
    configured structlog yet (scripts, ad-hoc imports).
    """
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name)

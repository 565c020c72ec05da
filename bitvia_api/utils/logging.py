"""Logging configuration for the Bitvia explorer API."""

import logging
import sys
from pathlib import Path

import structlog
from structlog.stdlib import LoggerFactory

from bitvia_api.config.settings import APISettings

# Per-request chatter from the node client; only shown in debug runs
NOISY_LOGGERS = ("httpx", "httpcore")


def setup_logging(settings: APISettings) -> None:
    """Configure structlog on top of stdlib logging.

    Values bound with ``structlog.contextvars.bind_contextvars`` (the request
    id, set by the HTTP middleware) are merged into every event logged while
    the request is being served.
    """
    level = getattr(logging, settings.log_level.upper())
    json_output = settings.log_format == "json"

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if settings.debug else max(level, logging.WARNING))

    if settings.log_file:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(settings.log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(
            '%(message)s' if json_output else '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        logging.getLogger().addHandler(file_handler)

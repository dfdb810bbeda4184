"""Structlog configuration for civicscrape."""

import logging
import re
import sys

import structlog

from civicscrape.config import LogFormat, ScrapeConfig

# httpx logs every request URL at INFO, query string and access token included
NOISY_LOGGERS = ("httpx", "httpcore", "aiosqlite")

_TOKEN_PATTERN = re.compile(r"(access_token=)[^&\s'\"]+")


def redact_tokens(logger, method_name: str, event_dict: dict) -> dict:
    """Mask Graph API access tokens in any string value of the event."""
    for key, value in event_dict.items():
        if isinstance(value, str) and "access_token=" in value:
            event_dict[key] = _TOKEN_PATTERN.sub(r"\1***", value)
    return event_dict


def _renderer(log_format: LogFormat) -> list:
    if log_format == LogFormat.JSON:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.set_exc_info, structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]


def configure_logging(config: ScrapeConfig | None = None) -> None:
    """
    Route civicscrape events through structlog to stdout.

    Third-party request logging is held at WARNING unless DEBUG is asked for.

    Args:
        config: ScrapeConfig instance, uses defaults if None
    """
    config = config or ScrapeConfig()
    level = logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    noisy_level = level if level <= logging.DEBUG else max(level, logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_tokens,
            *_renderer(config.log_format),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Logger bound to a component name (``graph``, ``orchestrator``, ...)."""
    logger = structlog.get_logger()
    return logger.bind(logger_name=name) if name else logger

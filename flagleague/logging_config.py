"""
structlog configuration. JSON lines on stdout with timestamp, level and logger name.
Modules log snake_case event names with keyword context:

    logger.info("action_recorded", match_id=..., points=6)
"""
from __future__ import annotations

import logging
from typing import Any

import structlog

from flagleague.config import Settings, get_settings


def _normalize_log_level(level: str | None, environment: str) -> int:
    env = environment.lower()
    if level:
        normalized = level.strip().upper()
    else:
        normalized = "INFO" if env == "production" else "DEBUG"
    return logging._nameToLevel.get(normalized, logging.INFO)


def configure_logging(settings: Settings | None = None) -> None:
    """Configure structlog once at process start (API lifespan)."""
    settings = settings or get_settings()
    resolved_level = _normalize_log_level(settings.log_level, settings.environment)
    logging.basicConfig(level=resolved_level)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.EventRenamer("message"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(resolved_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
    )
    structlog.contextvars.bind_contextvars(
        service=settings.service_name, environment=settings.environment
    )


def get_logger(name: str) -> Any:
    # Lazy proxy, so module-level loggers follow configure_logging(). "logger" is a wrap_logger argument.
    return structlog.get_logger(logger_name=name)

"""
Logging Configuration - Shared Layer

Structured logging for the telemetry core. Every module obtains its logger
through ``get_logger`` and emits event-style messages with keyword context,
e.g. ``logger.info("metric_store.cleanup", removed=12)``.
"""

import logging
import os
import sys
from typing import Any, Dict, List, Optional

import structlog
from structlog.types import Processor

from dispatch_telemetry.shared.consts import EnumEnvironment

DEFAULT_LOG_LEVEL = "INFO"


def _get_log_config_from_env() -> Dict[str, Optional[str]]:
    """
    Read bootstrap logging options from the environment.

    Used before the settings system is available, so the telemetry core can
    log while its own configuration is being loaded.
    """
    return {
        "level": os.environ.get("LOG_LEVEL", DEFAULT_LOG_LEVEL),
        "file_path": os.environ.get("LOG_FILE_PATH"),
    }


def _build_renderer(environment: str) -> Processor:
    if environment.lower() == EnumEnvironment.PRODUCTION.value:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


def configure_logging(
    level: Optional[str] = None,
    file_path: Optional[str] = None,
    environment: str = EnumEnvironment.DEVELOPMENT.value,
) -> None:
    """
    Configure stdlib logging and route it through structlog.

    Args:
        level: Optional override for the log level.
        file_path: Optional file to mirror the console output to.
        environment: Application environment; production renders JSON lines.
    """
    env_config = _get_log_config_from_env()

    log_level = level or env_config["level"] or DEFAULT_LOG_LEVEL
    log_file = file_path or env_config["file_path"]
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=_build_renderer(environment),
        foreign_pre_chain=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            timestamper,
        ],
    )
    for handler in handlers:
        handler.setFormatter(formatter)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            timestamper,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger.handlers = handlers
    root_logger.setLevel(numeric_level)

    get_logger(__name__).info(
        "logging.configured", level=log_level, file_path=log_file or None
    )


def update_logging_from_settings(settings: Any) -> None:
    """
    Reconfigure logging from the loaded application settings.

    Args:
        settings: ``AppSettings`` (or any object exposing ``logging.level``,
            ``logging.file_path`` and ``environment``).
    """
    try:
        log_level = getattr(settings.logging.level, "value", settings.logging.level)
        environment = getattr(settings.environment, "value", settings.environment)

        configure_logging(
            level=log_level,
            file_path=settings.logging.file_path,
            environment=environment,
        )
    except AttributeError as e:
        logging.getLogger(__name__).error(
            "Failed to update logging from settings: %s", e
        )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger configured for the telemetry core."""
    return structlog.get_logger(name)

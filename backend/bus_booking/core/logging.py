"""
structlog setup for the booking API.

Every record carries the service name, version and environment, plus the
request context (request_id, method, path) that RequestLoggingMiddleware
binds through contextvars. Production and staging emit one JSON object per
line; anything else renders for a terminal.
"""

import logging
import sys

import structlog

from bus_booking.core.config import get_settings

QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "stripe", "httpx")


def _service_fields(service: str, version: str, environment: str):
    def add_service_fields(logger, method_name, event_dict):
        event_dict.setdefault("service", service)
        event_dict.setdefault("version", version)
        event_dict.setdefault("env", environment)
        return event_dict

    return add_service_fields


def setup_logging() -> None:
    settings = get_settings()
    as_json = settings.ENVIRONMENT in ("production", "staging")

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _service_fields(settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT),
    ]
    if as_json:
        processors.append(structlog.processors.dict_tracebacks)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        # Records from uvicorn and friends get the same fields
        foreign_pre_chain=processors,
    ))

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)

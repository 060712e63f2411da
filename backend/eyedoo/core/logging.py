"""structlog setup for the timeline service.

One processor chain serves both structlog loggers and stdlib records
(uvicorn, redis) through ProcessorFormatter, so every line carries the same
keys: timestamp, level, logger, service and the request's correlation_id.
"""

import logging
import logging.config

import structlog
from asgi_correlation_id.context import correlation_id

SERVICE_NAME = "eyedoo-timeline"

# Third-party loggers kept below the app's level
QUIET_LOGGERS = {
    "uvicorn.access": "WARNING",
    "redis": "WARNING",
    "asyncio": "WARNING",
}


def add_correlation_id(logger, method, event_dict):
    """Copy the X-Request-ID of the current request into the entry."""
    cid = correlation_id.get(None)
    if cid:
        event_dict["correlation_id"] = cid
    return event_dict


def add_service_name(logger, method, event_dict):
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _renderer(json_logs: bool):
    if json_logs:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def configure_structlog(log_level: str = "INFO", json_logs: bool = True) -> None:
    """Install the processor chain and route stdlib logging through it.

    Must run before any eyedoo module calls structlog.get_logger, because
    loggers are cached on first use.

    Args:
        log_level: Root log level name
        json_logs: JSON lines when True, coloured console output otherwise
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service_name,
        add_correlation_id,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    # Console output renders tracebacks itself; JSON needs them as a string field
    final_processors = [structlog.stdlib.ProcessorFormatter.remove_processors_meta]
    if json_logs:
        final_processors.append(structlog.processors.format_exc_info)
    final_processors.append(_renderer(json_logs))

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processors": final_processors,
                "foreign_pre_chain": shared_processors,
            },
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": "structured",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {"handlers": ["stdout"], "level": log_level},
        "loggers": {name: {"level": level} for name, level in QUIET_LOGGERS.items()},
    })

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

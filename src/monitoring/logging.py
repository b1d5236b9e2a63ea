"""
Structured Logging Configuration

structlog configuration for the whole application plus the Flask hooks that
bind a per-request correlation id and log request start and completion.

Every module obtains its logger with ``structlog.get_logger("<layer>.<module>")``;
events are rendered as JSON in production and as console lines in development.
Request-scoped values (correlation id, method, path) are bound through
``structlog.contextvars`` so service and repository logs carry them too.
"""

import logging
import logging.config
import os
import time
import uuid
from typing import Optional

import structlog
from flask import Flask, g, request

CORRELATION_HEADER = 'X-Request-ID'


class LoggingConfig:
    """Environment defaults, overridden by the Flask config when available."""
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
    LOG_FORMAT = os.getenv('LOG_FORMAT', 'json')
    COLORED_CONSOLE_OUTPUT = os.getenv('COLORED_CONSOLE_OUTPUT', 'false').lower() == 'true'
    REQUEST_LOGGING_ENABLED = os.getenv('REQUEST_LOGGING_ENABLED', 'true').lower() == 'true'
    APPLICATION_NAME = os.getenv('APPLICATION_NAME', 'commerce-api')


def setup_structured_logging(app: Optional[Flask] = None) -> structlog.stdlib.BoundLogger:
    """
    Configure structlog and stdlib logging.

    Args:
        app: Optional Flask application supplying LOG_LEVEL / LOG_FORMAT

    Returns:
        Application logger
    """
    log_level = LoggingConfig.LOG_LEVEL
    log_format = LoggingConfig.LOG_FORMAT
    if app is not None:
        log_level = str(app.config.get('LOG_LEVEL', log_level)).upper()
        log_format = app.config.get('LOG_FORMAT', log_format)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == 'console':
        processors.append(structlog.dev.ConsoleRenderer(colors=LoggingConfig.COLORED_CONSOLE_OUTPUT))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig({
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'plain': {'format': '%(message)s'},
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'plain',
                'stream': 'ext://sys.stdout',
            },
        },
        'loggers': {
            '': {
                'handlers': ['console'],
                'level': log_level,
            },
            'pymongo': {
                'level': 'WARNING',
            },
        },
    })

    logger = structlog.get_logger(LoggingConfig.APPLICATION_NAME)
    logger.info("Structured logging initialized", log_level=log_level, log_format=log_format)
    return logger


def init_request_logging(app: Flask) -> None:
    """Bind correlation ids and log every request's start and end."""
    logger = structlog.get_logger("monitoring.requests")
    enabled = app.config.get('REQUEST_LOGGING_ENABLED', LoggingConfig.REQUEST_LOGGING_ENABLED)

    @app.before_request
    def _bind_request_context():
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
        g.correlation_id = correlation_id
        g.request_started_at = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            method=request.method,
            path=request.path,
        )
        if enabled:
            logger.info("Request started", endpoint=request.endpoint)

    @app.after_request
    def _log_request_end(response):
        started_at = getattr(g, 'request_started_at', None)
        duration_ms = round((time.perf_counter() - started_at) * 1000, 2) if started_at else None

        if enabled:
            logger.info(
                "Request completed",
                endpoint=request.endpoint,
                status_code=response.status_code,
                duration_ms=duration_ms,
            )

        correlation_id = getattr(g, 'correlation_id', None)
        if correlation_id:
            response.headers[CORRELATION_HEADER] = correlation_id
        return response

    @app.teardown_request
    def _clear_request_context(error=None):
        structlog.contextvars.clear_contextvars()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


__all__ = ['LoggingConfig', 'setup_structured_logging', 'init_request_logging', 'get_logger']

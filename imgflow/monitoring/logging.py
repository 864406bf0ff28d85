"""
Structured logging setup for imgflow using structlog.

Provides a single ``configure_logging`` entry point that wires structlog onto the
standard library logging tree, plus correlation ID helpers so every log line
emitted while an upload request is processed can be tied back to that request.

Key Features:
- JSON log formatting by default, console rendering for development
- Correlation ID tracking through a ContextVar
- Request path and endpoint enrichment when a Flask request context is active
"""

import logging
import logging.config
import uuid
from contextvars import ContextVar
from typing import Callable, Optional

import structlog
from flask import has_request_context, request

# Global correlation ID context variable
correlation_id_context: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)

VALID_LOG_LEVELS = {'CRITICAL', 'ERROR', 'WARNING', 'INFO', 'DEBUG'}


def create_correlation_processor() -> Callable:
    """
    Create structlog processor for correlation ID enrichment.

    Returns:
        Processor function for structlog
    """
    def processor(logger, method_name, event_dict):
        correlation_id = correlation_id_context.get()
        if correlation_id:
            event_dict.setdefault('correlation_id', correlation_id)
        return event_dict

    return processor


def create_request_context_processor() -> Callable:
    """
    Create structlog processor for request context enrichment.

    Returns:
        Processor function for structlog
    """
    def processor(logger, method_name, event_dict):
        if has_request_context():
            event_dict.setdefault('path', request.path)
            event_dict.setdefault('method', request.method)
        return event_dict

    return processor


def configure_logging(level: str = 'INFO', log_format: str = 'json') -> structlog.stdlib.BoundLogger:
    """
    Configure structlog and the standard library root logger.

    Args:
        level: Log level name; unknown names fall back to INFO
        log_format: ``json`` or ``console``

    Returns:
        Configured structured logger for the imgflow package
    """
    lvl = (level or 'INFO').upper().strip()
    if lvl not in VALID_LOG_LEVELS:
        lvl = 'INFO'

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="ISO"),
        create_correlation_processor(),
        create_request_context_processor(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == 'console':
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    else:
        # Default to JSON
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
            'plain': {'format': '%(message)s'}
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'plain',
                'stream': 'ext://sys.stdout'
            }
        },
        'root': {
            'handlers': ['console'],
            'level': lvl
        }
    })

    logger = structlog.get_logger('imgflow')
    logger.info("Structured logging initialized", log_level=lvl, log_format=log_format)
    return logger


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """
    Set correlation ID for the current context.

    Args:
        correlation_id: Optional correlation ID, generated if None

    Returns:
        The correlation ID that was set
    """
    value = correlation_id or uuid.uuid4().hex
    correlation_id_context.set(value)
    return value


def get_correlation_id() -> Optional[str]:
    """Get current correlation ID from context."""
    return correlation_id_context.get()


__all__ = [
    'configure_logging',
    'create_correlation_processor',
    'create_request_context_processor',
    'set_correlation_id',
    'get_correlation_id',
    'correlation_id_context'
]

"""
Shared logging configuration for the data-access layer.
"""

import sys
import structlog
import logging
import uuid
import time
from typing import Any, Dict, Optional
from contextvars import ContextVar

# Context variables for correlation IDs
consumer_id_var: ContextVar[Optional[str]] = ContextVar('consumer_id', default=None)
fetch_id_var: ContextVar[Optional[str]] = ContextVar('fetch_id', default=None)


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structured logging for a process embedding the layer."""

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            add_component_context,
            add_correlation_context,
            add_timestamp,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )
    logging.getLogger(service_name).setLevel(getattr(logging, log_level.upper()))


def add_component_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add the component (second logger name segment) to log events."""
    logger_name = event_dict.get("logger", "")
    parts = logger_name.split(".")
    if len(parts) > 1:
        event_dict["component"] = parts[1]

    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add correlation context to log events."""
    consumer_id = consumer_id_var.get()
    if consumer_id:
        event_dict["consumer_id"] = consumer_id

    fetch_id = fetch_id_var.get()
    if fetch_id:
        event_dict["fetch_id"] = fetch_id

    return event_dict


def add_timestamp(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add high-precision timestamp to log events."""
    event_dict["timestamp"] = time.time()
    return event_dict


def set_consumer_id(consumer_id: Optional[str] = None) -> str:
    """Set the consumer ID in context."""
    if consumer_id is None:
        consumer_id = str(uuid.uuid4())
    consumer_id_var.set(consumer_id)
    return consumer_id


def set_fetch_id(fetch_id: Optional[str] = None) -> str:
    """Set the fetch ID in context."""
    if fetch_id is None:
        fetch_id = uuid.uuid4().hex[:12]
    fetch_id_var.set(fetch_id)
    return fetch_id


def clear_context():
    """Clear all context variables."""
    consumer_id_var.set(None)
    fetch_id_var.set(None)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)

"""Structured logging infrastructure.

Centralized logging configuration and utilities for the delivery engine
using structlog.

Public API:
    - configure_logging(): Initialize logging for the application
    - get_module_logger(): Get a logger for the calling module
    - bind_delivery_context(): Context manager for notification-scoped logging
    - get_correlation_id(): Get current correlation ID from context
    - clear_delivery_context(): Clear all delivery context

Example:
    from infrastructure.logging import configure_logging, get_module_logger

    configure_logging()

    logger = get_module_logger()
    logger.info("module_initialized")
"""

from infrastructure.logging.setup import (
    configure_logging,
    get_module_logger,
)
from infrastructure.logging.context import (
    bind_delivery_context,
    get_correlation_id,
    clear_delivery_context,
)
from infrastructure.logging.formatters import (
    mask_sensitive_data,
    truncate_large_values,
    SENSITIVE_KEYS,
)

__all__ = [
    "configure_logging",
    "get_module_logger",
    "bind_delivery_context",
    "get_correlation_id",
    "clear_delivery_context",
    "mask_sensitive_data",
    "truncate_large_values",
    "SENSITIVE_KEYS",
]

"""Delivery context binding for structured logging.

Binds the notification being delivered (and the work unit being processed)
to every log entry emitted inside the block, so a single notification can
be traced across the batcher, the worker pool and the aggregator.

Usage:
    from infrastructure.logging import bind_delivery_context

    with bind_delivery_context(notification_id=n.id, work_unit_id=unit.id):
        logger.info("work_unit_started")
"""

import uuid
from contextlib import contextmanager
from typing import Any, Generator, Optional

import structlog


@contextmanager
def bind_delivery_context(
    notification_id: Optional[str] = None,
    work_unit_id: Optional[str] = None,
    **extra_context: Any,
) -> Generator[None, None, None]:
    """Bind delivery-scoped context to all logs within the context manager.

    The notification id doubles as the correlation id. A random correlation
    id is generated when no notification is known yet.

    Args:
        notification_id: Notification being delivered.
        work_unit_id: Work unit being processed, if any.
        **extra_context: Additional key-value pairs to include in logs.
    """
    context: dict[str, Any] = {
        "correlation_id": notification_id or str(uuid.uuid4()),
    }
    if notification_id is not None:
        context["notification_id"] = notification_id
    if work_unit_id is not None:
        context["work_unit_id"] = work_unit_id
    context.update(extra_context)

    # Restore whatever was bound before (worker threads nest contexts)
    previous = structlog.contextvars.get_contextvars()
    structlog.contextvars.bind_contextvars(**context)
    try:
        yield
    finally:
        structlog.contextvars.unbind_contextvars(*context.keys())
        restore = {k: v for k, v in previous.items() if k in context}
        if restore:
            structlog.contextvars.bind_contextvars(**restore)


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from the logging context."""
    ctx = structlog.contextvars.get_contextvars()
    return ctx.get("correlation_id")


def clear_delivery_context() -> None:
    """Clear all delivery-scoped context from the logging context.

    Worker threads call this between work units to prevent context
    leaking from one notification into the next.
    """
    structlog.contextvars.clear_contextvars()

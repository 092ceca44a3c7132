"""Event dispatcher for the in-process event system.

Handlers are registered with a decorator and called synchronously when
events are dispatched. Dispatch happens from send worker threads, so the
registry is guarded by a lock and handlers are snapshotted before they run.
"""

import atexit
from concurrent.futures import ThreadPoolExecutor
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

from infrastructure.events.models import Event
from infrastructure.logging import get_module_logger

logger = get_module_logger()

WILDCARD = "*"

# Event handler registry: event_type -> list of handlers
EVENT_HANDLERS: Dict[str, List[Callable]] = {}
_handlers_lock = Lock()

# Managed executor for background dispatches
_EXECUTOR: Optional[ThreadPoolExecutor] = None
_executor_lock = Lock()
_executor_shutdown = False


def register_event_handler(event_type: str):
    """Decorator to register an event handler for a specific event type.

    Use ``"*"`` to receive every event.

    Args:
        event_type: The type of event to handle
            (e.g., 'notification.delivery.completed').
    """

    def decorator(handler_func: Callable) -> Callable:
        with _handlers_lock:
            EVENT_HANDLERS.setdefault(event_type, []).append(handler_func)
            total = len(EVENT_HANDLERS[event_type])
        logger.debug(
            "registered_event_handler",
            handler=getattr(handler_func, "__name__", "unknown"),
            event_type=event_type,
            total_handlers=total,
        )
        return handler_func

    return decorator


def unregister_event_handler(event_type: str, handler_func: Callable) -> bool:
    """Remove a previously registered handler.

    Returns:
        True if the handler was registered, False otherwise.
    """
    with _handlers_lock:
        handlers = EVENT_HANDLERS.get(event_type, [])
        if handler_func not in handlers:
            return False
        handlers.remove(handler_func)
        if not handlers:
            EVENT_HANDLERS.pop(event_type, None)
    return True


def get_handlers_for_event(event_type: str) -> List[Callable]:
    """Get all handlers that receive a specific event type.

    Includes wildcard handlers, after the type-specific ones.
    """
    with _handlers_lock:
        handlers = list(EVENT_HANDLERS.get(event_type, []))
        if event_type != WILDCARD:
            handlers.extend(EVENT_HANDLERS.get(WILDCARD, []))
    return handlers


def dispatch_event(event: Event) -> List[Any]:
    """Dispatch event synchronously to all registered handlers.

    If a handler raises, the error is logged and processing continues with
    the remaining handlers; a failing subscriber never fails the publisher.

    Returns:
        List of return values from all handlers that succeeded.
    """
    results = []
    handlers = get_handlers_for_event(event.event_type)

    logger.info(
        "dispatching_event",
        event_type=event.event_type,
        subject_id=event.subject_id,
        handler_count=len(handlers),
        correlation_id=str(event.correlation_id),
    )

    for handler in handlers:
        try:
            results.append(handler(event))
        except Exception as e:  # pylint: disable=broad-except
            logger.error(
                "event_handler_failed",
                handler=getattr(handler, "__name__", "unknown"),
                event_type=event.event_type,
                error=str(e),
                correlation_id=str(event.correlation_id),
            )

    return results


def _background_worker(evt: Event) -> None:
    """Worker wrapper to call dispatch_event and log exceptions."""
    try:
        dispatch_event(evt)
    except Exception as e:  # pylint: disable=broad-except
        logger.exception(
            "background_event_dispatch_failed",
            event_type=evt.event_type,
            error=str(e),
            correlation_id=str(evt.correlation_id),
        )


def _get_or_create_executor(max_workers: int = 4) -> Optional[ThreadPoolExecutor]:
    """Lazily create the module-scoped executor.

    Returns None when the executor has been explicitly shut down.
    """
    global _EXECUTOR
    with _executor_lock:
        if _executor_shutdown:
            return None
        if _EXECUTOR is None:
            _EXECUTOR = ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix="events"
            )
            logger.debug("created_background_event_executor", max_workers=max_workers)
        return _EXECUTOR


def start_event_executor(max_workers: int = 4) -> None:
    """Explicitly start the background executor."""
    global _executor_shutdown
    with _executor_lock:
        _executor_shutdown = False
    _get_or_create_executor(max_workers=max_workers)


def shutdown_event_executor(wait: bool = True) -> None:
    """Shut down the background executor and prevent further submissions.

    Idempotent.

    Args:
        wait: If True, wait for pending dispatches to complete.
    """
    global _EXECUTOR, _executor_shutdown
    with _executor_lock:
        if _EXECUTOR is None:
            _executor_shutdown = True
            return
        try:
            _EXECUTOR.shutdown(wait=wait)
            logger.debug("background_event_executor_shut_down", wait=wait)
        finally:
            _EXECUTOR = None
            _executor_shutdown = True


@atexit.register
def _atexit_shutdown():
    shutdown_event_executor(wait=False)


def dispatch_background(event: Event) -> None:
    """Submit a fire-and-forget dispatch to the internal executor.

    If the executor has been shut down, the submission is dropped and an
    error is logged.
    """
    executor = _get_or_create_executor()
    if executor is None:
        logger.error(
            "event_executor_unavailable",
            event_type=event.event_type,
            correlation_id=str(event.correlation_id),
        )
        return
    executor.submit(_background_worker, event)


def get_registered_events() -> List[str]:
    """Get list of all registered event types."""
    with _handlers_lock:
        return list(EVENT_HANDLERS.keys())


def clear_handlers() -> None:
    """Clear all registered handlers.

    WARNING: This is intended for testing only.
    """
    with _handlers_lock:
        EVENT_HANDLERS.clear()
    logger.debug("cleared_all_event_handlers")

"""Infrastructure event system - in-process event dispatcher.

Usage:

    from infrastructure.events import Event, register_event_handler, dispatch_event

    @register_event_handler("notification.delivery.completed")
    def handle_delivery_completed(event: Event) -> None:
        ...

    dispatch_event(
        Event(
            event_type="notification.delivery.completed",
            subject_id=notification_id,
            metadata={"sent": 42, "failed": 0, "throttled": 0},
        )
    )
"""

from infrastructure.events.dispatcher import (
    clear_handlers,
    dispatch_background,
    dispatch_event,
    get_handlers_for_event,
    get_registered_events,
    register_event_handler,
    shutdown_event_executor,
    start_event_executor,
    unregister_event_handler,
)
from infrastructure.events.models import Event

__all__ = [
    "Event",
    "dispatch_event",
    "dispatch_background",
    "register_event_handler",
    "unregister_event_handler",
    "get_registered_events",
    "get_handlers_for_event",
    "clear_handlers",
    "start_event_executor",
    "shutdown_event_executor",
]

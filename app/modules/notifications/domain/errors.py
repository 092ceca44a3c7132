"""Errors for the notifications module."""

from typing import Any, Optional


class NotificationDeliveryError(Exception):
    """Base class for every error raised by the delivery engine."""


class ResolutionError(NotificationDeliveryError):
    """The audience could not be expanded (roster unreachable).

    Nothing has been committed when this is raised; the notification stays
    in draft and delivery can be started again.
    """

    def __init__(self, message: str, response: Any = None):
        super().__init__(message)
        self.response = response


class RosterUnavailableError(NotificationDeliveryError):
    """Raised by roster sources that cannot reach the platform directory."""


class SendError(NotificationDeliveryError):
    """Base class for classified send failures.

    Attributes:
        response: the OperationResult returned by the messenger
    """

    def __init__(self, message: str, response: Any = None):
        super().__init__(message)
        self.response = response


class ThrottleError(SendError):
    """The platform asked us to slow down."""

    def __init__(
        self, message: str, retry_after: Optional[float] = None, response: Any = None
    ):
        super().__init__(message, response)
        self.retry_after = retry_after


class TransientSendError(SendError):
    """A send failed in a way that may succeed when retried."""


class PermanentSendError(SendError):
    """A send failed and will never succeed for this recipient."""


class AggregationConflict(NotificationDeliveryError):
    """A guarded state transition was lost to a concurrent writer."""


class NotificationNotFoundError(NotificationDeliveryError):
    """No notification exists with the given id."""

    def __init__(self, notification_id: str):
        super().__init__(f"Notification {notification_id} not found")
        self.notification_id = notification_id


class DeliveryAlreadyStartedError(NotificationDeliveryError):
    """start_delivery was called on a notification that left draft."""

    def __init__(self, notification_id: str, state: Any = None):
        super().__init__(
            f"Delivery already started for notification {notification_id}"
            + (f" (state={state})" if state is not None else "")
        )
        self.notification_id = notification_id
        self.state = state


class InvalidStateTransitionError(NotificationDeliveryError):
    """A transition would move a notification backwards."""


class StoreError(NotificationDeliveryError):
    """The storage backend failed for a reason other than a lost condition.

    Attributes:
        response: the OperationResult returned by the storage client
    """

    def __init__(self, message: str, response: Any = None):
        super().__init__(message)
        self.response = response

"""Ports the delivery engine depends on.

Protocols for the chat platform (send + roster), the two stores and the
work-unit queue. Adapters live in ``modules.notifications.infrastructure``.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, List, Optional, Protocol

from infrastructure.events import Event
from infrastructure.operations.result import OperationResult
from modules.notifications.domain.models import (
    DeliveryResult,
    Notification,
    NotificationState,
    WorkUnit,
)

TENANT_SCOPE = "*"
"""Roster scope id meaning "every member of the tenant"."""

EventPublisher = Callable[[Event], Any]


class Messenger(Protocol):
    """Sends a notification body to a single conversation."""

    def send(self, conversation_ref: str, body: Any) -> OperationResult:
        """Send ``body`` to ``conversation_ref``.

        Returns:
            SUCCESS, TRANSIENT_ERROR (RATE_LIMITED with retry_after when the
            platform throttles), or PERMANENT_ERROR / NOT_FOUND /
            UNAUTHORIZED for recipients that cannot be reached.
        """
        ...


class RosterSource(Protocol):
    """Pages through the members of a team or of the whole tenant."""

    def list_members(
        self, scope_id: str, cursor: Optional[str] = None, limit: int = 200
    ) -> OperationResult:
        """Return one page of members.

        Args:
            scope_id: Team id, or TENANT_SCOPE for the tenant roster
            cursor: Opaque cursor from the previous page, None for the first
            limit: Page size hint

        Returns:
            OperationResult whose data is
            ``{"members": [RecipientDescriptor, ...], "next_cursor": str | None}``
        """
        ...


class NotificationStore(Protocol):
    """Storage interface for notification records.

    Every mutating method is atomic with respect to concurrent callers:
    guarded transitions have exactly one winner and counter increments
    never lose updates.

    Methods:
        create: Persist a new draft
        get: Point lookup by id
        commit_queued: Guarded draft -> queued write with resolved/work_units
        transition: Guarded compare-and-set of the state
        increment: Atomic counter increment
        mark_cancelled: Set the cancelled flag on an in-flight notification
    """

    def create(self, notification: Notification) -> None:
        ...

    def get(self, notification_id: str) -> Optional[Notification]:
        ...

    def commit_queued(
        self,
        notification_id: str,
        resolved: int,
        work_units: int,
        started_at: datetime,
    ) -> Notification:
        """Move a draft to queued, recording the resolved count.

        Raises:
            NotificationNotFoundError: if the notification does not exist
            DeliveryAlreadyStartedError: if it is no longer a draft
        """
        ...

    def transition(
        self,
        notification_id: str,
        from_states: Iterable[NotificationState],
        to_state: NotificationState,
        completed_at: Optional[datetime] = None,
    ) -> bool:
        """Set ``to_state`` only if the current state is in ``from_states``.

        Returns:
            True if this call performed the transition
        """
        ...

    def increment(
        self, notification_id: str, counter: str, amount: int = 1
    ) -> Notification:
        """Atomically add ``amount`` to ``counter`` and return the new record."""
        ...

    def mark_cancelled(self, notification_id: str, cancelled_at: datetime) -> bool:
        """Flag a queued/sending notification as cancelled.

        Returns:
            True if the flag was set by this call
        """
        ...


class DeliveryResultStore(Protocol):
    """Storage interface for per-recipient delivery results."""

    def get(self, notification_id: str, recipient_id: str) -> Optional[DeliveryResult]:
        ...

    def put(self, result: DeliveryResult) -> bool:
        """Idempotent upsert keyed by (notification_id, recipient_id).

        A terminal result is never overwritten.

        Returns:
            True only when this write stored the first terminal result for
            the key
        """
        ...

    def mark_counted(self, notification_id: str, recipient_id: str) -> bool:
        """Flip ``counted`` from false to true on a terminal result.

        Returns:
            True only for the call that flipped the flag
        """
        ...

    def unmark_counted(self, notification_id: str, recipient_id: str) -> None:
        """Reset ``counted`` after the counter increment it guarded failed."""
        ...

    def list_for_notification(self, notification_id: str) -> List[DeliveryResult]:
        ...


@dataclass
class QueueMessage:
    """A work unit received from a queue, with what is needed to ack it."""

    unit: WorkUnit
    receipt: Optional[str] = None
    deliveries: int = 1


class WorkQueue(Protocol):
    """At-least-once queue of work units shared by the worker pool."""

    def put(self, unit: WorkUnit) -> None:
        ...

    def receive(self, timeout: float = 1.0) -> Optional[QueueMessage]:
        """Block up to ``timeout`` seconds for the next work unit."""
        ...

    def ack(self, message: QueueMessage) -> None:
        """Mark a received work unit as processed."""
        ...

    def release(self, message: QueueMessage) -> None:
        """Give a received work unit back for redelivery."""
        ...

    def pending(self) -> int:
        """Work units enqueued or in flight and not yet acknowledged."""
        ...

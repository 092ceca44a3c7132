"""Status aggregation.

Records per-recipient outcomes, keeps the notification counters in step
with them, and moves the notification to its terminal state once every
resolved recipient is accounted for.
"""

from typing import Optional

from infrastructure.events import Event, dispatch_event
from infrastructure.logging import get_module_logger
from modules.notifications.core.ports import (
    DeliveryResultStore,
    EventPublisher,
    NotificationStore,
)
from modules.notifications.domain.errors import AggregationConflict
from modules.notifications.domain.models import (
    DeliveryOutcome,
    DeliveryResult,
    ErrorClassification,
    Notification,
    NotificationState,
    RecipientDescriptor,
    utcnow,
)

logger = get_module_logger()

EVENT_QUEUED = "notification.delivery.queued"
EVENT_COMPLETED = "notification.delivery.completed"
EVENT_FAILED = "notification.delivery.failed"
EVENT_CANCELLED = "notification.delivery.cancelled"


def notification_event(event_type: str, notification: Notification) -> Event:
    """Build a lifecycle event carrying the notification's counters."""
    return Event(
        event_type=event_type,
        subject_id=notification.id,
        actor=notification.author or "",
        metadata={
            "title": notification.title,
            "state": notification.state.value,
            "resolved": notification.resolved,
            "sent": notification.sent,
            "failed": notification.failed,
            "throttled": notification.throttled,
            "cancelled": notification.cancelled,
        },
    )


class StatusAggregator:
    """Idempotent sink for delivery outcomes.

    Args:
        notifications: Notification record store
        results: Delivery result store
        event_publisher: Receives lifecycle events; defaults to the
            in-process dispatcher
    """

    def __init__(
        self,
        notifications: NotificationStore,
        results: DeliveryResultStore,
        event_publisher: Optional[EventPublisher] = None,
    ):
        self._notifications = notifications
        self._results = results
        self._publish = event_publisher or dispatch_event

    def record_outcome(
        self,
        notification_id: str,
        recipient: RecipientDescriptor,
        outcome: DeliveryOutcome,
        attempts: int = 1,
        classification: ErrorClassification = ErrorClassification.NONE,
        error: Optional[str] = None,
    ) -> bool:
        """Upsert the recipient's result and count it if it is terminal.

        Returns:
            True if a notification counter was incremented
        """
        result = DeliveryResult(
            notification_id=notification_id,
            recipient_id=recipient.conversation_ref,
            recipient_kind=recipient.kind,
            outcome=outcome,
            attempts=attempts,
            classification=classification,
            error_message=error,
        )
        self._results.put(result)
        if not result.is_terminal:
            return False
        return self.count_result(notification_id, recipient.conversation_ref)

    def count_result(self, notification_id: str, recipient_id: str) -> bool:
        """Add the stored terminal result to the notification counters once.

        Safe to repeat: the result's ``counted`` flag is claimed before the
        increment and released again if the increment fails, so a
        redelivered work unit finishes counting that an earlier delivery
        could not.

        Returns:
            True if this call incremented a counter
        """
        stored = self._results.get(notification_id, recipient_id)
        if stored is None or not stored.is_terminal or stored.counted:
            return False
        counter = stored.counter
        if counter is None:
            return False
        if not self._results.mark_counted(notification_id, recipient_id):
            return False

        try:
            self._notifications.increment(notification_id, counter)
        except Exception:
            self._results.unmark_counted(notification_id, recipient_id)
            raise

        logger.debug(
            "delivery_outcome_counted",
            notification_id=notification_id,
            recipient_id=recipient_id,
            outcome=stored.outcome.value,
            counter=counter,
        )
        return True

    def has_terminal_result(self, notification_id: str, recipient_id: str) -> bool:
        existing = self._results.get(notification_id, recipient_id)
        return existing is not None and existing.is_terminal

    def settle_existing(self, notification_id: str, recipient_id: str) -> bool:
        """Count an already stored terminal result that was never counted.

        Returns:
            True if the recipient already has a terminal result
        """
        if not self.has_terminal_result(notification_id, recipient_id):
            return False
        if self.count_result(notification_id, recipient_id):
            logger.info(
                "delivery_outcome_counted_on_redelivery",
                notification_id=notification_id,
                recipient_id=recipient_id,
            )
        return True

    def check_completion(self, notification_id: str) -> bool:
        """Finish the notification if every recipient is accounted for.

        Safe to call from any number of workers at once: exactly one caller
        performs the transition and publishes the terminal event.

        Returns:
            True only for the caller that performed the transition
        """
        try:
            return self._complete(notification_id)
        except AggregationConflict as e:
            logger.debug(
                "completion_transition_lost",
                notification_id=notification_id,
                reason=str(e),
            )
            return False

    def _complete(self, notification_id: str) -> bool:
        notification = self._notifications.get(notification_id)
        if notification is None:
            logger.warning(
                "completion_check_unknown_notification",
                notification_id=notification_id,
            )
            return False
        if not notification.all_accounted:
            return False

        target = notification.terminal_state()
        won = self._notifications.transition(
            notification_id,
            (NotificationState.QUEUED, NotificationState.SENDING),
            target,
            completed_at=utcnow(),
        )
        if not won:
            raise AggregationConflict(
                f"Notification {notification_id} already left the in-flight states"
            )

        final = self._notifications.get(notification_id) or notification
        logger.info(
            "notification_delivery_finished",
            notification_id=notification_id,
            state=target.value,
            resolved=final.resolved,
            sent=final.sent,
            failed=final.failed,
            throttled=final.throttled,
        )
        event_type = (
            EVENT_COMPLETED if target == NotificationState.COMPLETED else EVENT_FAILED
        )
        self.publish(event_type, final)
        return True

    def publish(self, event_type: str, notification: Notification) -> None:
        """Publish a lifecycle event; publisher failures are logged only."""
        try:
            self._publish(notification_event(event_type, notification))
        except Exception as e:  # pylint: disable=broad-except
            logger.error(
                "notification_event_publish_failed",
                notification_id=notification.id,
                event_type=event_type,
                error=str(e),
            )

"""Service layer for the notifications module.

NotificationDeliveryService is the boundary used by authoring surfaces
(HTTP API, chat commands, jobs). Every operation returns plain values or an
OperationResult; engine exceptions never reach the caller.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from infrastructure.logging import bind_delivery_context, get_module_logger
from infrastructure.operations.result import OperationResult
from modules.notifications.core.aggregator import EVENT_CANCELLED, StatusAggregator
from modules.notifications.core.batcher import DeliveryBatcher
from modules.notifications.core.ports import DeliveryResultStore, NotificationStore
from modules.notifications.core.resolver import RecipientResolver
from modules.notifications.domain.errors import (
    DeliveryAlreadyStartedError,
    NotificationNotFoundError,
    ResolutionError,
    StoreError,
)
from modules.notifications.domain.models import (
    AudienceSpec,
    DeliveryProgress,
    DeliveryResult,
    Notification,
    NotificationState,
    utcnow,
)

logger = get_module_logger()

AudienceInput = Union[AudienceSpec, Dict[str, Any]]


class NotificationDeliveryService:
    """Facade over the delivery engine.

    Args:
        notifications: Notification record store
        results: Delivery result store
        resolver: Expands audiences into recipients
        batcher: Commits and enqueues delivery
        aggregator: Publishes lifecycle events
    """

    def __init__(
        self,
        notifications: NotificationStore,
        results: DeliveryResultStore,
        resolver: RecipientResolver,
        batcher: DeliveryBatcher,
        aggregator: StatusAggregator,
    ):
        self._notifications = notifications
        self._results = results
        self._resolver = resolver
        self._batcher = batcher
        self._aggregator = aggregator

    def create_draft(
        self,
        title: str,
        body: Any,
        audience: AudienceInput,
        author: Optional[str] = None,
    ) -> str:
        """Store a new draft notification and return its id.

        Raises:
            pydantic.ValidationError: if the title or audience is invalid
        """
        if not isinstance(audience, AudienceSpec):
            audience = AudienceSpec.model_validate(audience)
        notification = Notification(
            title=title, body=body, audience=audience, author=author
        )
        self._notifications.create(notification)
        logger.info(
            "notification_draft_created",
            notification_id=notification.id,
            author=author,
            audience=[kind.value for kind in audience.kinds],
        )
        return notification.id

    def start_delivery(self, notification_id: str) -> OperationResult:
        """Resolve the audience of a draft and queue its delivery.

        Returns:
            SUCCESS with ``{"notification_id", "resolved", "work_units",
            "unqueued_work_units"}``, where recipients of unqueued work units
            are already recorded as failed; NOT_FOUND; PERMANENT_ERROR
            ``ALREADY_STARTED``; TRANSIENT_ERROR ``RESOLUTION_FAILED`` with
            the notification left in draft; or TRANSIENT_ERROR
            ``STORE_UNAVAILABLE`` when the notification store could not be
            written
        """
        with bind_delivery_context(notification_id=notification_id):
            notification = self._notifications.get(notification_id)
            if notification is None:
                return OperationResult.not_found(
                    f"Notification {notification_id} not found"
                )
            if notification.state != NotificationState.DRAFT:
                return self._already_started(notification_id, notification.state)

            recipients = self._resolver.resolve(notification.audience)
            try:
                work_units = self._batcher.enqueue(notification_id, recipients)
            except ResolutionError as e:
                logger.warning("delivery_resolution_failed", error=str(e))
                return OperationResult.transient_error(
                    f"Could not resolve audience: {e}",
                    error_code="RESOLUTION_FAILED",
                )
            except DeliveryAlreadyStartedError as e:
                return self._already_started(notification_id, e.state)
            except NotificationNotFoundError as e:
                return OperationResult.not_found(str(e))
            except StoreError as e:
                logger.error("delivery_start_store_failed", error=str(e))
                return OperationResult.transient_error(
                    f"Storage unavailable: {e}", error_code="STORE_UNAVAILABLE"
                )

            started = self._notifications.get(notification_id)
            resolved = started.resolved if started else 0
            unqueued = max((started.work_units if started else 0) - work_units, 0)
            logger.info(
                "notification_delivery_started",
                resolved=resolved,
                work_units=work_units,
                unqueued_work_units=unqueued,
            )
            return OperationResult.success(
                data={
                    "notification_id": notification_id,
                    "resolved": resolved,
                    "work_units": work_units,
                    "unqueued_work_units": unqueued,
                },
                message="Delivery queued",
            )

    def create_and_send(
        self,
        title: str,
        body: Any,
        audience: AudienceInput,
        author: Optional[str] = None,
    ) -> OperationResult:
        """Create a draft and start its delivery in one call.

        Returns:
            INVALID_REQUEST for a blank title or an invalid audience,
            otherwise the start_delivery result
        """
        if not title or not title.strip():
            return OperationResult.permanent_error(
                "Notification title cannot be empty", error_code="INVALID_REQUEST"
            )
        try:
            notification_id = self.create_draft(title, body, audience, author)
        except ValidationError as e:
            return OperationResult.permanent_error(
                f"Invalid notification: {e.errors()[0].get('msg', str(e))}",
                error_code="INVALID_REQUEST",
            )
        except StoreError as e:
            return OperationResult.transient_error(
                f"Storage unavailable: {e}", error_code="STORE_UNAVAILABLE"
            )
        return self.start_delivery(notification_id)

    def cancel(self, notification_id: str) -> OperationResult:
        """Stop delivering a queued or sending notification.

        Recipients not yet attempted are recorded as failed (cancelled), so
        the notification still reaches a terminal state.
        """
        notification = self._notifications.get(notification_id)
        if notification is None:
            return OperationResult.not_found(
                f"Notification {notification_id} not found"
            )
        if not notification.state.is_in_flight:
            return OperationResult.permanent_error(
                f"Cannot cancel a notification in state {notification.state.value}",
                error_code="INVALID_STATE",
            )
        if not self._notifications.mark_cancelled(notification_id, utcnow()):
            current = self._notifications.get(notification_id)
            if current is not None and current.cancelled:
                return OperationResult.success(
                    data={"notification_id": notification_id},
                    message="Delivery already cancelled",
                )
            return OperationResult.permanent_error(
                "Delivery finished before it could be cancelled",
                error_code="INVALID_STATE",
            )

        logger.info(
            "notification_delivery_cancelled", notification_id=notification_id
        )
        cancelled = self._notifications.get(notification_id) or notification
        self._aggregator.publish(EVENT_CANCELLED, cancelled)
        return OperationResult.success(
            data={"notification_id": notification_id}, message="Delivery cancelled"
        )

    def get_progress(self, notification_id: str) -> Optional[DeliveryProgress]:
        notification = self._notifications.get(notification_id)
        if notification is None:
            return None
        return notification.progress()

    def get_results(self, notification_id: str) -> List[DeliveryResult]:
        """Per-recipient results recorded so far."""
        return self._results.list_for_notification(notification_id)

    def _already_started(self, notification_id: str, state: Any) -> OperationResult:
        state_value = getattr(state, "value", state)
        logger.info(
            "notification_delivery_already_started",
            notification_id=notification_id,
            state=state_value,
        )
        return OperationResult.permanent_error(
            f"Delivery already started (state={state_value})",
            error_code="ALREADY_STARTED",
        )

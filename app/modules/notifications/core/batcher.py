"""Delivery batching.

Commits the resolved audience onto the notification and splits it into
work units for the send workers.
"""

from typing import Iterable, List, Optional

from infrastructure.logging import get_module_logger
from modules.notifications.core.aggregator import EVENT_QUEUED, StatusAggregator
from modules.notifications.core.ports import NotificationStore, WorkQueue
from modules.notifications.domain.errors import StoreError
from modules.notifications.domain.models import (
    DeliveryOutcome,
    ErrorClassification,
    RecipientDescriptor,
    WorkUnit,
    utcnow,
)

logger = get_module_logger()


def chunk_recipients(
    recipients: Iterable[RecipientDescriptor], batch_size: int
) -> List[List[RecipientDescriptor]]:
    """Split recipients into consecutive batches of at most ``batch_size``.

    The whole audience is held in memory. Only the small recipient
    descriptors are kept, and resolving once guarantees the committed
    resolved count matches the recipients actually enqueued; a second pass
    over a lazy roster could see a different membership.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    batches: List[List[RecipientDescriptor]] = []
    current: List[RecipientDescriptor] = []
    for recipient in recipients:
        current.append(recipient)
        if len(current) == batch_size:
            batches.append(current)
            current = []
    if current:
        batches.append(current)
    return batches


class DeliveryBatcher:
    """Turns a resolved recipient sequence into queued work units.

    The resolved count and the queued state are committed in one guarded
    write before anything is enqueued, so a second start_delivery loses the
    guard and never enqueues duplicate work.

    Args:
        notifications: Notification record store
        queue: Work-unit queue drained by the worker pool
        batch_size: Recipients per work unit
        aggregator: Publishes the queued event, records recipients of work
            units that could not be enqueued as failed, and finishes
            notifications whose audience resolved to nobody
    """

    def __init__(
        self,
        notifications: NotificationStore,
        queue: WorkQueue,
        batch_size: int = 100,
        aggregator: Optional[StatusAggregator] = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._notifications = notifications
        self._queue = queue
        self._batch_size = batch_size
        self._aggregator = aggregator

    def enqueue(
        self, notification_id: str, recipients: Iterable[RecipientDescriptor]
    ) -> int:
        """Commit and enqueue delivery for a draft notification.

        A work unit the queue refuses is not retried here: its recipients
        are recorded as failed (enqueue_failed) so the notification still
        reaches a terminal state.

        Args:
            notification_id: Draft to start
            recipients: Resolved recipients (may be a lazy ResolvedAudience)

        Returns:
            Number of work units enqueued

        Raises:
            ResolutionError: if iterating ``recipients`` fails; nothing is
                written
            NotificationNotFoundError: if the notification does not exist
            DeliveryAlreadyStartedError: if the notification left draft
        """
        log = logger.bind(notification_id=notification_id)

        # Resolution errors must surface before the guarded write
        batches = chunk_recipients(recipients, self._batch_size)
        resolved = sum(len(batch) for batch in batches)

        notification = self._notifications.commit_queued(
            notification_id,
            resolved=resolved,
            work_units=len(batches),
            started_at=utcnow(),
        )
        log.info(
            "delivery_committed",
            resolved=resolved,
            work_units=len(batches),
            batch_size=self._batch_size,
        )
        if self._aggregator is not None:
            self._aggregator.publish(EVENT_QUEUED, notification)

        enqueued = 0
        for sequence, batch in enumerate(batches):
            unit = WorkUnit(
                notification_id=notification_id,
                sequence=sequence,
                recipients=tuple(batch),
            )
            try:
                self._queue.put(unit)
            except StoreError as e:
                log.error(
                    "work_unit_enqueue_failed",
                    work_unit_id=unit.id,
                    sequence=sequence,
                    recipients=len(batch),
                    error=str(e),
                )
                self._fail_unit(unit, e)
                continue
            enqueued += 1
            log.debug(
                "work_unit_enqueued",
                work_unit_id=unit.id,
                sequence=sequence,
                recipients=len(batch),
            )

        if not batches:
            log.info("delivery_audience_empty")
        if enqueued < len(batches) or not batches:
            if self._aggregator is not None:
                self._aggregator.check_completion(notification_id)

        return enqueued

    def _fail_unit(self, unit: WorkUnit, error: StoreError) -> None:
        """Record every recipient of a unit that never reached the queue as failed.

        Without an aggregator there is nothing to record into, so the error
        propagates.
        """
        if self._aggregator is None:
            raise error
        for recipient in unit.recipients:
            self._aggregator.record_outcome(
                unit.notification_id,
                recipient,
                DeliveryOutcome.FAILED,
                attempts=0,
                classification=ErrorClassification.ENQUEUE_FAILED,
                error=f"Work unit could not be queued: {error}",
            )

"""In-memory notification and delivery result stores.

Thread-safe implementations of the store protocols for development, tests
and single-process deployments. Every operation runs under one lock, which
makes guarded transitions and counter increments atomic.
"""

import threading
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from infrastructure.logging import get_module_logger
from modules.notifications.domain.errors import (
    DeliveryAlreadyStartedError,
    InvalidStateTransitionError,
    NotificationNotFoundError,
    StoreError,
)
from modules.notifications.domain.models import (
    DeliveryResult,
    Notification,
    NotificationState,
)

logger = get_module_logger()

COUNTERS = ("sent", "failed", "throttled")


class InMemoryNotificationStore:
    """In-memory NotificationStore.

    Records are stored as model copies so callers never share mutable state
    with the store.
    """

    def __init__(self):
        self._records: Dict[str, Notification] = {}
        self._lock = threading.Lock()

    def create(self, notification: Notification) -> None:
        with self._lock:
            if notification.id in self._records:
                raise StoreError(f"Notification {notification.id} already exists")
            self._records[notification.id] = notification.model_copy(deep=True)

    def get(self, notification_id: str) -> Optional[Notification]:
        with self._lock:
            record = self._records.get(notification_id)
            return record.model_copy(deep=True) if record else None

    def _require(self, notification_id: str) -> Notification:
        record = self._records.get(notification_id)
        if record is None:
            raise NotificationNotFoundError(notification_id)
        return record

    def commit_queued(
        self,
        notification_id: str,
        resolved: int,
        work_units: int,
        started_at: datetime,
    ) -> Notification:
        with self._lock:
            record = self._require(notification_id)
            if record.state != NotificationState.DRAFT:
                raise DeliveryAlreadyStartedError(notification_id, record.state)
            record.resolved = resolved
            record.work_units = work_units
            record.started_at = started_at
            record.state = NotificationState.QUEUED
            return record.model_copy(deep=True)

    def transition(
        self,
        notification_id: str,
        from_states: Iterable[NotificationState],
        to_state: NotificationState,
        completed_at: Optional[datetime] = None,
    ) -> bool:
        with self._lock:
            record = self._require(notification_id)
            if record.state not in tuple(from_states):
                return False
            if not record.state.can_advance_to(to_state):
                raise InvalidStateTransitionError(
                    f"{record.state.value} -> {to_state.value}"
                )
            record.state = to_state
            if to_state.is_terminal:
                record.completed_at = completed_at
            return True

    def increment(
        self, notification_id: str, counter: str, amount: int = 1
    ) -> Notification:
        if counter not in COUNTERS:
            raise ValueError(f"Unknown counter: {counter}")
        with self._lock:
            record = self._require(notification_id)
            setattr(record, counter, getattr(record, counter) + amount)
            return record.model_copy(deep=True)

    def mark_cancelled(self, notification_id: str, cancelled_at: datetime) -> bool:
        with self._lock:
            record = self._require(notification_id)
            if record.cancelled or not record.state.is_in_flight:
                return False
            record.cancelled = True
            record.cancelled_at = cancelled_at
            return True


class InMemoryDeliveryResultStore:
    """In-memory DeliveryResultStore keyed by (notification_id, recipient_id)."""

    def __init__(self):
        self._results: Dict[Tuple[str, str], DeliveryResult] = {}
        self._lock = threading.Lock()

    def get(self, notification_id: str, recipient_id: str) -> Optional[DeliveryResult]:
        with self._lock:
            result = self._results.get((notification_id, recipient_id))
            return result.model_copy() if result else None

    def put(self, result: DeliveryResult) -> bool:
        key = (result.notification_id, result.recipient_id)
        with self._lock:
            existing = self._results.get(key)
            if existing is not None and existing.is_terminal:
                logger.debug(
                    "delivery_result_already_terminal",
                    notification_id=result.notification_id,
                    recipient_id=result.recipient_id,
                    existing=existing.outcome.value,
                )
                return False
            self._results[key] = result.model_copy(update={"counted": False})
            return result.is_terminal

    def mark_counted(self, notification_id: str, recipient_id: str) -> bool:
        with self._lock:
            existing = self._results.get((notification_id, recipient_id))
            if existing is None or not existing.is_terminal or existing.counted:
                return False
            existing.counted = True
            return True

    def unmark_counted(self, notification_id: str, recipient_id: str) -> None:
        with self._lock:
            existing = self._results.get((notification_id, recipient_id))
            if existing is not None:
                existing.counted = False

    def list_for_notification(self, notification_id: str) -> List[DeliveryResult]:
        with self._lock:
            return [
                result.model_copy()
                for (nid, _), result in self._results.items()
                if nid == notification_id
            ]

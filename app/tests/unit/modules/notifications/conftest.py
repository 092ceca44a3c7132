"""Shared fixtures for notification delivery tests."""

import threading
from typing import Any, Dict, Iterable, List, Optional

import pytest

from infrastructure.operations.result import OperationResult
from infrastructure.resilience.retry import RetryConfig
from modules.notifications.core.aggregator import StatusAggregator
from modules.notifications.core.batcher import DeliveryBatcher
from modules.notifications.core.filters import TenantFilter
from modules.notifications.core.resolver import RecipientResolver
from modules.notifications.core.service import NotificationDeliveryService
from modules.notifications.core.worker import SendWorker
from modules.notifications.domain.errors import RosterUnavailableError
from modules.notifications.domain.models import (
    AudienceSpec,
    Notification,
    RecipientDescriptor,
    RecipientKind,
)
from modules.notifications.infrastructure.queue import InMemoryWorkQueue
from modules.notifications.infrastructure.stores import (
    InMemoryDeliveryResultStore,
    InMemoryNotificationStore,
)


class FakeMessenger:
    """Messenger returning scripted results per conversation.

    ``script[ref]`` is a list of OperationResults (or exceptions to raise)
    consumed one per send; the last entry repeats. Unscripted refs succeed.
    """

    def __init__(self, script: Optional[Dict[str, List[Any]]] = None):
        self.script = {ref: list(steps) for ref, steps in (script or {}).items()}
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def send(self, conversation_ref: str, body: Any) -> OperationResult:
        with self._lock:
            self.calls.append(conversation_ref)
            steps = self.script.get(conversation_ref)
            if not steps:
                step = OperationResult.success(data={"ts": "1.0"})
            elif len(steps) == 1:
                step = steps[0]
            else:
                step = steps.pop(0)
        if isinstance(step, Exception):
            raise step
        return step

    def sends_to(self, conversation_ref: str) -> int:
        return self.calls.count(conversation_ref)


class FakeRoster:
    """RosterSource paging over in-memory member lists.

    Args:
        scopes: scope id -> member user ids
        tenant_id: tenant assigned to every member
        failing: scope ids whose pages come back as transient errors
        unavailable: raise RosterUnavailableError for every call
    """

    def __init__(
        self,
        scopes: Optional[Dict[str, Iterable[str]]] = None,
        tenant_id: Optional[str] = "T1",
        failing: Iterable[str] = (),
        unavailable: bool = False,
    ):
        self.scopes = {scope: list(ids) for scope, ids in (scopes or {}).items()}
        self.tenant_id = tenant_id
        self.failing = set(failing)
        self.unavailable = unavailable
        self.calls: List[tuple] = []

    def list_members(
        self, scope_id: str, cursor: Optional[str] = None, limit: int = 200
    ) -> OperationResult:
        self.calls.append((scope_id, cursor, limit))
        if self.unavailable:
            raise RosterUnavailableError("directory offline")
        if scope_id in self.failing:
            return OperationResult.transient_error(
                "roster timeout", error_code="CONNECTION_ERROR"
            )
        ids = self.scopes.get(scope_id, [])
        start = int(cursor or 0)
        page = ids[start : start + limit]
        next_start = start + limit
        members = [
            RecipientDescriptor(
                conversation_ref=user_id,
                kind=RecipientKind.USER,
                tenant_id=self.tenant_id,
            )
            for user_id in page
        ]
        return OperationResult.success(
            data={
                "members": members,
                "next_cursor": str(next_start) if next_start < len(ids) else None,
            }
        )


class EventRecorder:
    """Event publisher collecting every event it receives."""

    def __init__(self):
        self.events = []
        self._lock = threading.Lock()

    def __call__(self, event):
        with self._lock:
            self.events.append(event)

    @property
    def types(self) -> List[str]:
        return [event.event_type for event in self.events]


@pytest.fixture
def fake_messenger_factory():
    def _factory(script: Optional[Dict[str, List[Any]]] = None) -> FakeMessenger:
        return FakeMessenger(script)

    return _factory


@pytest.fixture
def fake_roster_factory():
    def _factory(**kwargs) -> FakeRoster:
        return FakeRoster(**kwargs)

    return _factory


@pytest.fixture
def event_recorder():
    return EventRecorder()


@pytest.fixture
def notification_store():
    return InMemoryNotificationStore()


@pytest.fixture
def result_store():
    return InMemoryDeliveryResultStore()


@pytest.fixture
def work_queue():
    return InMemoryWorkQueue()


@pytest.fixture
def aggregator(notification_store, result_store, event_recorder):
    return StatusAggregator(notification_store, result_store, event_recorder)


@pytest.fixture
def notification_factory(notification_store):
    """Factory storing draft notifications in the in-memory store."""

    def _factory(
        title: str = "Maintenance tonight",
        body: Any = "The VPN is down from 22:00 to 23:00.",
        audience: Optional[AudienceSpec] = None,
        author: str = "sre@example.com",
        store: bool = True,
    ) -> Notification:
        notification = Notification(
            title=title,
            body=body,
            audience=audience or AudienceSpec(users=["U1", "U2", "U3"]),
            author=author,
        )
        if store:
            notification_store.create(notification)
        return notification

    return _factory


@pytest.fixture
def no_sleep():
    """Sleep replacement recording requested delays."""

    class _NoSleep:
        def __init__(self):
            self.delays: List[float] = []

        def __call__(self, seconds: float) -> None:
            self.delays.append(seconds)

    return _NoSleep()


@pytest.fixture
def send_worker_factory(notification_store, aggregator, no_sleep):
    def _factory(messenger, max_attempts: int = 5, base_delay_seconds: float = 1.0):
        return SendWorker(
            notification_store,
            aggregator,
            messenger,
            RetryConfig(
                max_attempts=max_attempts, base_delay_seconds=base_delay_seconds
            ),
            sleep=no_sleep,
        )

    return _factory


@pytest.fixture
def delivery_service_factory(
    notification_store, result_store, work_queue, aggregator
):
    """Factory wiring a NotificationDeliveryService over in-memory parts."""

    def _factory(
        roster=None,
        tenant_filter: Optional[TenantFilter] = None,
        batch_size: int = 100,
        page_size: int = 200,
    ) -> NotificationDeliveryService:
        resolver = RecipientResolver(
            roster or FakeRoster(),
            tenant_filter or TenantFilter.allow_all(),
            page_size,
        )
        batcher = DeliveryBatcher(notification_store, work_queue, batch_size, aggregator)
        return NotificationDeliveryService(
            notification_store, result_store, resolver, batcher, aggregator
        )

    return _factory


@pytest.fixture
def process_queue(work_queue):
    """Drain the in-memory queue synchronously through one worker."""

    def _process(worker: SendWorker):
        reports = []
        while True:
            message = work_queue.receive(timeout=0.01)
            if message is None:
                return reports
            reports.append(worker.process(message.unit))
            work_queue.ack(message)

    return _process

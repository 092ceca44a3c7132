"""Unit tests for status aggregation."""

import threading
from datetime import datetime, timezone

import pytest

from modules.notifications.core.aggregator import (
    EVENT_COMPLETED,
    EVENT_FAILED,
    StatusAggregator,
    notification_event,
)
from modules.notifications.domain.errors import StoreError
from modules.notifications.domain.models import (
    DeliveryOutcome,
    ErrorClassification,
    NotificationState,
    RecipientDescriptor,
    RecipientKind,
)

pytestmark = pytest.mark.unit

STARTED_AT = datetime(2026, 1, 1, tzinfo=timezone.utc)


def recipient(ref="U1"):
    return RecipientDescriptor(conversation_ref=ref, kind=RecipientKind.USER)


@pytest.fixture
def sending_notification(notification_factory, notification_store):
    """A notification already in flight with ``resolved`` recipients."""

    def _factory(resolved=3):
        notification = notification_factory()
        notification_store.commit_queued(
            notification.id, resolved=resolved, work_units=1, started_at=STARTED_AT
        )
        notification_store.transition(
            notification.id, (NotificationState.QUEUED,), NotificationState.SENDING
        )
        return notification.id

    return _factory


class TestRecordOutcome:
    """Tests for StatusAggregator.record_outcome()."""

    def test_terminal_outcome_increments_counter(
        self, aggregator, sending_notification, notification_store
    ):
        notification_id = sending_notification()

        assert aggregator.record_outcome(
            notification_id, recipient(), DeliveryOutcome.SENT
        )

        assert notification_store.get(notification_id).sent == 1

    def test_non_terminal_outcome_is_not_counted(
        self, aggregator, sending_notification, notification_store, result_store
    ):
        notification_id = sending_notification()

        counted = aggregator.record_outcome(
            notification_id,
            recipient(),
            DeliveryOutcome.THROTTLED_RETRIED,
            classification=ErrorClassification.THROTTLED,
        )

        stored = notification_store.get(notification_id)
        assert not counted
        assert stored.accounted == 0
        assert result_store.get(notification_id, "U1").attempts == 1

    def test_second_terminal_outcome_ignored(
        self, aggregator, sending_notification, notification_store, result_store
    ):
        notification_id = sending_notification()
        aggregator.record_outcome(notification_id, recipient(), DeliveryOutcome.SENT)

        counted = aggregator.record_outcome(
            notification_id,
            recipient(),
            DeliveryOutcome.FAILED,
            classification=ErrorClassification.PERMANENT,
        )

        stored = notification_store.get(notification_id)
        assert not counted
        assert stored.sent == 1
        assert stored.failed == 0
        assert result_store.get(notification_id, "U1").outcome == DeliveryOutcome.SENT

    def test_throttle_exhaustion_counts_throttled(
        self, aggregator, sending_notification, notification_store
    ):
        notification_id = sending_notification()

        aggregator.record_outcome(
            notification_id,
            recipient(),
            DeliveryOutcome.PERMANENTLY_FAILED,
            attempts=5,
            classification=ErrorClassification.THROTTLE_EXHAUSTED,
        )

        assert notification_store.get(notification_id).throttled == 1

    def test_has_terminal_result(self, aggregator, sending_notification):
        notification_id = sending_notification()
        aggregator.record_outcome(
            notification_id, recipient("U1"), DeliveryOutcome.THROTTLED_RETRIED
        )
        aggregator.record_outcome(notification_id, recipient("U2"), DeliveryOutcome.SENT)

        assert not aggregator.has_terminal_result(notification_id, "U1")
        assert aggregator.has_terminal_result(notification_id, "U2")
        assert not aggregator.has_terminal_result(notification_id, "U3")


class TestCountResult:
    """Tests for StatusAggregator.count_result()."""

    def test_failed_increment_can_be_retried(
        self,
        aggregator,
        sending_notification,
        notification_store,
        result_store,
        monkeypatch,
    ):
        notification_id = sending_notification(resolved=1)
        increment = notification_store.increment
        failures = [StoreError("throttled table")]

        def flaky_increment(*args, **kwargs):
            if failures:
                raise failures.pop()
            return increment(*args, **kwargs)

        monkeypatch.setattr(notification_store, "increment", flaky_increment)

        with pytest.raises(StoreError):
            aggregator.record_outcome(
                notification_id, recipient(), DeliveryOutcome.SENT
            )

        assert result_store.get(notification_id, "U1").is_terminal
        assert not result_store.get(notification_id, "U1").counted
        assert notification_store.get(notification_id).sent == 0

        assert aggregator.count_result(notification_id, "U1")
        assert not aggregator.count_result(notification_id, "U1")
        assert notification_store.get(notification_id).sent == 1
        assert result_store.get(notification_id, "U1").counted

    def test_non_terminal_result_is_not_counted(
        self, aggregator, sending_notification, notification_store
    ):
        notification_id = sending_notification()
        aggregator.record_outcome(
            notification_id, recipient(), DeliveryOutcome.THROTTLED_RETRIED
        )

        assert not aggregator.count_result(notification_id, "U1")
        assert not aggregator.count_result(notification_id, "U9")
        assert notification_store.get(notification_id).accounted == 0

    def test_concurrent_counting_increments_once(
        self, aggregator, sending_notification, notification_store, result_store
    ):
        notification_id = sending_notification()
        aggregator.record_outcome(notification_id, recipient(), DeliveryOutcome.SENT)
        result_store.unmark_counted(notification_id, "U1")
        notification_store.increment(notification_id, "sent", -1)
        barrier = threading.Barrier(8)
        wins = []

        def count():
            barrier.wait()
            wins.append(aggregator.count_result(notification_id, "U1"))

        threads = [threading.Thread(target=count) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert wins.count(True) == 1
        assert notification_store.get(notification_id).sent == 1


class TestCheckCompletion:
    """Tests for StatusAggregator.check_completion()."""

    def test_not_complete_while_pending(self, aggregator, sending_notification):
        notification_id = sending_notification(resolved=2)
        aggregator.record_outcome(notification_id, recipient(), DeliveryOutcome.SENT)

        assert not aggregator.check_completion(notification_id)

    def test_completes_without_failures(
        self, aggregator, sending_notification, notification_store, event_recorder
    ):
        notification_id = sending_notification(resolved=1)
        aggregator.record_outcome(notification_id, recipient(), DeliveryOutcome.SENT)

        assert aggregator.check_completion(notification_id)

        stored = notification_store.get(notification_id)
        assert stored.state == NotificationState.COMPLETED
        assert stored.completed_at is not None
        assert event_recorder.types == [EVENT_COMPLETED]
        assert event_recorder.events[0].metadata["sent"] == 1

    def test_fails_with_failures(
        self, aggregator, sending_notification, notification_store, event_recorder
    ):
        notification_id = sending_notification(resolved=1)
        aggregator.record_outcome(
            notification_id,
            recipient(),
            DeliveryOutcome.FAILED,
            classification=ErrorClassification.PERMANENT,
        )

        assert aggregator.check_completion(notification_id)

        assert notification_store.get(notification_id).state == NotificationState.FAILED
        assert event_recorder.types == [EVENT_FAILED]

    def test_second_check_loses(self, aggregator, sending_notification):
        notification_id = sending_notification(resolved=1)
        aggregator.record_outcome(notification_id, recipient(), DeliveryOutcome.SENT)

        assert aggregator.check_completion(notification_id)
        assert not aggregator.check_completion(notification_id)

    def test_unknown_notification(self, aggregator):
        assert not aggregator.check_completion("missing")

    def test_concurrent_checks_have_one_winner(
        self, aggregator, sending_notification, event_recorder
    ):
        notification_id = sending_notification(resolved=3)
        for ref in ("U1", "U2", "U3"):
            aggregator.record_outcome(notification_id, recipient(ref), DeliveryOutcome.SENT)

        threads_count = 16
        barrier = threading.Barrier(threads_count)
        outcomes = []
        lock = threading.Lock()

        def check():
            barrier.wait()
            won = aggregator.check_completion(notification_id)
            with lock:
                outcomes.append(won)

        threads = [threading.Thread(target=check) for _ in range(threads_count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert outcomes.count(True) == 1
        assert len(outcomes) == threads_count
        assert event_recorder.types == [EVENT_COMPLETED]

    def test_publisher_failure_does_not_break_completion(
        self, notification_store, result_store, sending_notification
    ):
        def broken_publisher(event):
            raise RuntimeError("bus down")

        aggregator = StatusAggregator(notification_store, result_store, broken_publisher)
        notification_id = sending_notification(resolved=1)
        aggregator.record_outcome(notification_id, recipient(), DeliveryOutcome.SENT)

        assert aggregator.check_completion(notification_id)
        assert (
            notification_store.get(notification_id).state
            == NotificationState.COMPLETED
        )


class TestNotificationEvent:
    """Tests for notification_event()."""

    def test_event_carries_counters(self, notification_factory):
        notification = notification_factory(store=False)

        event = notification_event("notification.delivery.queued", notification)

        assert event.subject_id == notification.id
        assert event.actor == "sre@example.com"
        assert event.metadata["state"] == "draft"
        assert event.metadata["resolved"] == 0

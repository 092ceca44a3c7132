"""Unit tests for the work-unit queues."""

from unittest.mock import MagicMock

import pytest

from infrastructure.operations.result import OperationResult
from modules.notifications.core.ports import QueueMessage
from modules.notifications.domain.errors import StoreError
from modules.notifications.domain.models import (
    RecipientDescriptor,
    RecipientKind,
    WorkUnit,
)
from modules.notifications.infrastructure.queue import InMemoryWorkQueue, SqsWorkQueue

pytestmark = pytest.mark.unit

QUEUE_URL = "https://sqs.ca-central-1.amazonaws.com/123456789012/delivery"


def make_unit(sequence=0):
    return WorkUnit(
        notification_id="n1",
        sequence=sequence,
        recipients=(
            RecipientDescriptor(conversation_ref="U1", kind=RecipientKind.USER),
        ),
    )


class TestInMemoryWorkQueue:
    """Tests for InMemoryWorkQueue."""

    def test_put_receive_ack(self):
        queue = InMemoryWorkQueue()
        unit = make_unit()
        queue.put(unit)

        message = queue.receive(timeout=0.01)

        assert message.unit == unit
        assert message.deliveries == 1
        assert queue.pending() == 1
        queue.ack(message)
        assert queue.pending() == 0

    def test_receive_empty(self):
        assert InMemoryWorkQueue().receive(timeout=0.01) is None

    def test_release_redelivers(self):
        queue = InMemoryWorkQueue(max_deliveries=3)
        queue.put(make_unit())

        queue.release(queue.receive(timeout=0.01))
        redelivered = queue.receive(timeout=0.01)

        assert redelivered.deliveries == 2
        assert queue.pending() == 1

    def test_release_drops_after_max_deliveries(self):
        queue = InMemoryWorkQueue(max_deliveries=1)
        queue.put(make_unit())

        queue.release(queue.receive(timeout=0.01))

        assert queue.pending() == 0
        assert queue.receive(timeout=0.01) is None


@pytest.fixture
def mock_sqs():
    sqs = MagicMock()
    sqs.send_message.return_value = OperationResult.success(data={"MessageId": "m1"})
    sqs.delete_message.return_value = OperationResult.success(data={})
    return sqs


class TestSqsWorkQueue:
    """Tests for SqsWorkQueue."""

    def test_put_sends_json(self, mock_sqs):
        unit = make_unit()

        SqsWorkQueue(mock_sqs, QUEUE_URL).put(unit)

        queue_url, body = mock_sqs.send_message.call_args.args
        assert queue_url == QUEUE_URL
        assert WorkUnit.from_message(body) == unit

    def test_put_failure_raises(self, mock_sqs):
        mock_sqs.send_message.return_value = OperationResult.transient_error("down")

        with pytest.raises(StoreError):
            SqsWorkQueue(mock_sqs, QUEUE_URL).put(make_unit())

    def test_receive(self, mock_sqs):
        unit = make_unit(sequence=4)
        mock_sqs.receive_messages.return_value = OperationResult.success(
            data=[
                {
                    "MessageId": "m1",
                    "ReceiptHandle": "rh-1",
                    "Body": unit.to_message(),
                    "Attributes": {"ApproximateReceiveCount": "2"},
                }
            ]
        )

        message = SqsWorkQueue(mock_sqs, QUEUE_URL).receive(timeout=5)

        assert message.unit == unit
        assert message.receipt == "rh-1"
        assert message.deliveries == 2
        assert mock_sqs.receive_messages.call_args.kwargs["wait_time_seconds"] == 5

    def test_receive_nothing(self, mock_sqs):
        mock_sqs.receive_messages.return_value = OperationResult.success(data=[])

        assert SqsWorkQueue(mock_sqs, QUEUE_URL).receive() is None

    def test_receive_failure(self, mock_sqs):
        mock_sqs.receive_messages.return_value = OperationResult.transient_error("x")

        assert SqsWorkQueue(mock_sqs, QUEUE_URL).receive() is None

    def test_invalid_message_is_deleted(self, mock_sqs):
        mock_sqs.receive_messages.return_value = OperationResult.success(
            data=[{"MessageId": "m1", "ReceiptHandle": "rh-1", "Body": "not json"}]
        )

        assert SqsWorkQueue(mock_sqs, QUEUE_URL).receive() is None
        mock_sqs.delete_message.assert_called_once_with(QUEUE_URL, "rh-1")

    def test_ack_deletes(self, mock_sqs):
        SqsWorkQueue(mock_sqs, QUEUE_URL).ack(
            QueueMessage(unit=make_unit(), receipt="rh-9")
        )

        mock_sqs.delete_message.assert_called_once_with(QUEUE_URL, "rh-9")

    def test_release_leaves_message_for_redelivery(self, mock_sqs):
        SqsWorkQueue(mock_sqs, QUEUE_URL).release(
            QueueMessage(unit=make_unit(), receipt="rh-9")
        )

        mock_sqs.delete_message.assert_not_called()

    def test_pending_sums_visible_and_in_flight(self, mock_sqs):
        mock_sqs.get_queue_attributes.return_value = OperationResult.success(
            data={
                "Attributes": {
                    "ApproximateNumberOfMessages": "3",
                    "ApproximateNumberOfMessagesNotVisible": "2",
                }
            }
        )

        assert SqsWorkQueue(mock_sqs, QUEUE_URL).pending() == 5

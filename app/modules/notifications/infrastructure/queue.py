"""Work-unit queues.

InMemoryWorkQueue serves a single process; SqsWorkQueue carries work units
as JSON messages through Amazon SQS so several processes can share the
load. Both are at-least-once: a unit released after a failure is delivered
again, and workers skip recipients that already have a terminal result.
"""

import queue
from typing import Optional

from infrastructure.clients.aws.sqs import SqsClient
from infrastructure.logging import get_module_logger
from modules.notifications.core.ports import QueueMessage
from modules.notifications.domain.errors import StoreError
from modules.notifications.domain.models import WorkUnit

logger = get_module_logger()


class InMemoryWorkQueue:
    """Thread-safe in-process queue of work units.

    Args:
        max_deliveries: A unit released this many times is dropped (and
            logged) instead of being delivered again
    """

    def __init__(self, max_deliveries: int = 3):
        self._queue: "queue.Queue[QueueMessage]" = queue.Queue()
        self._max_deliveries = max_deliveries

    def put(self, unit: WorkUnit) -> None:
        self._queue.put(QueueMessage(unit=unit))

    def receive(self, timeout: float = 1.0) -> Optional[QueueMessage]:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def ack(self, message: QueueMessage) -> None:
        self._queue.task_done()

    def release(self, message: QueueMessage) -> None:
        if message.deliveries >= self._max_deliveries:
            logger.error(
                "work_unit_dropped",
                notification_id=message.unit.notification_id,
                work_unit_id=message.unit.id,
                deliveries=message.deliveries,
            )
        else:
            self._queue.put(
                QueueMessage(
                    unit=message.unit,
                    receipt=message.receipt,
                    deliveries=message.deliveries + 1,
                )
            )
        self._queue.task_done()

    def pending(self) -> int:
        return self._queue.unfinished_tasks


class SqsWorkQueue:
    """Work-unit queue backed by Amazon SQS.

    Unacknowledged messages reappear after the queue's visibility timeout;
    ``release`` therefore does nothing and lets SQS redeliver.

    Args:
        sqs: SqsClient from the AWS clients facade
        queue_url: URL of the work-unit queue
    """

    def __init__(self, sqs: SqsClient, queue_url: str):
        self._sqs = sqs
        self._queue_url = queue_url

    def put(self, unit: WorkUnit) -> None:
        result = self._sqs.send_message(self._queue_url, unit.to_message())
        if not result.is_success:
            raise StoreError(
                f"Failed to enqueue work unit {unit.id}: {result.message}",
                response=result,
            )

    def receive(self, timeout: float = 1.0) -> Optional[QueueMessage]:
        result = self._sqs.receive_messages(
            self._queue_url,
            max_number_of_messages=1,
            wait_time_seconds=max(0, min(int(timeout), 20)),
        )
        if not result.is_success:
            logger.warning("work_unit_receive_failed", error=result.message)
            return None
        if not result.data:
            return None
        raw = result.data[0]
        attributes = raw.get("Attributes", {})
        try:
            unit = WorkUnit.from_message(raw["Body"])
        except ValueError as e:
            logger.error(
                "work_unit_message_invalid",
                message_id=raw.get("MessageId"),
                error=str(e),
            )
            self._sqs.delete_message(self._queue_url, raw["ReceiptHandle"])
            return None
        return QueueMessage(
            unit=unit,
            receipt=raw["ReceiptHandle"],
            deliveries=int(attributes.get("ApproximateReceiveCount", 1)),
        )

    def ack(self, message: QueueMessage) -> None:
        if not message.receipt:
            return
        result = self._sqs.delete_message(self._queue_url, message.receipt)
        if not result.is_success:
            logger.warning(
                "work_unit_ack_failed",
                work_unit_id=message.unit.id,
                error=result.message,
            )

    def release(self, message: QueueMessage) -> None:
        logger.info(
            "work_unit_released",
            work_unit_id=message.unit.id,
            deliveries=message.deliveries,
        )

    def pending(self) -> int:
        result = self._sqs.get_queue_attributes(self._queue_url)
        if not result.is_success:
            return 0
        attributes = (result.data or {}).get("Attributes", {})
        return int(attributes.get("ApproximateNumberOfMessages", 0)) + int(
            attributes.get("ApproximateNumberOfMessagesNotVisible", 0)
        )

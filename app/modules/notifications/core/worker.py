"""Send workers.

A SendWorker delivers one work unit: it sends the notification body to
every recipient in the unit, retries throttled and transient failures with
backoff, and reports each outcome to the StatusAggregator. The
DeliveryWorkerPool runs N workers against the shared work-unit queue.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from infrastructure.logging import (
    bind_delivery_context,
    clear_delivery_context,
    get_module_logger,
)
from infrastructure.operations.result import RATE_LIMITED, OperationResult
from infrastructure.resilience.retry import RetryConfig
from modules.notifications.core.aggregator import StatusAggregator
from modules.notifications.core.ports import (
    Messenger,
    NotificationStore,
    QueueMessage,
    WorkQueue,
)
from modules.notifications.domain.errors import (
    PermanentSendError,
    ThrottleError,
    TransientSendError,
)
from modules.notifications.domain.models import (
    DeliveryOutcome,
    ErrorClassification,
    Notification,
    NotificationState,
    RecipientDescriptor,
    WorkUnit,
)

logger = get_module_logger()

THROTTLE_ERROR_CODES = frozenset({RATE_LIMITED, "HTTP_429", "429"})


def classify_send_result(result: OperationResult) -> None:
    """Raise the SendError matching a failed messenger result.

    Raises:
        ThrottleError: the platform throttled the call
        TransientSendError: the call may succeed when retried
        PermanentSendError: the recipient cannot be reached
    """
    if result.is_success:
        return
    if result.status.is_final_failure:
        raise PermanentSendError(result.message, response=result)
    if result.error_code in THROTTLE_ERROR_CODES:
        raise ThrottleError(
            result.message, retry_after=result.retry_after, response=result
        )
    raise TransientSendError(result.message, response=result)


@dataclass
class WorkUnitReport:
    """What one SendWorker.process call did."""

    work_unit_id: str
    notification_id: str
    sent: int = 0
    failed: int = 0
    throttled: int = 0
    cancelled: int = 0
    skipped: int = 0
    completed_notification: bool = False

    @property
    def processed(self) -> int:
        return self.sent + self.failed + self.throttled + self.cancelled


class SendWorker:
    """Delivers work units, one recipient at a time.

    A failure on one recipient never aborts the unit. Backoff state lives
    only for the duration of a recipient's delivery.

    Args:
        notifications: Notification record store
        aggregator: Sink for per-recipient outcomes
        messenger: Platform send port
        retry_config: Attempt limits and backoff timing
        sleep: Injected sleep function (tests pass a no-op)
    """

    def __init__(
        self,
        notifications: NotificationStore,
        aggregator: StatusAggregator,
        messenger: Messenger,
        retry_config: Optional[RetryConfig] = None,
        sleep: Callable[[float], Any] = time.sleep,
    ):
        self._notifications = notifications
        self._aggregator = aggregator
        self._messenger = messenger
        self._retry = retry_config or RetryConfig()
        self._sleep = sleep

    def process(self, unit: WorkUnit) -> WorkUnitReport:
        """Deliver every recipient of ``unit`` and check for completion."""
        report = WorkUnitReport(
            work_unit_id=unit.id, notification_id=unit.notification_id
        )
        with bind_delivery_context(
            notification_id=unit.notification_id, work_unit_id=unit.id
        ):
            notification = self._notifications.get(unit.notification_id)
            if notification is None:
                logger.warning("work_unit_notification_missing")
                return report
            if notification.state == NotificationState.DRAFT:
                logger.warning("work_unit_for_draft_notification")
                return report
            if notification.is_terminal:
                report.skipped = len(unit.recipients)
                logger.info(
                    "work_unit_skipped_terminal",
                    state=notification.state.value,
                )
                return report

            if notification.state == NotificationState.QUEUED:
                if self._notifications.transition(
                    notification.id,
                    (NotificationState.QUEUED,),
                    NotificationState.SENDING,
                ):
                    logger.info("notification_sending")

            for recipient in unit.recipients:
                self._deliver(notification, recipient, report)

            report.completed_notification = self._aggregator.check_completion(
                notification.id
            )
            logger.info(
                "work_unit_processed",
                sequence=unit.sequence,
                sent=report.sent,
                failed=report.failed,
                throttled=report.throttled,
                cancelled=report.cancelled,
                skipped=report.skipped,
            )
        return report

    def _is_cancelled(self, notification_id: str) -> bool:
        current = self._notifications.get(notification_id)
        return current is not None and current.cancelled

    def _record(
        self,
        notification: Notification,
        recipient: RecipientDescriptor,
        outcome: DeliveryOutcome,
        attempts: int,
        classification: ErrorClassification,
        error: Optional[str] = None,
    ) -> None:
        self._aggregator.record_outcome(
            notification.id,
            recipient,
            outcome,
            attempts=attempts,
            classification=classification,
            error=error,
        )

    def _attempt(self, conversation_ref: str, body: Any) -> None:
        try:
            result = self._messenger.send(conversation_ref, body)
        except Exception as e:  # pylint: disable=broad-except
            logger.warning(
                "messenger_send_raised",
                recipient_id=conversation_ref,
                error=str(e),
            )
            raise TransientSendError(f"Unexpected send error: {e}") from e
        classify_send_result(result)

    def _deliver(
        self,
        notification: Notification,
        recipient: RecipientDescriptor,
        report: WorkUnitReport,
    ) -> None:
        ref = recipient.conversation_ref
        log = logger.bind(recipient_id=ref, recipient_kind=recipient.kind.value)

        # A terminal result from an earlier delivery may still need counting
        if self._aggregator.settle_existing(notification.id, ref):
            report.skipped += 1
            return

        # Cancellation applies before the first attempt only; a recipient
        # already being retried is finished
        if self._is_cancelled(notification.id):
            self._record(
                notification,
                recipient,
                DeliveryOutcome.FAILED,
                0,
                ErrorClassification.CANCELLED,
                "Delivery cancelled",
            )
            report.cancelled += 1
            return

        attempts = 0
        while True:
            attempts += 1
            try:
                self._attempt(ref, notification.body)

            except ThrottleError as e:
                if not self._retry.has_attempts_left(attempts):
                    log.warning("recipient_throttle_exhausted", attempts=attempts)
                    self._record(
                        notification,
                        recipient,
                        DeliveryOutcome.PERMANENTLY_FAILED,
                        attempts,
                        ErrorClassification.THROTTLE_EXHAUSTED,
                        str(e),
                    )
                    report.throttled += 1
                    return
                self._record(
                    notification,
                    recipient,
                    DeliveryOutcome.THROTTLED_RETRIED,
                    attempts,
                    ErrorClassification.THROTTLED,
                    str(e),
                )
                delay = self._retry.throttle_delay(attempts - 1, e.retry_after)
                log.info(
                    "recipient_send_throttled",
                    attempts=attempts,
                    retry_after=e.retry_after,
                    delay=delay,
                )
                self._sleep(delay)

            except TransientSendError as e:
                if not self._retry.has_attempts_left(attempts):
                    log.warning("recipient_transient_exhausted", attempts=attempts)
                    self._record(
                        notification,
                        recipient,
                        DeliveryOutcome.PERMANENTLY_FAILED,
                        attempts,
                        ErrorClassification.TRANSIENT_EXHAUSTED,
                        str(e),
                    )
                    report.failed += 1
                    return
                delay = self._retry.backoff_delay(attempts - 1)
                log.info(
                    "recipient_send_retrying",
                    attempts=attempts,
                    delay=delay,
                    error=str(e),
                )
                self._sleep(delay)

            except PermanentSendError as e:
                log.warning("recipient_send_failed", attempts=attempts, error=str(e))
                self._record(
                    notification,
                    recipient,
                    DeliveryOutcome.FAILED,
                    attempts,
                    ErrorClassification.PERMANENT,
                    str(e),
                )
                report.failed += 1
                return

            else:
                self._record(
                    notification,
                    recipient,
                    DeliveryOutcome.SENT,
                    attempts,
                    ErrorClassification.NONE,
                )
                report.sent += 1
                return


class DeliveryWorkerPool:
    """Runs ``concurrency`` send workers against a shared queue.

    Each thread owns one SendWorker built by ``worker_factory`` and draws
    work units independently. A unit whose processing raises is logged and
    released back to the queue for redelivery.

    Args:
        queue: Work-unit queue
        worker_factory: Builds a SendWorker per thread
        concurrency: Number of worker threads
        poll_interval: Seconds a thread waits on an empty queue before
            checking for shutdown
    """

    def __init__(
        self,
        queue: WorkQueue,
        worker_factory: Callable[[], SendWorker],
        concurrency: int = 4,
        poll_interval: float = 0.5,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._queue = queue
        self._worker_factory = worker_factory
        self._concurrency = concurrency
        self._poll_interval = poll_interval
        self._threads: List[threading.Thread] = []
        self._stop_event = threading.Event()
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        with self._lock:
            return any(t.is_alive() for t in self._threads)

    def start(self) -> None:
        """Start the worker threads. Calling start on a running pool is a no-op."""
        with self._lock:
            if any(t.is_alive() for t in self._threads):
                return
            self._stop_event.clear()
            self._threads = [
                threading.Thread(
                    target=self._run,
                    name=f"delivery-worker-{index}",
                    daemon=True,
                )
                for index in range(self._concurrency)
            ]
            for thread in self._threads:
                thread.start()
        logger.info("delivery_worker_pool_started", concurrency=self._concurrency)

    def stop(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """Signal the workers to stop after their current work unit."""
        self._stop_event.set()
        with self._lock:
            threads = list(self._threads)
        if wait:
            for thread in threads:
                thread.join(timeout=timeout)
        with self._lock:
            self._threads = [t for t in self._threads if t.is_alive()]
        logger.info("delivery_worker_pool_stopped", wait=wait)

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Process until the queue has no pending work units.

        Starts the pool for the duration of the call if it is not running.

        Returns:
            True if the queue drained before ``timeout`` seconds elapsed
        """
        started_here = not self.is_running
        if started_here:
            self.start()
        deadline = None if timeout is None else time.monotonic() + timeout
        try:
            while self._queue.pending() > 0:
                if deadline is not None and time.monotonic() >= deadline:
                    logger.warning(
                        "delivery_worker_pool_drain_timeout",
                        pending=self._queue.pending(),
                    )
                    return False
                time.sleep(0.01)
            return True
        finally:
            if started_here:
                self.stop(wait=True)

    def _run(self) -> None:
        worker = self._worker_factory()
        while not self._stop_event.is_set():
            message = self._queue.receive(timeout=self._poll_interval)
            if message is None:
                continue
            self._handle(worker, message)

    def _handle(self, worker: SendWorker, message: QueueMessage) -> None:
        try:
            worker.process(message.unit)
        except Exception as e:  # pylint: disable=broad-except
            logger.exception(
                "work_unit_processing_failed",
                notification_id=message.unit.notification_id,
                work_unit_id=message.unit.id,
                deliveries=message.deliveries,
                error=str(e),
            )
            self._queue.release(message)
        else:
            self._queue.ack(message)
        finally:
            clear_delivery_context()

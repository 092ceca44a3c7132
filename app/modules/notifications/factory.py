"""Factory wiring the delivery engine from configuration."""

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

from infrastructure.configuration.features.notifications import (
    NotificationDeliverySettings,
)
from infrastructure.logging import get_module_logger
from infrastructure.resilience.retry import RetryConfig
from infrastructure.services.providers import get_aws_clients, get_settings
from modules.notifications.core.aggregator import StatusAggregator
from modules.notifications.core.batcher import DeliveryBatcher
from modules.notifications.core.filters import TenantFilter
from modules.notifications.core.ports import (
    DeliveryResultStore,
    EventPublisher,
    Messenger,
    NotificationStore,
    RosterSource,
    WorkQueue,
)
from modules.notifications.core.resolver import RecipientResolver
from modules.notifications.core.service import NotificationDeliveryService
from modules.notifications.core.worker import DeliveryWorkerPool, SendWorker
from modules.notifications.infrastructure.dynamodb import (
    DynamoDBDeliveryResultStore,
    DynamoDBNotificationStore,
)
from modules.notifications.infrastructure.queue import InMemoryWorkQueue, SqsWorkQueue
from modules.notifications.infrastructure.stores import (
    InMemoryDeliveryResultStore,
    InMemoryNotificationStore,
)

logger = get_module_logger()


@dataclass
class DeliveryEngine:
    """Everything a process needs to accept and deliver notifications."""

    service: NotificationDeliveryService
    pool: DeliveryWorkerPool
    queue: WorkQueue
    notifications: NotificationStore
    results: DeliveryResultStore
    aggregator: StatusAggregator


def retry_config_from_settings(settings: NotificationDeliverySettings) -> RetryConfig:
    return RetryConfig(
        max_attempts=settings.max_attempts,
        base_delay_seconds=settings.base_delay_seconds,
        max_delay_seconds=settings.max_delay_seconds,
        max_retry_after_seconds=settings.max_retry_after_seconds,
    )


def create_stores(
    settings: NotificationDeliverySettings, backend: Optional[str] = None
) -> Tuple[NotificationStore, DeliveryResultStore]:
    """Create the notification and result stores for the configured backend.

    Raises:
        ValueError: If an unknown backend is specified
    """
    backend = backend or settings.store_backend

    if backend == "memory":
        logger.info("creating_in_memory_delivery_stores")
        return InMemoryNotificationStore(), InMemoryDeliveryResultStore()

    if backend == "dynamodb":
        logger.info(
            "creating_dynamodb_delivery_stores",
            notifications_table=settings.notifications_table,
            results_table=settings.results_table,
        )
        dynamodb = get_aws_clients().dynamodb
        return (
            DynamoDBNotificationStore(dynamodb, settings.notifications_table),
            DynamoDBDeliveryResultStore(dynamodb, settings.results_table),
        )

    raise ValueError(f"Unknown store backend: {backend}. Supported: memory, dynamodb")


def create_queue(
    settings: NotificationDeliverySettings, backend: Optional[str] = None
) -> WorkQueue:
    """Create the work-unit queue for the configured backend."""
    backend = backend or settings.queue_backend

    if backend == "memory":
        return InMemoryWorkQueue()

    if backend == "sqs":
        logger.info("creating_sqs_work_queue", queue_url=settings.queue_url)
        return SqsWorkQueue(get_aws_clients().sqs, settings.queue_url)

    raise ValueError(f"Unknown queue backend: {backend}. Supported: memory, sqs")


def _default_slack_adapters() -> Tuple[Messenger, RosterSource]:
    # Imported here so engines built with injected adapters never need a token
    from integrations.slack.client import SlackClientManager
    from modules.notifications.infrastructure.slack import (
        SlackMessenger,
        SlackRosterSource,
    )

    client = SlackClientManager.get_client()
    return SlackMessenger(client), SlackRosterSource(client)


def build_delivery_engine(
    settings: Optional[NotificationDeliverySettings] = None,
    messenger: Optional[Messenger] = None,
    roster: Optional[RosterSource] = None,
    notifications: Optional[NotificationStore] = None,
    results: Optional[DeliveryResultStore] = None,
    queue: Optional[WorkQueue] = None,
    tenant_filter: Optional[TenantFilter] = None,
    event_publisher: Optional[EventPublisher] = None,
    sleep: Callable[[float], Any] = time.sleep,
) -> DeliveryEngine:
    """Wire the delivery engine.

    Anything not injected is built from ``settings`` (defaults to
    ``get_settings().notifications``): stores and queue from their backends,
    Slack adapters from the bot token, the tenant gate from
    DISABLE_TENANT_FILTER / ALLOWED_TENANTS.
    """
    settings = settings or get_settings().notifications

    if messenger is None or roster is None:
        default_messenger, default_roster = _default_slack_adapters()
        messenger = messenger or default_messenger
        roster = roster or default_roster
    if notifications is None or results is None:
        default_notifications, default_results = create_stores(settings)
        notifications = notifications or default_notifications
        results = results or default_results
    queue = queue or create_queue(settings)
    tenant_filter = tenant_filter or TenantFilter.from_settings(settings)
    retry_config = retry_config_from_settings(settings)

    aggregator = StatusAggregator(notifications, results, event_publisher)
    resolver = RecipientResolver(roster, tenant_filter, settings.roster_page_size)
    batcher = DeliveryBatcher(notifications, queue, settings.batch_size, aggregator)
    service = NotificationDeliveryService(
        notifications, results, resolver, batcher, aggregator
    )

    def worker_factory() -> SendWorker:
        return SendWorker(notifications, aggregator, messenger, retry_config, sleep)

    pool = DeliveryWorkerPool(queue, worker_factory, settings.worker_concurrency)

    logger.info(
        "delivery_engine_built",
        store_backend=type(notifications).__name__,
        queue_backend=type(queue).__name__,
        batch_size=settings.batch_size,
        concurrency=settings.worker_concurrency,
    )
    return DeliveryEngine(
        service=service,
        pool=pool,
        queue=queue,
        notifications=notifications,
        results=results,
        aggregator=aggregator,
    )


def build_delivery_service(**kwargs) -> NotificationDeliveryService:
    """Wire the engine and return only its service facade.

    Accepts the same keyword arguments as build_delivery_engine.
    """
    return build_delivery_engine(**kwargs).service

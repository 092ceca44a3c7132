"""Core delivery engine: resolver, batcher, workers, aggregator and facade."""

from modules.notifications.core.aggregator import (
    EVENT_CANCELLED,
    EVENT_COMPLETED,
    EVENT_FAILED,
    EVENT_QUEUED,
    StatusAggregator,
)
from modules.notifications.core.batcher import DeliveryBatcher, chunk_recipients
from modules.notifications.core.filters import TenantFilter
from modules.notifications.core.resolver import RecipientResolver, ResolvedAudience
from modules.notifications.core.service import NotificationDeliveryService
from modules.notifications.core.worker import (
    DeliveryWorkerPool,
    SendWorker,
    WorkUnitReport,
    classify_send_result,
)

__all__ = [
    "EVENT_CANCELLED",
    "EVENT_COMPLETED",
    "EVENT_FAILED",
    "EVENT_QUEUED",
    "StatusAggregator",
    "DeliveryBatcher",
    "chunk_recipients",
    "TenantFilter",
    "RecipientResolver",
    "ResolvedAudience",
    "NotificationDeliveryService",
    "DeliveryWorkerPool",
    "SendWorker",
    "WorkUnitReport",
    "classify_send_result",
]

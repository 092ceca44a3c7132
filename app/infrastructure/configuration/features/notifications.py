"""Notification delivery feature settings."""

from typing import Any, List

from pydantic import Field, field_validator, model_validator
import structlog

from infrastructure.configuration.base import FeatureSettings

logger = structlog.stdlib.get_logger().bind(component="config.notifications")


class NotificationDeliverySettings(FeatureSettings):
    """Configuration for the notification delivery engine.

    Environment Variables:
        DELIVERY_BATCH_SIZE: Recipients per work unit (default: 100)
        DELIVERY_WORKER_CONCURRENCY: Send worker threads (default: 4)
        DELIVERY_MAX_ATTEMPTS: Send attempts per recipient (default: 5)
        DELIVERY_BASE_DELAY_SECONDS: Base exponential backoff delay (default: 1s)
        DELIVERY_MAX_DELAY_SECONDS: Maximum backoff delay (default: 60s)
        DELIVERY_MAX_RETRY_AFTER_SECONDS: Cap on platform Retry-After (default: 120s)
        DELIVERY_ROSTER_PAGE_SIZE: Roster page size when resolving (default: 200)
        DELIVERY_STORE_BACKEND: 'memory' or 'dynamodb'
        DELIVERY_QUEUE_BACKEND: 'memory' or 'sqs'
        DELIVERY_QUEUE_URL: SQS queue URL for work units
        DELIVERY_NOTIFICATIONS_TABLE: DynamoDB table for notification records
        DELIVERY_RESULTS_TABLE: DynamoDB table for delivery results
        DISABLE_TENANT_FILTER: Allow every tenant (default: False)
        ALLOWED_TENANTS: Tenant ids separated by ';' or ','
        CHAT_PLATFORM_ID: Chat platform accepted by the filter (default: slack)

    Exponential Backoff:
        Delay calculation: min(base_delay * (2 ^ attempt), max_delay)

        A platform supplied Retry-After replaces the computed delay for
        throttled sends, capped at DELIVERY_MAX_RETRY_AFTER_SECONDS.

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        batch_size = settings.notifications.batch_size
        allowed = settings.notifications.allowed_tenant_ids
        ```
    """

    batch_size: int = Field(
        default=100,
        alias="DELIVERY_BATCH_SIZE",
        description="Recipients per work unit",
    )
    worker_concurrency: int = Field(
        default=4,
        alias="DELIVERY_WORKER_CONCURRENCY",
        description="Number of send worker threads draining the queue",
    )
    max_attempts: int = Field(
        default=5,
        alias="DELIVERY_MAX_ATTEMPTS",
        description="Maximum send attempts per recipient",
    )
    base_delay_seconds: float = Field(
        default=1.0,
        alias="DELIVERY_BASE_DELAY_SECONDS",
        description="Base delay for exponential backoff (seconds)",
    )
    max_delay_seconds: float = Field(
        default=60.0,
        alias="DELIVERY_MAX_DELAY_SECONDS",
        description="Maximum delay for exponential backoff (seconds)",
    )
    max_retry_after_seconds: float = Field(
        default=120.0,
        alias="DELIVERY_MAX_RETRY_AFTER_SECONDS",
        description="Upper bound applied to platform Retry-After values",
    )
    roster_page_size: int = Field(
        default=200,
        alias="DELIVERY_ROSTER_PAGE_SIZE",
        description="Members requested per roster page",
    )
    store_backend: str = Field(
        default="memory",
        alias="DELIVERY_STORE_BACKEND",
        description="Store backend: 'memory' or 'dynamodb'",
    )
    queue_backend: str = Field(
        default="memory",
        alias="DELIVERY_QUEUE_BACKEND",
        description="Work unit queue backend: 'memory' or 'sqs'",
    )
    queue_url: str = Field(
        default="",
        alias="DELIVERY_QUEUE_URL",
        description="SQS queue URL when DELIVERY_QUEUE_BACKEND is sqs",
    )
    notifications_table: str = Field(
        default="notification_delivery_notifications",
        alias="DELIVERY_NOTIFICATIONS_TABLE",
    )
    results_table: str = Field(
        default="notification_delivery_results",
        alias="DELIVERY_RESULTS_TABLE",
    )
    disable_tenant_filter: bool = Field(
        default=False,
        alias="DISABLE_TENANT_FILTER",
        description="Skip the tenant allowlist check entirely",
    )
    allowed_tenants: str = Field(
        default="",
        alias="ALLOWED_TENANTS",
        description="Allowed tenant ids, separated by ';' or ','",
    )
    chat_platform_id: str = Field(
        default="slack",
        alias="CHAT_PLATFORM_ID",
    )

    @field_validator("store_backend", mode="before")
    @classmethod
    def _normalize_backend(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            if v not in ("memory", "dynamodb"):
                raise ValueError(
                    f"DELIVERY_STORE_BACKEND must be 'memory' or 'dynamodb', got '{v}'"
                )
        return v

    @field_validator("queue_backend", mode="before")
    @classmethod
    def _normalize_queue_backend(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            if v not in ("memory", "sqs"):
                raise ValueError(
                    f"DELIVERY_QUEUE_BACKEND must be 'memory' or 'sqs', got '{v}'"
                )
        return v

    @model_validator(mode="after")
    def _validate_limits(self) -> "NotificationDeliverySettings":
        if self.batch_size < 1:
            raise ValueError("DELIVERY_BATCH_SIZE must be at least 1")
        if self.worker_concurrency < 1:
            raise ValueError("DELIVERY_WORKER_CONCURRENCY must be at least 1")
        if self.roster_page_size < 1:
            raise ValueError("DELIVERY_ROSTER_PAGE_SIZE must be at least 1")
        if self.queue_backend == "sqs" and not self.queue_url:
            raise ValueError("DELIVERY_QUEUE_URL is required for the sqs backend")
        if not self.disable_tenant_filter and not self.allowed_tenant_ids:
            logger.warning(
                "allowed_tenants_not_configured",
                hint="set ALLOWED_TENANTS or DISABLE_TENANT_FILTER=true",
            )
        return self

    @property
    def allowed_tenant_ids(self) -> List[str]:
        """Allowed tenants parsed from ALLOWED_TENANTS."""
        raw = self.allowed_tenants.replace(";", ",")
        return [part.strip() for part in raw.split(",") if part.strip()]

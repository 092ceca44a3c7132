"""Infrastructure modules for the notification delivery engine.

Centralized infrastructure components:
- configuration: Settings management (Settings, NotificationDeliverySettings)
- logging: Structured logging (get_module_logger, bind_delivery_context)
- events: In-process event dispatcher
- operations: Operation results and error classification
- resilience: Retry timing (RetryConfig)
- clients: AWS client facade (DynamoDB, SQS)
- services: Application-scoped providers (get_settings, get_aws_clients)
"""

from infrastructure.logging import get_module_logger
from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus
from infrastructure.services import get_settings

__all__ = [
    "get_module_logger",
    "OperationResult",
    "OperationStatus",
    "get_settings",
]

"""Domain layer - data models and errors."""

from modules.notifications.domain.errors import (
    AggregationConflict,
    DeliveryAlreadyStartedError,
    InvalidStateTransitionError,
    NotificationDeliveryError,
    NotificationNotFoundError,
    PermanentSendError,
    ResolutionError,
    RosterUnavailableError,
    StoreError,
    ThrottleError,
    TransientSendError,
)
from modules.notifications.domain.models import (
    AudienceKind,
    AudienceSpec,
    DeliveryOutcome,
    DeliveryProgress,
    DeliveryResult,
    ErrorClassification,
    Notification,
    NotificationState,
    RecipientDescriptor,
    RecipientKind,
    WorkUnit,
)

__all__ = [
    "AudienceKind",
    "AudienceSpec",
    "DeliveryOutcome",
    "DeliveryProgress",
    "DeliveryResult",
    "ErrorClassification",
    "Notification",
    "NotificationState",
    "RecipientDescriptor",
    "RecipientKind",
    "WorkUnit",
    "AggregationConflict",
    "DeliveryAlreadyStartedError",
    "InvalidStateTransitionError",
    "NotificationDeliveryError",
    "NotificationNotFoundError",
    "PermanentSendError",
    "ResolutionError",
    "RosterUnavailableError",
    "StoreError",
    "ThrottleError",
    "TransientSendError",
]

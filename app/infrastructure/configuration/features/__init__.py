"""Feature settings - exports all feature module settings."""

from infrastructure.configuration.features.notifications import (
    NotificationDeliverySettings,
)

__all__ = [
    "NotificationDeliverySettings",
]

"""Notification delivery module.

Broadcasts an authored notification to teams, channels, users or a whole
tenant roster, tracking the outcome for every recipient.

Usage:
    from modules.notifications import AudienceSpec, build_delivery_engine

    engine = build_delivery_engine()
    engine.pool.start()

    result = engine.service.create_and_send(
        title="Maintenance tonight",
        body="The VPN will be unavailable from 22:00 to 23:00.",
        audience=AudienceSpec(channels=["C0123"], teams=["S0456"]),
        author="sre@example.com",
    )
    if result.is_success:
        progress = engine.service.get_progress(result.data["notification_id"])
"""

from modules.notifications.core.service import NotificationDeliveryService
from modules.notifications.domain.models import (
    AudienceSpec,
    DeliveryProgress,
    NotificationState,
)
from modules.notifications.factory import (
    DeliveryEngine,
    build_delivery_engine,
    build_delivery_service,
)

__all__ = [
    "AudienceSpec",
    "DeliveryEngine",
    "DeliveryProgress",
    "NotificationDeliveryService",
    "NotificationState",
    "build_delivery_engine",
    "build_delivery_service",
]

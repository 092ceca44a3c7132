"""Infrastructure configuration module - public API.

Centralized configuration management using Pydantic BaseSettings with
domain-based organization.

Exports:
    Settings: Main settings class (for testing/overrides)
    NotificationDeliverySettings: Delivery engine settings class

Example:
    ```python
    from infrastructure.services import get_settings

    settings = get_settings()

    slack_token = settings.slack.SLACK_TOKEN
    concurrency = settings.notifications.worker_concurrency
    ```
"""

from infrastructure.configuration.settings import Settings
from infrastructure.configuration.features.notifications import (
    NotificationDeliverySettings,
)

__all__ = ["Settings", "NotificationDeliverySettings"]

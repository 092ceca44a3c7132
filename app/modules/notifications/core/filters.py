"""Tenant and platform gate applied to resolved recipients."""

from typing import Iterable, Optional

from infrastructure.configuration.features.notifications import (
    NotificationDeliverySettings,
)
from infrastructure.logging import get_module_logger

logger = get_module_logger()


class TenantFilter:
    """Boolean gate deciding which tenants (and chat platforms) are served.

    Args:
        disable_tenant_filter: Allow every tenant when True
        allowed_tenants: Allowed tenant ids; required unless the filter is
            disabled
        platform_id: The only chat platform accepted by is_allowed_platform

    Raises:
        ValueError: if the filter is enabled with no allowed tenants
    """

    def __init__(
        self,
        disable_tenant_filter: bool = False,
        allowed_tenants: Optional[Iterable[str]] = None,
        platform_id: str = "slack",
    ):
        self.disabled = disable_tenant_filter
        self.allowed_tenants = frozenset(
            t.strip() for t in (allowed_tenants or []) if t and t.strip()
        )
        self.platform_id = platform_id.lower()
        if not self.disabled and not self.allowed_tenants:
            raise ValueError(
                "ALLOWED_TENANTS must list at least one tenant "
                "when DISABLE_TENANT_FILTER is false"
            )

    @classmethod
    def from_settings(cls, settings: NotificationDeliverySettings) -> "TenantFilter":
        return cls(
            disable_tenant_filter=settings.disable_tenant_filter,
            allowed_tenants=settings.allowed_tenant_ids,
            platform_id=settings.chat_platform_id,
        )

    @classmethod
    def allow_all(cls) -> "TenantFilter":
        return cls(disable_tenant_filter=True)

    def is_allowed(self, tenant_id: Optional[str]) -> bool:
        """True if recipients of ``tenant_id`` may be messaged.

        An unknown tenant is only allowed when the filter is disabled.
        """
        if self.disabled:
            return True
        if not tenant_id:
            return False
        allowed = tenant_id in self.allowed_tenants
        if not allowed:
            logger.debug("tenant_not_allowed", tenant_id=tenant_id)
        return allowed

    def is_allowed_platform(self, channel_id: Optional[str]) -> bool:
        """True if an inbound activity from ``channel_id`` should be served."""
        if not channel_id:
            return False
        return channel_id.lower() == self.platform_id

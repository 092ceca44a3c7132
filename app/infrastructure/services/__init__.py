"""
Dependency injection services.

Provides provider functions for application-scoped singletons.
"""

from infrastructure.services.providers import (
    get_settings,
    get_aws_clients,
)

__all__ = [
    "get_settings",
    "get_aws_clients",
]

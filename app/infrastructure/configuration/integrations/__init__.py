"""Integration settings - external services used by the delivery engine."""

from infrastructure.configuration.integrations.aws import AwsSettings
from infrastructure.configuration.integrations.slack import SlackSettings

__all__ = [
    "AwsSettings",
    "SlackSettings",
]

"""Slack Web API client management."""

from typing import Optional

from slack_sdk import WebClient

from infrastructure.services.providers import get_settings


class SlackClientManager:
    """Holds the process-wide Slack WebClient used by the delivery adapters."""

    _client: Optional[WebClient] = None

    @classmethod
    def get_client(cls) -> WebClient:
        """Return the shared WebClient, building it from settings on first use."""
        if cls._client is None:
            slack = get_settings().slack
            cls._client = WebClient(
                token=slack.SLACK_TOKEN,
                base_url=slack.SLACK_BASE_URL,
                timeout=slack.SLACK_API_TIMEOUT,
            )
        return cls._client

    @classmethod
    def reset(cls) -> None:
        """Drop the cached client (token rotation, tests)."""
        cls._client = None

"""Slack integration settings."""

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class SlackSettings(IntegrationSettings):
    """Slack Web API configuration for sends and roster reads.

    Environment Variables:
        SLACK_TOKEN: Bot token (xoxb-*) with chat:write, im:write, users:read
            and usergroups:read scopes
        SLACK_API_TIMEOUT: Seconds before a Web API call is abandoned (default: 30)
        SLACK_BASE_URL: Web API base URL override (default: Slack's public API)

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        slack_token = settings.slack.SLACK_TOKEN
        ```
    """

    SLACK_TOKEN: str = ""
    SLACK_API_TIMEOUT: int = Field(default=30, ge=1)
    SLACK_BASE_URL: str = "https://slack.com/api/"

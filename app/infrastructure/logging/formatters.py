"""Log processors that keep delivery logs safe and bounded.

Slack tokens never reach the log stream, whether they appear under a
sensitive key or embedded in an error message, and long notification
bodies are truncated.
"""

import re
from typing import Any

SENSITIVE_KEYS = frozenset(
    {
        "password",
        "secret",
        "token",
        "authorization",
        "credential",
        "bearer",
    }
)

# Slack bot, user, app and refresh tokens
SLACK_TOKEN_PATTERN = re.compile(r"xox[abeoprs]-[A-Za-z0-9-]+|xapp-[A-Za-z0-9-]+")


def mask_sensitive_data(
    mask_value: str = "***REDACTED***",
    additional_keys: frozenset[str] | None = None,
):
    """Create a processor that redacts secrets from log entries.

    Values under a key containing a sensitive word (case-insensitive) are
    replaced outright. Slack tokens embedded in any other string value are
    replaced in place.

    Args:
        mask_value: Replacement text.
        additional_keys: Extra key fragments to treat as sensitive.

    Returns:
        A structlog processor function.
    """
    keys = SENSITIVE_KEYS | additional_keys if additional_keys else SENSITIVE_KEYS

    def processor(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        masked = {}
        for key, value in event_dict.items():
            if value is not None and any(k in key.lower() for k in keys):
                masked[key] = mask_value
            elif isinstance(value, str):
                masked[key] = SLACK_TOKEN_PATTERN.sub(mask_value, value)
            else:
                masked[key] = value
        return masked

    return processor


def truncate_large_values(max_length: int = 500):
    """Create a processor that shortens long string values.

    Args:
        max_length: Longest string kept intact.

    Returns:
        A structlog processor function.
    """

    def processor(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        for key, value in event_dict.items():
            if isinstance(value, str) and len(value) > max_length:
                event_dict[key] = (
                    f"{value[:max_length]}...[truncated, {len(value)} chars total]"
                )
        return event_dict

    return processor

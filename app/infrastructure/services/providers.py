"""Process-wide providers for settings and AWS clients."""

from functools import lru_cache

from infrastructure.clients.aws import AWSClients
from infrastructure.configuration import Settings


@lru_cache
def get_settings() -> Settings:
    """Return the settings loaded from the environment, built once per process.

    Tests reset it with ``get_settings.cache_clear()``.
    """
    return Settings()


@lru_cache
def get_aws_clients() -> AWSClients:
    """Return the DynamoDB and SQS clients configured from ``settings.aws``.

    Credentials are resolved on each API call, so the cached facade never
    holds stale credentials.

    Usage:
        aws = get_aws_clients()
        result = aws.sqs.receive_messages(queue_url)
        if result.is_success:
            messages = result.data
    """
    return AWSClients(aws_settings=get_settings().aws)

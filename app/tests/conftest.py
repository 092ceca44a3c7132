import pytest

from infrastructure.clients.aws.executor import reset_client_cache
from infrastructure.events.dispatcher import clear_handlers
from infrastructure.logging import clear_delivery_context
from infrastructure.services.providers import get_aws_clients, get_settings
from integrations.slack.client import SlackClientManager


@pytest.fixture(autouse=True)
def reset_application_singletons():
    """Give every test fresh settings, clients, handlers and log context."""
    get_settings.cache_clear()
    get_aws_clients.cache_clear()
    reset_client_cache()
    SlackClientManager.reset()
    clear_handlers()
    clear_delivery_context()
    yield
    clear_handlers()
    clear_delivery_context()
    get_settings.cache_clear()
    get_aws_clients.cache_clear()


@pytest.fixture
def delivery_env(monkeypatch):
    """Set delivery environment variables for a test.

    Usage:
        delivery_env(ALLOWED_TENANTS="T1;T2", DELIVERY_BATCH_SIZE="10")
    """

    def _set(**env):
        for key, value in env.items():
            monkeypatch.setenv(key, str(value))

    return _set

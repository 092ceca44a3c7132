"""Fixtures for infrastructure event system tests."""

from unittest.mock import MagicMock

import pytest

from infrastructure.events.models import Event


@pytest.fixture
def event_factory():
    """Factory for creating test events."""

    def _factory(
        event_type: str = "notification.delivery.completed",
        subject_id: str = "n1",
        actor: str = "sre@example.com",
        metadata: dict = None,
    ):
        return Event(
            event_type=event_type,
            subject_id=subject_id,
            actor=actor,
            metadata=metadata or {"sent": 3, "failed": 0},
        )

    return _factory


@pytest.fixture
def mock_event_handler():
    handler = MagicMock()
    handler.__name__ = "mock_handler"
    return handler

"""Unit tests for event models."""

from datetime import datetime, timezone
from uuid import UUID

import pytest

from infrastructure.events.models import Event

pytestmark = pytest.mark.unit


class TestEvent:
    def test_to_dict(self, event_factory):
        data = event_factory().to_dict()

        assert data["event_type"] == "notification.delivery.completed"
        assert data["subject_id"] == "n1"
        assert isinstance(data["timestamp"], str)
        assert isinstance(data["correlation_id"], str)

    def test_from_dict_restores_event(self, event_factory):
        event = event_factory()

        restored = Event.from_dict(event.to_dict())

        assert restored == event

    def test_from_dict_defaults(self):
        event = Event.from_dict({"event_type": "notification.delivery.queued"})

        assert isinstance(event.correlation_id, UUID)
        assert event.timestamp.tzinfo == timezone.utc
        assert event.metadata == {}

    def test_from_dict_invalid(self):
        with pytest.raises(ValueError):
            Event.from_dict({"subject_id": "n1"})

    def test_timestamp_is_utc(self):
        event = Event(event_type="x")

        assert event.timestamp <= datetime.now(timezone.utc)
        assert event.timestamp.tzinfo is not None

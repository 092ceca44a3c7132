"""Event models for the in-process event system."""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict
from uuid import UUID, uuid4


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Event:
    """Immutable record of something that happened.

    Delivery lifecycle events (``notification.delivery.queued``,
    ``notification.delivery.completed``, ...) carry the notification id as
    the subject and the final counters in ``metadata``.
    """

    event_type: str
    """The type of event (e.g., 'notification.delivery.completed')."""

    subject_id: str = ""
    """Identifier of the entity the event is about."""

    timestamp: datetime = field(default_factory=_utcnow)
    """When the event occurred (UTC)."""

    correlation_id: UUID = field(default_factory=uuid4)
    """Unique ID to track related events across the system."""

    actor: str = ""
    """Who triggered the event, when known."""

    metadata: Dict[str, Any] = field(default_factory=dict)
    """Custom metadata for this event type."""

    def to_dict(self) -> Dict[str, Any]:
        """Serialize event to a dictionary with ISO timestamp and string UUID."""
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        data["correlation_id"] = str(self.correlation_id)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        """Deserialize event from dictionary.

        Raises:
            ValueError: If required fields are missing or invalid.
        """
        try:
            timestamp = data.get("timestamp")
            if isinstance(timestamp, str):
                timestamp = datetime.fromisoformat(timestamp)
            elif timestamp is None:
                timestamp = _utcnow()

            correlation_id = data.get("correlation_id")
            if isinstance(correlation_id, str):
                correlation_id = UUID(correlation_id)
            elif correlation_id is None:
                correlation_id = uuid4()

            return cls(
                event_type=data["event_type"],
                subject_id=data.get("subject_id", ""),
                timestamp=timestamp,
                correlation_id=correlation_id,
                actor=data.get("actor", ""),
                metadata=data.get("metadata", {}),
            )
        except (KeyError, ValueError) as e:
            raise ValueError(f"Invalid event data: {e}")

    def __hash__(self) -> int:
        return hash((self.correlation_id, self.timestamp))

"""Domain models for notification delivery.

Pydantic models are used for everything that crosses a boundary (the
authoring surface, the work-unit queue, the stores) so input is validated
once and serialisation stays consistent:

  - Notification / AudienceSpec: the authored broadcast and who receives it
  - RecipientDescriptor / WorkUnit: immutable values produced by the
    resolver and batcher and consumed by the send workers
  - DeliveryResult: the durable per-recipient outcome, one per
    (notification, recipient)
  - DeliveryProgress: read model returned to the authoring surface

Counter mapping (DeliveryResult -> Notification counters):
  - outcome SENT                                   -> sent
  - outcome FAILED (permanent error, cancellation,
    enqueue failure)                               -> failed
  - PERMANENTLY_FAILED + TRANSIENT_EXHAUSTED       -> failed
  - PERMANENTLY_FAILED + THROTTLE_EXHAUSTED        -> throttled
  - THROTTLED_RETRIED is non-terminal and never counted

A terminal result carries a ``counted`` flag that flips once, when its
counter is incremented, so counting can be retried after a failed write
without counting twice.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional, Tuple, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


class NotificationState(Enum):
    """Lifecycle of a notification.

    Forward-only: draft < queued < sending < {completed, failed}.
    """

    DRAFT = "draft"
    QUEUED = "queued"
    SENDING = "sending"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (NotificationState.COMPLETED, NotificationState.FAILED)

    @property
    def is_in_flight(self) -> bool:
        """Queued or sending: work units may still be outstanding."""
        return self in (NotificationState.QUEUED, NotificationState.SENDING)

    def can_advance_to(self, other: "NotificationState") -> bool:
        """True if moving from this state to ``other`` goes strictly forward."""
        if self.is_terminal:
            return False
        return _STATE_RANK[other] > _STATE_RANK[self]


_STATE_RANK = {
    NotificationState.DRAFT: 0,
    NotificationState.QUEUED: 1,
    NotificationState.SENDING: 2,
    NotificationState.COMPLETED: 3,
    NotificationState.FAILED: 3,
}


class AudienceKind(Enum):
    TEAMS = "teams"
    CHANNELS = "channels"
    USERS = "users"
    ALL_USERS = "all_users"


class RecipientKind(Enum):
    TEAM = "team"
    CHANNEL = "channel"
    USER = "user"


class DeliveryOutcome(Enum):
    """Per-recipient delivery outcome.

    THROTTLED_RETRIED is written while a throttled recipient waits for its
    next attempt; every other value is terminal.
    """

    SENT = "sent"
    FAILED = "failed"
    THROTTLED_RETRIED = "throttled_retried"
    PERMANENTLY_FAILED = "permanently_failed"


TERMINAL_OUTCOMES = frozenset(
    {
        DeliveryOutcome.SENT,
        DeliveryOutcome.FAILED,
        DeliveryOutcome.PERMANENTLY_FAILED,
    }
)


class ErrorClassification(Enum):
    NONE = "none"
    THROTTLED = "throttled"
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    THROTTLE_EXHAUSTED = "throttle_exhausted"
    TRANSIENT_EXHAUSTED = "transient_exhausted"
    CANCELLED = "cancelled"
    ENQUEUE_FAILED = "enqueue_failed"


def counter_for(
    outcome: DeliveryOutcome, classification: ErrorClassification
) -> Optional[str]:
    """Name of the Notification counter a terminal result increments.

    Returns None for non-terminal outcomes.
    """
    if outcome == DeliveryOutcome.SENT:
        return "sent"
    if outcome == DeliveryOutcome.FAILED:
        return "failed"
    if outcome == DeliveryOutcome.PERMANENTLY_FAILED:
        if classification == ErrorClassification.THROTTLE_EXHAUSTED:
            return "throttled"
        return "failed"
    return None


def _clean_ids(values: List[str]) -> List[str]:
    """Strip, drop blanks and dedupe while keeping first-seen order."""
    seen = set()
    cleaned = []
    for value in values:
        value = value.strip()
        if value and value not in seen:
            seen.add(value)
            cleaned.append(value)
    return cleaned


class AudienceSpec(BaseModel):
    """Who a notification is sent to.

    Teams, channels and users may be combined; ``all_users`` targets the
    whole tenant roster and may not be combined with explicit lists.

    Attributes:
        teams: Team (user group) ids whose members receive the message
        channels: Channel ids the message is posted to
        users: User ids that receive a direct message
        all_users: Broadcast to every user in the tenant roster
        tenant_id: Tenant the audience belongs to
        team_conversations: Post once per team conversation instead of
            expanding team members

    Example:
        audience = AudienceSpec(teams=["S0123"], users=["U0456"])
    """

    teams: List[str] = Field(default_factory=list)
    channels: List[str] = Field(default_factory=list)
    users: List[str] = Field(default_factory=list)
    all_users: bool = False
    tenant_id: Optional[str] = None
    team_conversations: bool = False

    @field_validator("teams", "channels", "users")
    @classmethod
    def _normalize_ids(cls, v: List[str]) -> List[str]:
        return _clean_ids(v)

    @model_validator(mode="after")
    def _validate_targets(self) -> "AudienceSpec":
        explicit = bool(self.teams or self.channels or self.users)
        if self.all_users and explicit:
            raise ValueError(
                "all_users cannot be combined with explicit teams, channels or users"
            )
        if not self.all_users and not explicit:
            raise ValueError(
                "Audience must target at least one team, channel, user or all users"
            )
        return self

    @property
    def kinds(self) -> List[AudienceKind]:
        kinds = []
        if self.all_users:
            kinds.append(AudienceKind.ALL_USERS)
        if self.teams:
            kinds.append(AudienceKind.TEAMS)
        if self.channels:
            kinds.append(AudienceKind.CHANNELS)
        if self.users:
            kinds.append(AudienceKind.USERS)
        return kinds


class RecipientDescriptor(BaseModel):
    """A single addressable recipient.

    ``conversation_ref`` is the platform address and the dedup key: two
    descriptors with the same ref are the same recipient.
    """

    model_config = ConfigDict(frozen=True)

    conversation_ref: str
    kind: RecipientKind
    display_name: Optional[str] = None
    team_id: Optional[str] = None
    tenant_id: Optional[str] = None


class WorkUnit(BaseModel):
    """A batch of recipients for one notification, processed by one worker.

    Work units travel through the queue as JSON and may be delivered more
    than once; processing is idempotent per recipient.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    notification_id: str
    sequence: int
    recipients: Tuple[RecipientDescriptor, ...]
    created_at: datetime = Field(default_factory=utcnow)

    def to_message(self) -> str:
        """Serialize for an external queue."""
        return self.model_dump_json()

    @classmethod
    def from_message(cls, message: Union[str, bytes]) -> "WorkUnit":
        """Rebuild a work unit from its queue message body."""
        return cls.model_validate_json(message)


class DeliveryResult(BaseModel):
    """Durable outcome of delivering one notification to one recipient.

    Keyed by (notification_id, recipient_id). Retries overwrite the same
    record; at most one terminal result exists per key. ``counted`` is set
    once the terminal result has been added to the notification counters.
    """

    notification_id: str
    recipient_id: str
    recipient_kind: RecipientKind
    outcome: DeliveryOutcome
    attempts: int = 1
    classification: ErrorClassification = ErrorClassification.NONE
    error_message: Optional[str] = None
    updated_at: datetime = Field(default_factory=utcnow)
    counted: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.outcome in TERMINAL_OUTCOMES

    @property
    def counter(self) -> Optional[str]:
        return counter_for(self.outcome, self.classification)


class DeliveryProgress(BaseModel):
    """Snapshot of a notification's delivery for the authoring surface."""

    notification_id: str
    state: NotificationState
    resolved: int
    sent: int
    failed: int
    throttled: int
    pending: int
    work_units: int
    cancelled: bool
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal


class Notification(BaseModel):
    """An authored broadcast and its delivery counters.

    Invariants:
        sent + failed + throttled <= resolved
        state only moves forward (see NotificationState)

    The body is an opaque payload handed to the platform messenger as-is.
    """

    id: str = Field(default_factory=new_id)
    title: str
    body: Any
    audience: AudienceSpec
    state: NotificationState = NotificationState.DRAFT
    author: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    resolved: int = 0
    sent: int = 0
    failed: int = 0
    throttled: int = 0
    cancelled: bool = False
    cancelled_at: Optional[datetime] = None
    work_units: int = 0

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Ensure title is not empty."""
        if not v or not v.strip():
            raise ValueError("Notification title cannot be empty")
        return v

    @property
    def accounted(self) -> int:
        return self.sent + self.failed + self.throttled

    @property
    def pending(self) -> int:
        return max(self.resolved - self.accounted, 0)

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def all_accounted(self) -> bool:
        """True once every resolved recipient has a terminal result."""
        return self.state.is_in_flight and self.accounted >= self.resolved

    def terminal_state(self) -> NotificationState:
        """State to finish in: completed only if nothing failed."""
        if self.failed == 0:
            return NotificationState.COMPLETED
        return NotificationState.FAILED

    def progress(self) -> DeliveryProgress:
        return DeliveryProgress(
            notification_id=self.id,
            state=self.state,
            resolved=self.resolved,
            sent=self.sent,
            failed=self.failed,
            throttled=self.throttled,
            pending=self.pending,
            work_units=self.work_units,
            cancelled=self.cancelled,
            created_at=self.created_at,
            started_at=self.started_at,
            completed_at=self.completed_at,
            cancelled_at=self.cancelled_at,
        )

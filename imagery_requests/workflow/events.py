"""Events emitted by the status workflow after a successful commit.

The workflow never talks to the notification gateway directly.  It
hands events to an ``EventPublisher``; in the Functions host the
publisher starts a Durable orchestration per event so that a slow or
failing mail API never shares a failure domain with the transition.
"""

from __future__ import annotations

import abc
import enum
import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger("imagery_requests.workflow.events")


class EventType(enum.Enum):
    """Kinds of lifecycle events."""

    SUBMITTED = "request_submitted"
    STATUS_CHANGED = "status_changed"


@dataclass(frozen=True, slots=True)
class StatusEvent:
    """A lifecycle event for one imagery request.

    Attributes:
        event_type: What happened.
        request_id: Identifier of the affected request.
        recipient_email: Requester contact address.
        recipient_name: Requester display name.
        old_status: Status before the change (``None`` on submission).
        new_status: Status after the change.
        actor: Admin id, or ``None`` for requester-initiated events.
        initiated_by_user: ``True`` for requester cancellations.
        notes: Notes recorded with the history entry.
        snapshot: Full admin-view record after the commit.
    """

    event_type: EventType
    request_id: str
    recipient_email: str
    recipient_name: str
    new_status: str
    old_status: str | None = None
    actor: str | None = None
    initiated_by_user: bool = False
    notes: str | None = None
    snapshot: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        """Serialise for Durable Functions orchestrator transport."""
        return {
            "event_type": self.event_type.value,
            "request_id": self.request_id,
            "recipient_email": self.recipient_email,
            "recipient_name": self.recipient_name,
            "old_status": self.old_status,
            "new_status": self.new_status,
            "actor": self.actor,
            "initiated_by_user": self.initiated_by_user,
            "notes": self.notes,
            "snapshot": dict(self.snapshot),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StatusEvent:
        """Deserialise from a Durable Functions dict payload.

        Raises:
            ValueError: If ``event_type`` is unknown.
            TypeError: If ``snapshot`` is not a dict.
        """
        snapshot = data.get("snapshot", {})
        if not isinstance(snapshot, dict):
            msg = f"snapshot must be a dict, got {type(snapshot).__name__}"
            raise TypeError(msg)
        return cls(
            event_type=EventType(str(data.get("event_type", ""))),
            request_id=str(data.get("request_id", "")),
            recipient_email=str(data.get("recipient_email", "")),
            recipient_name=str(data.get("recipient_name", "")),
            old_status=data.get("old_status"),
            new_status=str(data.get("new_status", "")),
            actor=data.get("actor"),
            initiated_by_user=bool(data.get("initiated_by_user", False)),
            notes=data.get("notes"),
            snapshot=snapshot,
        )


class EventPublisher(abc.ABC):
    """Sink for post-commit workflow events."""

    @abc.abstractmethod
    def publish(self, event: StatusEvent) -> None:
        """Hand *event* off for asynchronous processing.

        Implementations may raise; the workflow logs and swallows.
        """


class CollectingPublisher(EventPublisher):
    """Buffers events in memory.

    HTTP handlers use it to collect events during a synchronous call
    and forward them to the Durable client after the response data is
    committed.
    """

    def __init__(self) -> None:
        self.events: list[StatusEvent] = []

    def publish(self, event: StatusEvent) -> None:
        self.events.append(event)

    def drain(self) -> list[StatusEvent]:
        """Return and clear buffered events."""
        drained, self.events = self.events, []
        return drained


class NullPublisher(EventPublisher):
    """Drops events; used where notifications are disabled."""

    def publish(self, event: StatusEvent) -> None:
        logger.debug(
            "Event dropped | type=%s | request=%s", event.event_type.value, event.request_id
        )

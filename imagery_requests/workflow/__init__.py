"""Status state machine and the events it emits after each commit."""

from imagery_requests.workflow.events import (
    CollectingPublisher,
    EventPublisher,
    EventType,
    NullPublisher,
    StatusEvent,
)
from imagery_requests.workflow.status_workflow import (
    USER_CANCELLABLE_STATUSES,
    AdminUpdate,
    StatusWorkflow,
)

__all__ = [
    "USER_CANCELLABLE_STATUSES",
    "AdminUpdate",
    "CollectingPublisher",
    "EventPublisher",
    "EventType",
    "NullPublisher",
    "StatusEvent",
    "StatusWorkflow",
]

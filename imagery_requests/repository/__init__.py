"""Persistence boundary for imagery requests."""

from imagery_requests.repository.base import (
    UNSET,
    Actor,
    RecordPatch,
    RequestRepository,
)
from imagery_requests.repository.memory import InMemoryRequestRepository

__all__ = [
    "UNSET",
    "Actor",
    "InMemoryRequestRepository",
    "RecordPatch",
    "RequestRepository",
]

"""RequestRepository abstract base class.

Defines the persistence boundary the workflow and HTTP handlers talk
to.  Concrete stores (``InMemoryRequestRepository``,
``BlobRequestRepository``) only have to know how to load and save whole
documents; identity assignment, history seeding, patch application and
review stamping are shared here so every backend behaves identically.

Concurrency:
    ``update`` is a blind read-modify-write.  Two concurrent admin
    updates to the same record race with field-level last-write-wins;
    there is no version or ETag check.
"""

from __future__ import annotations

import abc
import dataclasses
import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from imagery_requests.core.exceptions import NotFound, ValidationError
from imagery_requests.models.request import (
    ImageryRequestRecord,
    RequestDraft,
    RequestStatus,
    StatusHistoryEntry,
)
from imagery_requests.query.listing import ListingScope
from imagery_requests.utils.helpers import new_request_id, utcnow, validate_request_id

if TYPE_CHECKING:
    from datetime import datetime

    from imagery_requests.query.listing import ListingQuery, Page

logger = logging.getLogger("imagery_requests.repository.base")


class _Unset(enum.Enum):
    TOKEN = "UNSET"

    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset.TOKEN
"""Marks a clearable patch field as "leave untouched" (``None`` clears it)."""


# ---------------------------------------------------------------------------
# Patch and actor
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Actor:
    """Who is performing a mutation."""

    id: str | None
    is_admin: bool = False

    @classmethod
    def admin(cls, admin_id: str) -> Actor:
        return cls(id=admin_id, is_admin=True)

    @classmethod
    def user(cls, user_id: str | None = None) -> Actor:
        return cls(id=user_id, is_admin=False)


@dataclass(frozen=True, slots=True)
class RecordPatch:
    """A partial update.

    ``status`` / ``quote_currency`` set to ``None`` mean unchanged.
    ``admin_notes`` / ``quote_amount`` use ``UNSET`` for unchanged so
    that an explicit ``None`` can clear them.

    Attributes:
        status: New status.
        admin_notes: New admin notes, ``None`` to clear.
        quote_amount: New quote, ``None`` to clear.
        quote_currency: New (already upper-cased) currency code.
        history_entry: Audit entry to append with this write.
    """

    status: RequestStatus | None = None
    admin_notes: str | None | _Unset = UNSET
    quote_amount: float | None | _Unset = UNSET
    quote_currency: str | None = None
    history_entry: StatusHistoryEntry | None = None


def build_record(draft: RequestDraft, *, now: datetime | None = None) -> ImageryRequestRecord:
    """Assign identity and timestamps to *draft* and seed the history.

    Raises:
        ValidationError: If a required field is missing or malformed.
    """
    if not isinstance(draft, RequestDraft):
        msg = f"Expected RequestDraft, got {type(draft).__name__}"
        raise ValidationError(msg, operation="create")
    draft.validate()

    stamp = now or utcnow()
    return ImageryRequestRecord(
        id=new_request_id(),
        requester=draft.requester,
        aoi=draft.aoi,
        date_range=draft.date_range,
        created_at=stamp,
        updated_at=stamp,
        urgency=draft.urgency,
        filters=draft.filters,
        additional_requirements=draft.additional_requirements,
        status=RequestStatus.PENDING,
        status_history=(StatusHistoryEntry(status=RequestStatus.PENDING, changed_at=stamp),),
    )


def apply_patch(
    record: ImageryRequestRecord,
    patch: RecordPatch,
    actor: Actor,
    *,
    now: datetime | None = None,
) -> ImageryRequestRecord:
    """Return *record* with *patch* applied and timestamps re-stamped."""
    stamp = now or utcnow()
    # updated_at never moves backwards, even with a skewed clock
    if stamp < record.updated_at:
        stamp = record.updated_at

    changes: dict[str, object] = {"updated_at": stamp}
    if patch.status is not None:
        changes["status"] = patch.status
    if patch.admin_notes is not UNSET:
        changes["admin_notes"] = patch.admin_notes
    if patch.quote_amount is not UNSET:
        changes["quote_amount"] = patch.quote_amount
    if patch.quote_currency is not None:
        changes["quote_currency"] = patch.quote_currency
    if patch.history_entry is not None:
        changes["status_history"] = (*record.status_history, patch.history_entry)
    if actor.is_admin:
        changes["reviewed_at"] = stamp
        changes["reviewed_by"] = actor.id

    return dataclasses.replace(record, **changes)


# ---------------------------------------------------------------------------
# Repository contract
# ---------------------------------------------------------------------------


class RequestRepository(abc.ABC):
    """Abstract persistence boundary for imagery requests.

    Subclasses implement the three storage primitives ``_load``,
    ``_save`` and ``_iter_records``; the public operations are shared.
    """

    # ------------------------------------------------------------------
    # Storage primitives
    # ------------------------------------------------------------------

    @abc.abstractmethod
    def _load(self, request_id: str) -> ImageryRequestRecord | None:
        """Return the stored record or ``None`` if absent."""

    @abc.abstractmethod
    def _save(self, record: ImageryRequestRecord) -> None:
        """Persist *record*, replacing any previous version."""

    @abc.abstractmethod
    def _iter_records(self) -> list[ImageryRequestRecord]:
        """Return every stored record (order unspecified)."""

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def create(self, draft: RequestDraft) -> ImageryRequestRecord:
        """Persist a new request in ``pending`` with a one-entry history.

        Raises:
            ValidationError: If the draft is incomplete.
        """
        record = build_record(draft)
        self._save(record)
        logger.info(
            "Request created | id=%s | guest=%s | urgency=%s",
            record.id,
            record.is_guest,
            record.urgency.value,
        )
        return record

    def find_by_id(self, request_id: str, scope: ListingScope) -> ImageryRequestRecord:
        """Fetch one record within *scope*.

        Raises:
            InvalidId: If *request_id* is malformed.
            NotFound: If the record is absent or not visible in *scope*.
        """
        normalised = validate_request_id(request_id)
        record = self._load(normalised)
        if record is None or not scope.permits(record):
            msg = "Imagery request not found"
            raise NotFound(msg, operation="lookup")
        return record

    def list_paged(self, query: ListingQuery) -> Page:
        """Return one page of records matching *query*."""
        return query.apply(self._iter_records())

    def update(self, request_id: str, patch: RecordPatch, actor: Actor) -> ImageryRequestRecord:
        """Apply *patch* to the stored record (last write wins).

        Raises:
            InvalidId: If *request_id* is malformed.
            NotFound: If the record is absent.
        """
        current = self.find_by_id(request_id, ListingScope.any())
        updated = apply_patch(current, patch, actor)
        self._save(updated)
        logger.debug(
            "Request updated | id=%s | actor=%s | admin=%s", updated.id, actor.id, actor.is_admin
        )
        return updated

"""Status state machine for imagery requests.

States::

    pending -> reviewing -> quoted -> approved -> completed
        \\          \\
         +----------+--> cancelled   (owning user, from pending/reviewing)

Admins may set any of the six statuses at any time; there is no
forward-only enforcement on the admin path.  The owning user may only
cancel, and only while the request is ``pending`` or ``reviewing``.

Every accepted status change appends exactly one history entry in the
same repository write as the status itself.  Notification is a
post-commit side effect: a ``StatusEvent`` is handed to the
``EventPublisher`` and any publisher failure is logged and swallowed,
so a persisted transition is final regardless of delivery.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from imagery_requests.core.exceptions import IllegalTransition, ValidationError
from imagery_requests.models.request import (
    ImageryRequestRecord,
    RecordView,
    RequestStatus,
    StatusHistoryEntry,
)
from imagery_requests.query.listing import ListingScope
from imagery_requests.repository.base import UNSET, Actor, RecordPatch
from imagery_requests.utils.helpers import utcnow
from imagery_requests.workflow.events import EventType, NullPublisher, StatusEvent

if TYPE_CHECKING:
    from imagery_requests.models.request import RequestDraft
    from imagery_requests.repository.base import RequestRepository
    from imagery_requests.workflow.events import EventPublisher

logger = logging.getLogger("imagery_requests.workflow.status_workflow")

USER_CANCELLABLE_STATUSES: tuple[RequestStatus, ...] = (
    RequestStatus.PENDING,
    RequestStatus.REVIEWING,
)
"""Statuses from which the owning user may cancel."""

USER_CANCEL_NOTE = "Cancelled by user"


@dataclass(frozen=True, slots=True)
class AdminUpdate:
    """Fields an admin may change in one update.

    ``set_admin_notes`` / ``set_quote_amount`` distinguish "omitted" from
    an explicit ``None`` (which clears the field).
    """

    status: str | None = None
    admin_notes: str | None = None
    set_admin_notes: bool = False
    quote_amount: float | None = None
    set_quote_amount: bool = False
    quote_currency: str | None = None


def user_cancel_note(reason: str | None) -> str:
    """Synthesise the note stored with a user cancellation."""
    reason = (reason or "").strip()
    return f"{USER_CANCEL_NOTE}: {reason}" if reason else USER_CANCEL_NOTE


class StatusWorkflow:
    """Applies submissions and transitions through a repository.

    Args:
        repository: Persistence boundary.
        publisher: Sink for post-commit events (defaults to dropping them).
    """

    def __init__(
        self,
        repository: RequestRepository,
        publisher: EventPublisher | None = None,
    ) -> None:
        self._repository = repository
        self._publisher = publisher or NullPublisher()

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(self, draft: RequestDraft) -> ImageryRequestRecord:
        """Persist a new request in ``pending`` and announce it.

        Raises:
            ValidationError: If the draft is incomplete.
        """
        record = self._repository.create(draft)
        self._publish(
            StatusEvent(
                event_type=EventType.SUBMITTED,
                request_id=record.id,
                recipient_email=record.contact.email,
                recipient_name=record.contact.full_name,
                new_status=record.status.value,
                snapshot=record.to_dict(RecordView.ADMIN),
            )
        )
        return record

    # ------------------------------------------------------------------
    # Admin path
    # ------------------------------------------------------------------

    def admin_update(
        self,
        request_id: str,
        actor: str,
        update: AdminUpdate,
    ) -> ImageryRequestRecord:
        """Apply an admin update of status, notes and/or quote.

        A status equal to the current one is not a transition: no
        history entry is written and no event is published, although
        the other fields and the review stamp are still applied.

        Raises:
            InvalidStatus: If ``update.status`` is not an enumerated value.
            ValidationError: If the quote amount is negative or the
                actor is missing.
            InvalidId: If *request_id* is malformed.
            NotFound: If the request does not exist.
        """
        if not actor:
            msg = "Admin updates require an actor id"
            raise ValidationError(msg, operation="admin_update")

        target = RequestStatus.parse(update.status) if update.status is not None else None

        if update.set_quote_amount and update.quote_amount is not None:
            if (
                isinstance(update.quote_amount, bool)
                or not isinstance(update.quote_amount, (int, float))
                or not math.isfinite(update.quote_amount)
            ):
                msg = "Quote amount must be a finite number"
                raise ValidationError(
                    msg, fields={"quote_amount": msg}, operation="admin_update"
                )
            if update.quote_amount < 0:
                msg = "Quote amount must be a positive number"
                raise ValidationError(
                    msg, fields={"quote_amount": msg}, operation="admin_update"
                )

        current = self._repository.find_by_id(request_id, ListingScope.any())
        transition = target is not None and target is not current.status

        admin_notes = update.admin_notes if update.set_admin_notes else UNSET
        quote_amount = UNSET
        if update.set_quote_amount:
            quote_amount = float(update.quote_amount) if update.quote_amount is not None else None
        currency = (update.quote_currency or "").strip().upper() or None

        history_entry = None
        if transition:
            history_entry = StatusHistoryEntry(
                status=target,
                changed_at=utcnow(),
                changed_by=actor,
                notes=update.admin_notes if update.set_admin_notes else current.admin_notes,
            )

        patch = RecordPatch(
            status=target if transition else None,
            admin_notes=admin_notes,
            quote_amount=quote_amount,
            quote_currency=currency,
            history_entry=history_entry,
        )
        updated = self._repository.update(current.id, patch, Actor.admin(actor))

        if transition:
            logger.info(
                "Status changed | request=%s | old=%s | new=%s | actor=%s",
                updated.id,
                current.status.value,
                updated.status.value,
                actor,
            )
            self._publish(
                StatusEvent(
                    event_type=EventType.STATUS_CHANGED,
                    request_id=updated.id,
                    recipient_email=updated.contact.email,
                    recipient_name=updated.contact.full_name,
                    old_status=current.status.value,
                    new_status=updated.status.value,
                    actor=actor,
                    notes=history_entry.notes if history_entry else None,
                    snapshot=updated.to_dict(RecordView.ADMIN),
                )
            )
        else:
            logger.info(
                "Request updated without transition | request=%s | actor=%s", updated.id, actor
            )
        return updated

    # ------------------------------------------------------------------
    # User path
    # ------------------------------------------------------------------

    def cancel_by_user(
        self,
        request_id: str,
        user_id: str,
        reason: str | None = None,
    ) -> ImageryRequestRecord:
        """Cancel a request on behalf of its owner.

        Raises:
            InvalidId: If *request_id* is malformed.
            NotFound: If the request is absent or not owned by *user_id*.
            IllegalTransition: If the request is past ``reviewing``.
        """
        current = self._repository.find_by_id(request_id, ListingScope.owned_by(user_id))
        if current.status not in USER_CANCELLABLE_STATUSES:
            raise IllegalTransition(
                current.status.value,
                RequestStatus.CANCELLED.value,
                [s.value for s in USER_CANCELLABLE_STATUSES],
                operation="cancel",
            )

        note = user_cancel_note(reason)
        patch = RecordPatch(
            status=RequestStatus.CANCELLED,
            admin_notes=note,
            history_entry=StatusHistoryEntry(
                status=RequestStatus.CANCELLED,
                changed_at=utcnow(),
                changed_by=None,
                notes=note,
            ),
        )
        updated = self._repository.update(current.id, patch, Actor.user(user_id))
        logger.info(
            "Request cancelled by user | request=%s | old=%s | user=%s",
            updated.id,
            current.status.value,
            user_id,
        )
        self._publish(
            StatusEvent(
                event_type=EventType.STATUS_CHANGED,
                request_id=updated.id,
                recipient_email=updated.contact.email,
                recipient_name=updated.contact.full_name,
                old_status=current.status.value,
                new_status=updated.status.value,
                initiated_by_user=True,
                notes=note,
                snapshot=updated.to_dict(RecordView.ADMIN),
            )
        )
        return updated

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _publish(self, event: StatusEvent) -> None:
        try:
            self._publisher.publish(event)
        except Exception:
            logger.exception(
                "Event publish failed | type=%s | request=%s",
                event.event_type.value,
                event.request_id,
            )

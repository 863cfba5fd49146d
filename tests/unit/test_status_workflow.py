"""Tests for the imagery request status workflow.

Covers:
- Submission seeds ``pending`` with a one-entry history and announces it
- Admin updates: any status reachable, history append, review stamp,
  quote normalisation, same-status no-op
- User cancellation guard (pending/reviewing only) and ownership
- Post-commit publishing; publisher failures never roll back
"""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest

from imagery_requests.core.exceptions import (
    IllegalTransition,
    InvalidId,
    InvalidStatus,
    NotFound,
    ValidationError,
)
from imagery_requests.models.request import RequestDraft, RequestStatus
from imagery_requests.query.listing import ListingScope
from imagery_requests.repository.memory import InMemoryRequestRepository
from imagery_requests.workflow.events import CollectingPublisher, EventType
from imagery_requests.workflow.status_workflow import (
    AdminUpdate,
    StatusWorkflow,
    user_cancel_note,
)

ADMIN = "admin-1"
OWNER = "user-123"


def _move(workflow: StatusWorkflow, request_id: str, status: str, **fields: object) -> None:
    workflow.admin_update(request_id, ADMIN, AdminUpdate(status=status, **fields))  # type: ignore[arg-type]


class TestSubmit:
    """New requests start in pending."""

    def test_create_pending_with_one_history_entry(
        self,
        workflow: StatusWorkflow,
        registered_draft: RequestDraft,
        repository: InMemoryRequestRepository,
    ) -> None:
        record = workflow.submit(registered_draft)
        assert record.status is RequestStatus.PENDING
        assert len(record.status_history) == 1
        assert record.status_history[0].status is RequestStatus.PENDING
        assert record.created_at == record.updated_at
        assert len(repository) == 1

    def test_identifier_is_32_hex(
        self, workflow: StatusWorkflow, registered_draft: RequestDraft
    ) -> None:
        record = workflow.submit(registered_draft)
        assert len(record.id) == 32
        int(record.id, 16)

    def test_submission_event(
        self,
        workflow: StatusWorkflow,
        publisher: CollectingPublisher,
        guest_draft: RequestDraft,
    ) -> None:
        record = workflow.submit(guest_draft)
        [event] = publisher.events
        assert event.event_type is EventType.SUBMITTED
        assert event.request_id == record.id
        assert event.recipient_email == "guest@example.org"
        assert event.old_status is None
        assert event.snapshot["status"] == "pending"

    def test_guest_has_no_owner(self, workflow: StatusWorkflow, guest_draft: RequestDraft) -> None:
        record = workflow.submit(guest_draft)
        assert record.is_guest
        assert record.user_id is None


class TestAdminUpdate:
    """Admins may set any status and edit notes and quotes."""

    def test_pending_to_reviewing(
        self,
        workflow: StatusWorkflow,
        publisher: CollectingPublisher,
        registered_draft: RequestDraft,
    ) -> None:
        record = workflow.submit(registered_draft)
        publisher.drain()

        updated = workflow.admin_update(
            record.id,
            ADMIN,
            AdminUpdate(status="reviewing", admin_notes="looking into it", set_admin_notes=True),
        )

        assert updated.status is RequestStatus.REVIEWING
        assert len(updated.status_history) == 2
        entry = updated.status_history[1]
        assert entry.status is RequestStatus.REVIEWING
        assert entry.changed_by == ADMIN
        assert entry.notes == "looking into it"
        assert updated.reviewed_at is not None
        assert updated.reviewed_by == ADMIN
        assert updated.admin_notes == "looking into it"

        [event] = publisher.events
        assert event.event_type is EventType.STATUS_CHANGED
        assert event.old_status == "pending"
        assert event.new_status == "reviewing"
        assert event.actor == ADMIN
        assert not event.initiated_by_user

    @pytest.mark.parametrize("status", RequestStatus.values())
    def test_any_status_reachable_from_completed(
        self, status: str, workflow: StatusWorkflow, registered_draft: RequestDraft
    ) -> None:
        record = workflow.submit(registered_draft)
        _move(workflow, record.id, "completed")
        updated = workflow.admin_update(record.id, ADMIN, AdminUpdate(status=status))
        assert updated.status.value == status

    def test_quote_currency_uppercased_status_unchanged(
        self, workflow: StatusWorkflow, registered_draft: RequestDraft
    ) -> None:
        record = workflow.submit(registered_draft)
        updated = workflow.admin_update(
            record.id,
            ADMIN,
            AdminUpdate(quote_amount=5000, set_quote_amount=True, quote_currency="usd"),
        )
        assert updated.quote_amount == 5000.0
        assert updated.quote_currency == "USD"
        assert updated.status is RequestStatus.PENDING
        assert len(updated.status_history) == 1

    def test_same_status_is_not_a_transition(
        self,
        workflow: StatusWorkflow,
        publisher: CollectingPublisher,
        registered_draft: RequestDraft,
    ) -> None:
        record = workflow.submit(registered_draft)
        publisher.drain()
        updated = workflow.admin_update(
            record.id,
            ADMIN,
            AdminUpdate(status="pending", admin_notes="noted", set_admin_notes=True),
        )
        assert len(updated.status_history) == 1
        assert updated.admin_notes == "noted"
        assert updated.reviewed_by == ADMIN
        assert publisher.events == []

    def test_history_notes_fall_back_to_existing_notes(
        self, workflow: StatusWorkflow, registered_draft: RequestDraft
    ) -> None:
        record = workflow.submit(registered_draft)
        workflow.admin_update(
            record.id, ADMIN, AdminUpdate(admin_notes="first pass", set_admin_notes=True)
        )
        updated = workflow.admin_update(record.id, ADMIN, AdminUpdate(status="reviewing"))
        assert updated.status_history[-1].notes == "first pass"

    def test_explicit_null_clears_fields(
        self, workflow: StatusWorkflow, registered_draft: RequestDraft
    ) -> None:
        record = workflow.submit(registered_draft)
        workflow.admin_update(
            record.id,
            ADMIN,
            AdminUpdate(
                admin_notes="x", set_admin_notes=True, quote_amount=10, set_quote_amount=True
            ),
        )
        updated = workflow.admin_update(
            record.id,
            ADMIN,
            AdminUpdate(admin_notes=None, set_admin_notes=True, set_quote_amount=True),
        )
        assert updated.admin_notes is None
        assert updated.quote_amount is None

    def test_omitted_fields_untouched(
        self, workflow: StatusWorkflow, registered_draft: RequestDraft
    ) -> None:
        record = workflow.submit(registered_draft)
        workflow.admin_update(
            record.id, ADMIN, AdminUpdate(admin_notes="keep", set_admin_notes=True)
        )
        updated = workflow.admin_update(record.id, ADMIN, AdminUpdate(status="reviewing"))
        assert updated.admin_notes == "keep"

    def test_invalid_status_rejected_before_lookup(
        self, workflow: StatusWorkflow, registered_draft: RequestDraft
    ) -> None:
        record = workflow.submit(registered_draft)
        with pytest.raises(InvalidStatus):
            workflow.admin_update(record.id, ADMIN, AdminUpdate(status="shipped"))
        with pytest.raises(InvalidStatus):
            workflow.admin_update("f" * 32, ADMIN, AdminUpdate(status="shipped"))

    def test_negative_quote_rejected(
        self, workflow: StatusWorkflow, registered_draft: RequestDraft
    ) -> None:
        record = workflow.submit(registered_draft)
        with pytest.raises(ValidationError) as exc:
            workflow.admin_update(
                record.id, ADMIN, AdminUpdate(quote_amount=-1, set_quote_amount=True)
            )
        assert "quote_amount" in exc.value.fields

    @pytest.mark.parametrize("amount", [float("inf"), True, "5000"])
    def test_non_finite_or_non_numeric_quote_rejected(
        self, amount: object, workflow: StatusWorkflow, registered_draft: RequestDraft
    ) -> None:
        record = workflow.submit(registered_draft)
        with pytest.raises(ValidationError) as exc:
            workflow.admin_update(
                record.id,
                ADMIN,
                AdminUpdate(quote_amount=amount, set_quote_amount=True),  # type: ignore[arg-type]
            )
        assert "quote_amount" in exc.value.fields

    def test_missing_actor(self, workflow: StatusWorkflow, registered_draft: RequestDraft) -> None:
        record = workflow.submit(registered_draft)
        with pytest.raises(ValidationError):
            workflow.admin_update(record.id, "", AdminUpdate(status="reviewing"))

    def test_unknown_id(self, workflow: StatusWorkflow) -> None:
        with pytest.raises(NotFound):
            workflow.admin_update("0" * 32, ADMIN, AdminUpdate(status="reviewing"))

    def test_malformed_id(self, workflow: StatusWorkflow) -> None:
        with pytest.raises(InvalidId):
            workflow.admin_update("not-an-id", ADMIN, AdminUpdate(status="reviewing"))

    def test_updated_at_monotonic(
        self, workflow: StatusWorkflow, registered_draft: RequestDraft
    ) -> None:
        record = workflow.submit(registered_draft)
        updated = workflow.admin_update(record.id, ADMIN, AdminUpdate(status="reviewing"))
        assert updated.updated_at >= record.updated_at
        assert updated.created_at == record.created_at


class TestCancelByUser:
    """Owners may cancel only while pending or reviewing."""

    @pytest.mark.parametrize("status", ["pending", "reviewing"])
    def test_cancel_allowed(
        self,
        status: str,
        workflow: StatusWorkflow,
        publisher: CollectingPublisher,
        registered_draft: RequestDraft,
    ) -> None:
        record = workflow.submit(registered_draft)
        if status != "pending":
            _move(workflow, record.id, status)
        publisher.drain()

        updated = workflow.cancel_by_user(record.id, OWNER, "found another supplier")

        assert updated.status is RequestStatus.CANCELLED
        entry = updated.status_history[-1]
        assert entry.status is RequestStatus.CANCELLED
        assert entry.changed_by is None
        assert entry.notes == "Cancelled by user: found another supplier"
        assert updated.admin_notes == "Cancelled by user: found another supplier"

        [event] = publisher.events
        assert event.initiated_by_user
        assert event.old_status == status
        assert event.new_status == "cancelled"

    @pytest.mark.parametrize("status", ["quoted", "approved", "completed", "cancelled"])
    def test_cancel_rejected(
        self,
        status: str,
        workflow: StatusWorkflow,
        publisher: CollectingPublisher,
        registered_draft: RequestDraft,
        repository: InMemoryRequestRepository,
    ) -> None:
        record = workflow.submit(registered_draft)
        _move(workflow, record.id, status)
        publisher.drain()

        with pytest.raises(IllegalTransition) as exc:
            workflow.cancel_by_user(record.id, OWNER)

        assert exc.value.current_status == status
        assert exc.value.allowed == ("pending", "reviewing")
        stored = repository.find_by_id(record.id, ListingScope.any())
        assert stored.status.value == status
        assert publisher.events == []

    def test_cancel_by_non_owner_is_not_found(
        self, workflow: StatusWorkflow, registered_draft: RequestDraft
    ) -> None:
        record = workflow.submit(registered_draft)
        with pytest.raises(NotFound):
            workflow.cancel_by_user(record.id, "user-999")

    def test_guest_request_cannot_be_cancelled_by_user(
        self, workflow: StatusWorkflow, guest_draft: RequestDraft
    ) -> None:
        record = workflow.submit(guest_draft)
        with pytest.raises(NotFound):
            workflow.cancel_by_user(record.id, OWNER)

    def test_no_reason_note(self, workflow: StatusWorkflow, registered_draft: RequestDraft) -> None:
        record = workflow.submit(registered_draft)
        updated = workflow.cancel_by_user(record.id, OWNER)
        assert updated.status_history[-1].notes == "Cancelled by user"

    def test_does_not_stamp_review(
        self, workflow: StatusWorkflow, registered_draft: RequestDraft
    ) -> None:
        record = workflow.submit(registered_draft)
        updated = workflow.cancel_by_user(record.id, OWNER)
        assert updated.reviewed_at is None
        assert updated.reviewed_by is None


class TestUserCancelNote:
    """Note synthesis."""

    @pytest.mark.parametrize(
        ("reason", "expected"),
        [
            (None, "Cancelled by user"),
            ("   ", "Cancelled by user"),
            (" too slow ", "Cancelled by user: too slow"),
        ],
    )
    def test_note(self, reason: str | None, expected: str) -> None:
        assert user_cancel_note(reason) == expected


class TestPublisherFailure:
    """A failing publisher never rolls back a committed transition."""

    def test_failure_logged_and_swallowed(
        self,
        repository: InMemoryRequestRepository,
        registered_draft: RequestDraft,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        publisher = MagicMock()
        publisher.publish.side_effect = RuntimeError("queue down")
        workflow = StatusWorkflow(repository, publisher)

        record = workflow.submit(registered_draft)
        with caplog.at_level(logging.ERROR, logger="imagery_requests.workflow.status_workflow"):
            updated = workflow.admin_update(record.id, ADMIN, AdminUpdate(status="reviewing"))

        assert updated.status is RequestStatus.REVIEWING
        stored = repository.find_by_id(record.id, ListingScope.any())
        assert stored.status is RequestStatus.REVIEWING
        assert "Event publish failed" in caplog.text

    def test_default_publisher_drops_events(
        self, repository: InMemoryRequestRepository, registered_draft: RequestDraft
    ) -> None:
        workflow = StatusWorkflow(repository)
        record = workflow.submit(registered_draft)
        assert record.status is RequestStatus.PENDING

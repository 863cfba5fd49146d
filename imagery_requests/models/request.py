"""The imagery request aggregate and its value types.

``RequestStatus`` is the one status enum shared by the ingress layer,
the workflow, the listing query and the repositories; no other module
compares raw status strings.

The requester is a tagged union: a ``RegisteredRequester`` carries the
owning ``user_id``; a ``GuestRequester`` does not.  Both carry the
``ContactDetails`` used for notifications, so "exactly one identity
path" is enforced by the type rather than by nullable parallel fields.

Records are frozen.  Every mutation produces a new record through
``dataclasses.replace``; the repository stores the latest version.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from imagery_requests.core.constants import (
    DEFAULT_QUOTE_CURRENCY,
    MAX_ADDITIONAL_REQUIREMENTS_LENGTH,
    MAX_COMPANY_LENGTH,
    MAX_FULL_NAME_LENGTH,
)
from imagery_requests.core.exceptions import InvalidStatus, ValidationError
from imagery_requests.models.aoi import GeoAOI
from imagery_requests.models.filters import RequestFilterSpec
from imagery_requests.utils.helpers import isoformat, parse_date, parse_timestamp

_EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")
_PHONE_PATTERN = re.compile(r"^[\d\s\-+()]+$")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RequestStatus(enum.Enum):
    """Lifecycle state of an imagery request.

    Values:
        PENDING:   Submitted, not yet looked at.
        REVIEWING: An admin is assessing feasibility.
        QUOTED:    A price has been sent to the requester.
        APPROVED:  The requester accepted the quote.
        COMPLETED: Imagery delivered (terminal).
        CANCELLED: Withdrawn by the requester or an admin (terminal).
    """

    PENDING = "pending"
    REVIEWING = "reviewing"
    QUOTED = "quoted"
    APPROVED = "approved"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def values(cls) -> tuple[str, ...]:
        return tuple(s.value for s in cls)

    @classmethod
    def parse(cls, value: object) -> RequestStatus:
        """Parse a wire value.

        Raises:
            InvalidStatus: If *value* is not one of the six statuses.
        """
        if isinstance(value, RequestStatus):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidStatus(value, cls.values()) from None

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({RequestStatus.COMPLETED, RequestStatus.CANCELLED})


class Urgency(enum.Enum):
    """Requester-declared priority tier. Informational only."""

    STANDARD = "standard"
    URGENT = "urgent"
    EMERGENCY = "emergency"

    @classmethod
    def parse(cls, value: object) -> Urgency:
        """Parse a wire value, defaulting ``None``/empty to ``STANDARD``.

        Raises:
            ValidationError: If *value* is not a known urgency.
        """
        if value is None or value == "":
            return cls.STANDARD
        if isinstance(value, Urgency):
            return value
        try:
            return cls(str(value).strip())
        except ValueError:
            msg = "Urgency must be one of: standard, urgent, emergency"
            raise ValidationError(msg, fields={"urgency": msg}) from None


class RecordView(enum.Enum):
    """Which audience a serialised record is rendered for."""

    ADMIN = "admin"
    OWNER = "owner"


# ---------------------------------------------------------------------------
# Requester (tagged union)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ContactDetails:
    """Contact fields captured with every submission."""

    full_name: str
    email: str
    company: str | None = None
    phone: str | None = None

    def __post_init__(self) -> None:
        errors: dict[str, str] = {}
        if not self.full_name or not self.full_name.strip():
            errors["full_name"] = "Full name is required"
        elif len(self.full_name) > MAX_FULL_NAME_LENGTH:
            errors["full_name"] = (
                f"Full name must be between 1 and {MAX_FULL_NAME_LENGTH} characters"
            )
        if not self.email or not _EMAIL_PATTERN.match(self.email):
            errors["email"] = "Please provide a valid email address"
        if self.company is not None and len(self.company) > MAX_COMPANY_LENGTH:
            errors["company"] = f"Company name must not exceed {MAX_COMPANY_LENGTH} characters"
        if self.phone is not None and not _PHONE_PATTERN.match(self.phone):
            errors["phone"] = "Please provide a valid phone number"
        if errors:
            raise ValidationError("Invalid requester contact details", fields=errors)

    @classmethod
    def create(
        cls,
        full_name: str,
        email: str,
        company: str | None = None,
        phone: str | None = None,
    ) -> ContactDetails:
        """Trim and normalise raw values (email is lower-cased)."""
        return cls(
            full_name=(full_name or "").strip(),
            email=(email or "").strip().lower(),
            company=(company or "").strip() or None,
            phone=(phone or "").strip() or None,
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "full_name": self.full_name,
            "email": self.email,
            "company": self.company,
            "phone": self.phone,
        }


@dataclass(frozen=True, slots=True)
class RegisteredRequester:
    """A signed-in user who owns the request."""

    user_id: str
    contact: ContactDetails

    def __post_init__(self) -> None:
        if not self.user_id or not str(self.user_id).strip():
            msg = "Registered requester must have a user_id"
            raise ValidationError(msg, fields={"user_id": msg})


@dataclass(frozen=True, slots=True)
class GuestRequester:
    """An anonymous submitter identified only by contact details."""

    contact: ContactDetails


Requester = RegisteredRequester | GuestRequester


def requester_from_fields(user_id: str | None, contact: ContactDetails) -> Requester:
    """Pick the requester variant from an optional authenticated user id."""
    if user_id:
        return RegisteredRequester(user_id=str(user_id), contact=contact)
    return GuestRequester(contact=contact)


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DateRange:
    """Requested acquisition window, inclusive on both ends."""

    start_date: date
    end_date: date

    def __post_init__(self) -> None:
        if self.end_date < self.start_date:
            msg = "End date must be after or equal to start date"
            raise ValidationError(msg, fields={"date_range": msg})

    @classmethod
    def from_dict(cls, data: Any) -> DateRange:
        """Parse ``{"start_date", "end_date"}``.

        Raises:
            ValidationError: If the object or either date is missing or malformed.
        """
        if not isinstance(data, dict):
            msg = "Date range must be an object"
            raise ValidationError(msg, fields={"date_range": msg})
        if not data.get("start_date") or not data.get("end_date"):
            msg = "Date range must have start_date and end_date"
            raise ValidationError(msg, fields={"date_range": msg})
        try:
            start = parse_date(data["start_date"])
            end = parse_date(data["end_date"])
        except (TypeError, ValueError):
            msg = "Invalid date format"
            raise ValidationError(msg, fields={"date_range": msg}) from None
        return cls(start_date=start, end_date=end)

    def to_dict(self) -> dict[str, str]:
        return {"start_date": self.start_date.isoformat(), "end_date": self.end_date.isoformat()}


@dataclass(frozen=True, slots=True)
class StatusHistoryEntry:
    """One immutable audit-trail entry."""

    status: RequestStatus
    changed_at: datetime
    changed_by: str | None = None
    notes: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "status": self.status.value,
            "changed_at": self.changed_at.isoformat(),
            "changed_by": self.changed_by,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StatusHistoryEntry:
        return cls(
            status=RequestStatus.parse(data.get("status")),
            changed_at=parse_timestamp(str(data.get("changed_at", ""))),
            changed_by=data.get("changed_by") or None,
            notes=data.get("notes") or None,
        )


# ---------------------------------------------------------------------------
# Draft (pre-persistence submission)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RequestDraft:
    """A validated submission that has not been assigned an identity yet."""

    requester: Requester
    aoi: GeoAOI
    date_range: DateRange
    urgency: Urgency = Urgency.STANDARD
    filters: RequestFilterSpec | None = None
    additional_requirements: str | None = None

    def validate(self) -> None:
        """Re-check required fields (drafts may be built without ``create``).

        Raises:
            ValidationError: If a required field is missing or the wrong type.
        """
        errors: dict[str, str] = {}
        if not isinstance(self.requester, (RegisteredRequester, GuestRequester)):
            errors["requester"] = "Requester identity is required"
        if not isinstance(self.aoi, GeoAOI):
            errors["aoi"] = "AOI is required"
        if not isinstance(self.date_range, DateRange):
            errors["date_range"] = "Date range is required"
        if not isinstance(self.urgency, Urgency):
            errors["urgency"] = "Urgency level is required"
        if self.filters is not None and not isinstance(self.filters, RequestFilterSpec):
            errors["filters"] = "Filters must be a RequestFilterSpec"
        if (
            self.additional_requirements is not None
            and len(self.additional_requirements) > MAX_ADDITIONAL_REQUIREMENTS_LENGTH
        ):
            errors["additional_requirements"] = (
                "Additional requirements must not exceed "
                f"{MAX_ADDITIONAL_REQUIREMENTS_LENGTH} characters"
            )
        if errors:
            raise ValidationError("Imagery request is incomplete", fields=errors)


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ImageryRequestRecord:
    """A persisted imagery request.

    Attributes:
        id: Opaque 32-hex identifier.
        requester: Registered or guest requester.
        aoi: Requested footprint (immutable once attached).
        date_range: Requested acquisition window.
        urgency: Declared priority tier.
        filters: Optional filter spec.
        additional_requirements: Free-text notes from the requester.
        status: Current lifecycle status.
        status_history: Append-only audit trail; entry 0 is ``pending``.
        admin_notes: Admin-writable notes.
        quote_amount: Quoted price (>= 0) if any.
        quote_currency: ISO currency code, upper-cased.
        reviewed_at: Time of the last admin update.
        reviewed_by: Admin id of the last admin update.
        created_at: Creation time.
        updated_at: Time of the last mutation.
    """

    id: str
    requester: Requester
    aoi: GeoAOI
    date_range: DateRange
    created_at: datetime
    updated_at: datetime
    urgency: Urgency = Urgency.STANDARD
    filters: RequestFilterSpec | None = None
    additional_requirements: str | None = None
    status: RequestStatus = RequestStatus.PENDING
    status_history: tuple[StatusHistoryEntry, ...] = field(default_factory=tuple)
    admin_notes: str | None = None
    quote_amount: float | None = None
    quote_currency: str = DEFAULT_QUOTE_CURRENCY
    reviewed_at: datetime | None = None
    reviewed_by: str | None = None

    # ------------------------------------------------------------------
    # Requester shortcuts
    # ------------------------------------------------------------------

    @property
    def user_id(self) -> str | None:
        """Owning user id, ``None`` for guest requests."""
        if isinstance(self.requester, RegisteredRequester):
            return self.requester.user_id
        return None

    @property
    def is_guest(self) -> bool:
        return isinstance(self.requester, GuestRequester)

    @property
    def contact(self) -> ContactDetails:
        return self.requester.contact

    def is_owned_by(self, user_id: str) -> bool:
        return self.user_id is not None and self.user_id == user_id

    def sort_value(self, field_name: str) -> Any:
        """Value used by the listing query for a whitelisted sort field."""
        if field_name == "created_at":
            return self.created_at
        if field_name == "updated_at":
            return self.updated_at
        if field_name == "status":
            return self.status.value
        if field_name == "urgency":
            return self.urgency.value
        if field_name == "aoi_area_km2":
            return self.aoi.area_km2
        if field_name == "full_name":
            return self.contact.full_name.lower()
        if field_name == "email":
            return self.contact.email
        msg = f"Unsupported sort field: {field_name}"
        raise KeyError(msg)

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self, view: RecordView = RecordView.ADMIN) -> dict[str, object]:
        """Serialise for the given audience.

        The owner view omits ``admin_notes`` and ``reviewed_by``.
        """
        payload: dict[str, object] = {
            "id": self.id,
            "user_id": self.user_id,
            **self.contact.to_dict(),
            **self.aoi.to_dict(),
            "date_range": self.date_range.to_dict(),
            "filters": self.filters.to_dict() if self.filters else {},
            "urgency": self.urgency.value,
            "additional_requirements": self.additional_requirements,
            "status": self.status.value,
            "status_history": [entry.to_dict() for entry in self.status_history],
            "admin_notes": self.admin_notes,
            "quote_amount": self.quote_amount,
            "quote_currency": self.quote_currency,
            "reviewed_at": isoformat(self.reviewed_at),
            "reviewed_by": self.reviewed_by,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if view is RecordView.OWNER:
            payload.pop("admin_notes")
            payload.pop("reviewed_by")
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ImageryRequestRecord:
        """Deserialise a stored admin-view document.

        Raises:
            ValidationError: If the stored document is malformed.
        """
        contact = ContactDetails.create(
            full_name=str(data.get("full_name", "")),
            email=str(data.get("email", "")),
            company=data.get("company"),
            phone=data.get("phone"),
        )
        reviewed_at = data.get("reviewed_at")
        quote_amount = data.get("quote_amount")
        return cls(
            id=str(data["id"]),
            requester=requester_from_fields(data.get("user_id"), contact),
            aoi=GeoAOI.from_dict(data),
            date_range=DateRange.from_dict(data.get("date_range")),
            created_at=parse_timestamp(str(data.get("created_at", ""))),
            updated_at=parse_timestamp(str(data.get("updated_at", ""))),
            urgency=Urgency.parse(data.get("urgency")),
            filters=RequestFilterSpec.from_dict(data.get("filters") or None),
            additional_requirements=data.get("additional_requirements"),
            status=RequestStatus.parse(data.get("status")),
            status_history=tuple(
                StatusHistoryEntry.from_dict(e) for e in data.get("status_history", [])
            ),
            admin_notes=data.get("admin_notes"),
            quote_amount=float(quote_amount) if quote_amount is not None else None,
            quote_currency=str(data.get("quote_currency") or DEFAULT_QUOTE_CURRENCY),
            reviewed_at=parse_timestamp(str(reviewed_at)) if reviewed_at else None,
            reviewed_by=data.get("reviewed_by"),
        )

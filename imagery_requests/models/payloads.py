"""Typed request-body schemas for the HTTP surface.

Every mutating endpoint receives a JSON body.  These pydantic models
make the contracts explicit; ``parse_body`` maps pydantic failures onto
the service's ``ValidationError`` so callers only ever see the domain
taxonomy.  Field names are snake_case on the wire; camelCase aliases
(``fullName``, ``aoiType``...) are accepted as well.

Usage::

    body = parse_body(raw, CreateImageryRequestBody)
    draft = body.to_draft(user_id=caller_id)
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from imagery_requests.core.constants import (
    MAX_ADDITIONAL_REQUIREMENTS_LENGTH,
)
from imagery_requests.core.exceptions import ContractError, ValidationError
from imagery_requests.models.aoi import GeoAOI
from imagery_requests.models.filters import RequestFilterSpec
from imagery_requests.models.request import (
    ContactDetails,
    DateRange,
    RequestDraft,
    Urgency,
    requester_from_fields,
)
from imagery_requests.workflow.status_workflow import AdminUpdate

BodyT = TypeVar("BodyT", bound=BaseModel)

MAX_CANCELLATION_REASON_LENGTH = 1000


class _Body(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
    )


# ---------------------------------------------------------------------------
# POST /imagery-requests
# ---------------------------------------------------------------------------


class CreateImageryRequestBody(_Body):
    """Body of a new imagery request (guest or registered)."""

    full_name: str
    email: str
    company: str | None = None
    phone: str | None = None
    aoi_type: str
    aoi_coordinates: dict[str, Any]
    aoi_area_km2: float
    aoi_center: dict[str, Any]
    date_range: dict[str, Any]
    filters: dict[str, Any] | None = None
    urgency: str | None = None
    additional_requirements: str | None = Field(
        default=None, max_length=MAX_ADDITIONAL_REQUIREMENTS_LENGTH
    )

    def to_draft(self, *, user_id: str | None = None) -> RequestDraft:
        """Build a validated ``RequestDraft``.

        Raises:
            ValidationError: If any domain invariant is violated.
        """
        contact = ContactDetails.create(
            full_name=self.full_name,
            email=self.email,
            company=self.company,
            phone=self.phone,
        )
        draft = RequestDraft(
            requester=requester_from_fields(user_id, contact),
            aoi=GeoAOI.from_geojson(
                self.aoi_type,
                self.aoi_coordinates,
                self.aoi_area_km2,
                self.aoi_center,
            ),
            date_range=DateRange.from_dict(self.date_range),
            urgency=Urgency.parse(self.urgency),
            filters=RequestFilterSpec.from_dict(self.filters),
            additional_requirements=self.additional_requirements or None,
        )
        draft.validate()
        return draft


# ---------------------------------------------------------------------------
# PUT /admin/imagery-requests/{id}
# ---------------------------------------------------------------------------


class AdminUpdateBody(_Body):
    """Admin-only update of status, notes and quote."""

    status: str | None = None
    admin_notes: str | None = None
    # strict: booleans and numeric strings are rejected, not coerced
    quote_amount: float | None = Field(default=None, ge=0, strict=True, allow_inf_nan=False)
    quote_currency: str | None = None

    def to_update(self) -> AdminUpdate:
        """Translate to an ``AdminUpdate``, keeping explicit nulls.

        ``admin_notes`` and ``quote_amount`` sent as ``null`` clear the
        field; omitted keys leave it untouched.
        """
        sent = self.model_fields_set
        return AdminUpdate(
            status=self.status or None,
            admin_notes=self.admin_notes,
            set_admin_notes="admin_notes" in sent,
            quote_amount=self.quote_amount,
            set_quote_amount="quote_amount" in sent,
            quote_currency=self.quote_currency or None,
        )


# ---------------------------------------------------------------------------
# POST /imagery-requests/{id}/cancel
# ---------------------------------------------------------------------------


class CancelRequestBody(_Body):
    """Optional reason supplied by a user cancelling their own request."""

    cancellation_reason: str | None = Field(
        default=None, max_length=MAX_CANCELLATION_REASON_LENGTH
    )


# ---------------------------------------------------------------------------
# Runtime validation
# ---------------------------------------------------------------------------


def parse_body(raw: Any, schema: type[BodyT], *, operation: str = "") -> BodyT:
    """Validate *raw* against *schema*.

    Raises:
        ContractError: If *raw* is not a JSON object.
        ValidationError: If a field is missing or has the wrong type.
    """
    if not isinstance(raw, dict):
        msg = f"{operation or 'request'}: body must be a JSON object, got {type(raw).__name__}"
        raise ContractError(msg, operation=operation, code="INVALID_BODY_TYPE")
    try:
        return schema.model_validate(raw)
    except PydanticValidationError as exc:
        # pydantic reports locations by alias; surface snake_case names
        names = {info.alias: name for name, info in schema.model_fields.items() if info.alias}
        fields = {
            ".".join(names.get(str(part), str(part)) for part in err["loc"]) or "body": err["msg"]
            for err in exc.errors()
        }
        msg = f"{operation or 'request'}: invalid body"
        raise ValidationError(msg, fields=fields, operation=operation) from exc

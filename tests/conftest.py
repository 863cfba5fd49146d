"""Shared pytest fixtures for the imagery request test suite."""

from __future__ import annotations

from datetime import date
from typing import Any

import pytest

from imagery_requests.models.aoi import AOIKind, GeoAOI, GeoPoint
from imagery_requests.models.request import (
    ContactDetails,
    DateRange,
    GuestRequester,
    RegisteredRequester,
    RequestDraft,
    Urgency,
)
from imagery_requests.repository.memory import InMemoryRequestRepository
from imagery_requests.workflow.events import CollectingPublisher
from imagery_requests.workflow.status_workflow import StatusWorkflow

# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

SAMPLE_RING: list[list[float]] = [[10, 20], [10, 30], [20, 30], [20, 20], [10, 20]]
SAMPLE_AREA_KM2 = 123.45
SAMPLE_CENTER: dict[str, float] = {"lat": 25.0, "lng": 15.0}

OWNER_ID = "user-123"


@pytest.fixture()
def sample_ring() -> list[list[float]]:
    """Closed 4-vertex ring (lng, lat) used throughout the suite."""
    return [list(c) for c in SAMPLE_RING]


@pytest.fixture()
def sample_aoi() -> GeoAOI:
    return GeoAOI(
        kind=AOIKind.POLYGON,
        coordinates=tuple((float(c[0]), float(c[1])) for c in SAMPLE_RING),
        area_km2=SAMPLE_AREA_KM2,
        center=GeoPoint(lat=25.0, lng=15.0),
    )


@pytest.fixture()
def contact() -> ContactDetails:
    return ContactDetails.create("Ada Lovelace", "Ada@Example.com", "Analytical Ltd", "+44 20 1234")


# ---------------------------------------------------------------------------
# Drafts and wire bodies
# ---------------------------------------------------------------------------


@pytest.fixture()
def registered_draft(sample_aoi: GeoAOI, contact: ContactDetails) -> RequestDraft:
    return RequestDraft(
        requester=RegisteredRequester(user_id=OWNER_ID, contact=contact),
        aoi=sample_aoi,
        date_range=DateRange(start_date=date(2025, 1, 1), end_date=date(2025, 3, 31)),
        urgency=Urgency.STANDARD,
    )


@pytest.fixture()
def guest_draft(sample_aoi: GeoAOI) -> RequestDraft:
    return RequestDraft(
        requester=GuestRequester(contact=ContactDetails.create("Guest Person", "guest@example.org")),
        aoi=sample_aoi,
        date_range=DateRange(start_date=date(2025, 2, 1), end_date=date(2025, 2, 28)),
        urgency=Urgency.URGENT,
    )


@pytest.fixture()
def create_body() -> dict[str, Any]:
    """A complete ``POST /imagery-requests`` body."""
    return {
        "full_name": "Ada Lovelace",
        "email": "ada@example.com",
        "company": "Analytical Ltd",
        "aoi_type": "polygon",
        "aoi_coordinates": {"type": "Polygon", "coordinates": [SAMPLE_RING]},
        "aoi_area_km2": SAMPLE_AREA_KM2,
        "aoi_center": dict(SAMPLE_CENTER),
        "date_range": {"start_date": "2025-01-01", "end_date": "2025-03-31"},
        "filters": {
            "resolution_category": ["vhr", "high"],
            "max_cloud_coverage": 20,
            "providers": ["Maxar", "Planet"],
        },
        "urgency": "standard",
    }


# ---------------------------------------------------------------------------
# Workflow wiring
# ---------------------------------------------------------------------------


@pytest.fixture()
def repository() -> InMemoryRequestRepository:
    return InMemoryRequestRepository()


@pytest.fixture()
def publisher() -> CollectingPublisher:
    return CollectingPublisher()


@pytest.fixture()
def workflow(
    repository: InMemoryRequestRepository, publisher: CollectingPublisher
) -> StatusWorkflow:
    return StatusWorkflow(repository, publisher)

"""Data models and schemas.

Defines the data structures shared by every layer:
- GeoAOI: Validated polygon / rectangle / circle footprint
- RequestFilterSpec: Sparse filter criteria
- ImageryRequestRecord: The request aggregate, status and urgency enums
"""

from imagery_requests.models.aoi import AOIKind, BoundingBox, GeoAOI, GeoPoint, bounding_box
from imagery_requests.models.filters import ImageType, RequestFilterSpec, ResolutionCategory
from imagery_requests.models.request import (
    ContactDetails,
    DateRange,
    GuestRequester,
    ImageryRequestRecord,
    RecordView,
    RegisteredRequester,
    RequestDraft,
    RequestStatus,
    StatusHistoryEntry,
    Urgency,
)

__all__ = [
    "AOIKind",
    "BoundingBox",
    "ContactDetails",
    "DateRange",
    "GeoAOI",
    "GeoPoint",
    "GuestRequester",
    "ImageType",
    "ImageryRequestRecord",
    "RecordView",
    "RegisteredRequester",
    "RequestDraft",
    "RequestFilterSpec",
    "RequestStatus",
    "ResolutionCategory",
    "StatusHistoryEntry",
    "Urgency",
    "bounding_box",
]

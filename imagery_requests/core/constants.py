"""Shared service constants: single source of truth.

Centralises container names, listing limits, sort whitelists, and
header names that would otherwise be duplicated across the ingress
layer, the query builder, and the repositories.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

DEFAULT_REQUESTS_CONTAINER: str = "imagery-requests"
"""Default blob container holding one JSON document per imagery request."""

REQUEST_BLOB_PREFIX: str = "requests/"
"""Blob name prefix for request documents within the container."""

STORE_MEMORY: str = "memory"
STORE_BLOB: str = "blob"

# ---------------------------------------------------------------------------
# Listing (pagination and sorting)
# ---------------------------------------------------------------------------

DEFAULT_PAGE: int = 1
DEFAULT_LIMIT: int = 20
"""Default page size for end-user and admin request listings."""

MIN_LIMIT: int = 1
MAX_LIMIT: int = 100

DEFAULT_SORT_FIELD: str = "created_at"
DEFAULT_SORT_ORDER: str = "desc"

SORTABLE_FIELDS: frozenset[str] = frozenset(
    {
        "created_at",
        "updated_at",
        "status",
        "urgency",
        "aoi_area_km2",
        "full_name",
        "email",
    }
)
"""Whitelist of sort fields; anything else falls back to ``created_at``."""

SORT_FIELD_ALIASES: dict[str, str] = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "areaKm2": "aoi_area_km2",
    "aoiAreaKm2": "aoi_area_km2",
    "fullName": "full_name",
}

# ---------------------------------------------------------------------------
# Field limits
# ---------------------------------------------------------------------------

MAX_FULL_NAME_LENGTH: int = 100
MAX_COMPANY_LENGTH: int = 200
MAX_ADDITIONAL_REQUIREMENTS_LENGTH: int = 5000
DEFAULT_QUOTE_CURRENCY: str = "USD"

# ---------------------------------------------------------------------------
# Caller identity headers (set by the upstream auth layer)
# ---------------------------------------------------------------------------

USER_ID_HEADER: str = "X-User-Id"
ADMIN_ID_HEADER: str = "X-Admin-Id"
CORRELATION_ID_HEADER: str = "X-Correlation-Id"

# ---------------------------------------------------------------------------
# Durable Functions names
# ---------------------------------------------------------------------------

NOTIFICATION_ORCHESTRATOR: str = "status_notification_orchestrator"
NOTIFICATION_ACTIVITY: str = "send_status_notification"

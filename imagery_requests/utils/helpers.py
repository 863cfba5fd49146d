"""Shared helper functions used across the models, workflow and repositories."""

from __future__ import annotations

import math
import re
import uuid
from datetime import UTC, date, datetime

from imagery_requests.core.exceptions import InvalidId

_REQUEST_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC ``datetime``."""
    return datetime.now(UTC)


def new_request_id() -> str:
    """Return a fresh opaque request identifier (32 lowercase hex chars)."""
    return uuid.uuid4().hex


def validate_request_id(request_id: str) -> str:
    """Normalise and validate a request identifier.

    Raises:
        InvalidId: If *request_id* is not 32 hexadecimal characters.
    """
    normalised = str(request_id or "").strip().lower()
    if not _REQUEST_ID_PATTERN.match(normalised):
        msg = f"The provided request ID is not valid: {request_id!r}"
        raise InvalidId(msg, operation="lookup")
    return normalised


def parse_timestamp(timestamp: str) -> datetime:
    """Parse an ISO 8601 timestamp string into an aware UTC ``datetime``.

    Naive values are assumed to be UTC.

    Raises:
        ValueError: If *timestamp* is empty or unparseable.
    """
    if not timestamp:
        msg = "timestamp must not be empty"
        raise ValueError(msg)
    parsed = datetime.fromisoformat(str(timestamp).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def parse_date(value: str | date) -> date:
    """Parse a ``YYYY-MM-DD`` (or full ISO timestamp) value into a ``date``.

    Raises:
        ValueError: If *value* cannot be parsed.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if len(text) == 10:
        return date.fromisoformat(text)
    return parse_timestamp(text).date()


def isoformat(value: datetime | None) -> str | None:
    """Render an optional ``datetime`` as ISO 8601."""
    return value.isoformat() if value is not None else None


def ceil_div(total: int, size: int) -> int:
    """Return ``ceil(total / size)`` for a positive page size."""
    return math.ceil(total / size) if size > 0 else 0

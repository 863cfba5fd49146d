"""Listing query construction for imagery requests.

Translates free-form query-string parameters into a deterministic,
paginated, ownership-scoped ``ListingQuery``.

The listing surface is deliberately lenient: malformed ``page``,
``limit``, ``sort`` and ``order`` values fall back to defaults (with a
debug log) instead of failing the request.  Malformed dates are the one
exception and raise ``ValidationError``, matching the mutation surface.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, time

from imagery_requests.core.constants import (
    DEFAULT_LIMIT,
    DEFAULT_PAGE,
    DEFAULT_SORT_FIELD,
    DEFAULT_SORT_ORDER,
    MAX_LIMIT,
    MIN_LIMIT,
    SORT_FIELD_ALIASES,
    SORTABLE_FIELDS,
)
from imagery_requests.core.exceptions import ValidationError
from imagery_requests.models.request import (
    ImageryRequestRecord,
    RecordView,
    RequestStatus,
    Urgency,
)
from imagery_requests.utils.helpers import ceil_div, parse_date

logger = logging.getLogger("imagery_requests.query.listing")

SORT_ASC = "asc"
SORT_DESC = "desc"

END_OF_DAY = time(23, 59, 59, 999_000)


# ---------------------------------------------------------------------------
# Scope
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ListingScope:
    """Ownership boundary for lookups and listings.

    ``user_id is None`` means unscoped (admin).
    """

    user_id: str | None = None

    @classmethod
    def any(cls) -> ListingScope:
        return cls(user_id=None)

    @classmethod
    def owned_by(cls, user_id: str) -> ListingScope:
        if not user_id:
            msg = "Owned scope requires a user id"
            raise ValueError(msg)
        return cls(user_id=user_id)

    @property
    def is_admin(self) -> bool:
        return self.user_id is None

    def permits(self, record: ImageryRequestRecord) -> bool:
        """Whether *record* is visible within this scope."""
        return self.user_id is None or record.is_owned_by(self.user_id)


# ---------------------------------------------------------------------------
# Lenient parameter parsing
# ---------------------------------------------------------------------------


def clamp_page(raw: object) -> int:
    """Parse and clamp a page number to ``>= 1``; garbage becomes 1."""
    try:
        page = int(str(raw).strip())
    except (TypeError, ValueError):
        logger.debug("Invalid page %r, falling back to %d", raw, DEFAULT_PAGE)
        return DEFAULT_PAGE
    return max(DEFAULT_PAGE, page)


def clamp_limit(raw: object, *, default: int = DEFAULT_LIMIT, maximum: int = MAX_LIMIT) -> int:
    """Parse and clamp a page size to ``[1, maximum]``; garbage becomes *default*."""
    try:
        limit = int(str(raw).strip())
    except (TypeError, ValueError):
        logger.debug("Invalid limit %r, falling back to %d", raw, default)
        limit = default
    return min(maximum, max(MIN_LIMIT, limit))


def resolve_sort_field(raw: object) -> str:
    """Map a requested sort field onto the whitelist (fallback ``created_at``)."""
    name = str(raw or "").strip()
    name = SORT_FIELD_ALIASES.get(name, name)
    if name in SORTABLE_FIELDS:
        return name
    if name:
        logger.debug("Unsortable field %r, falling back to %s", raw, DEFAULT_SORT_FIELD)
    return DEFAULT_SORT_FIELD


def resolve_sort_order(raw: object) -> str:
    """``asc`` when asked for explicitly, otherwise ``desc``."""
    return SORT_ASC if str(raw or "").strip().lower() == SORT_ASC else SORT_DESC


def _parse_bound(raw: object, name: str, *, end_of_day: bool) -> datetime | None:
    if raw is None or str(raw).strip() == "":
        return None
    try:
        day = parse_date(str(raw))
    except ValueError:
        msg = "Please provide dates in ISO format (YYYY-MM-DD)"
        raise ValidationError(msg, fields={name: msg}, operation="list") from None
    return datetime.combine(day, END_OF_DAY if end_of_day else time.min, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Query
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ListingQuery:
    """A fully resolved listing query.

    Attributes:
        scope: Ownership boundary (forced for non-admin callers).
        status: Exact status filter.
        urgency: Exact urgency filter.
        user_id: Explicit owner filter (admin listings only).
        email: Case-insensitive substring filter on the contact email.
        provider: Case-insensitive substring filter on requested providers.
        date_from: Inclusive lower bound on ``created_at`` (midnight).
        date_to: Inclusive upper bound on ``created_at`` (23:59:59.999).
        sort_field: Whitelisted primary sort field.
        sort_order: ``asc`` or ``desc``.
        page: 1-based page number.
        limit: Page size in ``[1, 100]``.
        unsatisfiable: Set when a filter value can never match (unknown
            status or urgency), so the result is empty rather than an error.
    """

    scope: ListingScope = field(default_factory=ListingScope.any)
    status: RequestStatus | None = None
    urgency: Urgency | None = None
    user_id: str | None = None
    email: str | None = None
    provider: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    sort_field: str = DEFAULT_SORT_FIELD
    sort_order: str = DEFAULT_SORT_ORDER
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    unsatisfiable: bool = False

    @classmethod
    def from_params(
        cls,
        params: Mapping[str, str],
        *,
        scope: ListingScope,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int = MAX_LIMIT,
    ) -> ListingQuery:
        """Build a query from raw query-string parameters.

        For non-admin scopes any ``user_id`` parameter is ignored and the
        caller's own id is used instead.

        Raises:
            ValidationError: If ``date_from`` / ``date_to`` are malformed.
        """
        unsatisfiable = False

        status: RequestStatus | None = None
        raw_status = (params.get("status") or "").strip()
        if raw_status:
            try:
                status = RequestStatus(raw_status)
            except ValueError:
                unsatisfiable = True

        urgency: Urgency | None = None
        raw_urgency = (params.get("urgency") or "").strip()
        if raw_urgency:
            try:
                urgency = Urgency(raw_urgency)
            except ValueError:
                unsatisfiable = True

        if scope.is_admin:
            user_id = (params.get("user_id") or "").strip() or None
        else:
            user_id = scope.user_id

        return cls(
            scope=scope,
            status=status,
            urgency=urgency,
            user_id=user_id,
            email=(params.get("email") or "").strip() or None,
            provider=(params.get("provider") or "").strip() or None,
            date_from=_parse_bound(params.get("date_from"), "date_from", end_of_day=False),
            date_to=_parse_bound(params.get("date_to"), "date_to", end_of_day=True),
            sort_field=resolve_sort_field(params.get("sort")),
            sort_order=resolve_sort_order(params.get("order")),
            page=clamp_page(params.get("page", DEFAULT_PAGE)),
            limit=clamp_limit(
                params.get("limit", default_limit), default=default_limit, maximum=max_limit
            ),
            unsatisfiable=unsatisfiable,
        )

    # ------------------------------------------------------------------
    # Execution helpers
    # ------------------------------------------------------------------

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def matches(self, record: ImageryRequestRecord) -> bool:
        """Whether *record* satisfies the scope and every filter."""
        if self.unsatisfiable or not self.scope.permits(record):
            return False
        if self.status is not None and record.status is not self.status:
            return False
        if self.urgency is not None and record.urgency is not self.urgency:
            return False
        if self.user_id is not None and record.user_id != self.user_id:
            return False
        if self.email and self.email.lower() not in record.contact.email.lower():
            return False
        if self.provider and (
            record.filters is None or not record.filters.mentions_provider(self.provider)
        ):
            return False
        if self.date_from is not None and record.created_at < self.date_from:
            return False
        return not (self.date_to is not None and record.created_at > self.date_to)

    def sort(self, records: Iterable[ImageryRequestRecord]) -> list[ImageryRequestRecord]:
        """Order records by the primary field, ties broken by ``created_at`` desc."""
        ordered = sorted(records, key=lambda r: r.created_at, reverse=True)
        if self.sort_field != DEFAULT_SORT_FIELD or self.sort_order != SORT_DESC:
            ordered.sort(
                key=lambda r: r.sort_value(self.sort_field),
                reverse=self.sort_order == SORT_DESC,
            )
        return ordered

    def apply(self, records: Iterable[ImageryRequestRecord]) -> Page:
        """Filter, count, sort and slice *records* into a ``Page``."""
        matching = [r for r in records if self.matches(r)]
        ordered = self.sort(matching)
        window = ordered[self.offset : self.offset + self.limit]
        return Page(items=tuple(window), total=len(matching), page=self.page, limit=self.limit)

    def unpaged(self) -> ListingQuery:
        """Same filters and ordering, covering every match (used for export)."""
        return ListingQuery(
            scope=self.scope,
            status=self.status,
            urgency=self.urgency,
            user_id=self.user_id,
            email=self.email,
            provider=self.provider,
            date_from=self.date_from,
            date_to=self.date_to,
            sort_field=self.sort_field,
            sort_order=self.sort_order,
            page=DEFAULT_PAGE,
            limit=10**9,
            unsatisfiable=self.unsatisfiable,
        )


@dataclass(frozen=True, slots=True)
class Page:
    """One page of listing results."""

    items: tuple[ImageryRequestRecord, ...]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return ceil_div(self.total, self.limit)

    def to_dict(self, view: RecordView = RecordView.ADMIN) -> dict[str, object]:
        return {
            "requests": [r.to_dict(view) for r in self.items],
            "pagination": {
                "total": self.total,
                "page": self.page,
                "limit": self.limit,
                "totalPages": self.total_pages,
            },
        }

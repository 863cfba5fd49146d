"""CSV materialisation of the admin listing query.

The export runs the same ``ListingQuery`` as the admin listing (same
filters, same ordering) without pagination.
"""

from __future__ import annotations

import csv
import io
import logging
from typing import TYPE_CHECKING

from imagery_requests.utils.helpers import isoformat, utcnow

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import date

    from imagery_requests.models.request import ImageryRequestRecord
    from imagery_requests.query.listing import ListingQuery
    from imagery_requests.repository.base import RequestRepository

logger = logging.getLogger("imagery_requests.export.csv_export")

CSV_COLUMNS: tuple[str, ...] = (
    "id",
    "created_at",
    "updated_at",
    "status",
    "urgency",
    "full_name",
    "email",
    "company",
    "phone",
    "user_id",
    "aoi_type",
    "aoi_area_km2",
    "aoi_center_lat",
    "aoi_center_lng",
    "start_date",
    "end_date",
    "resolution_category",
    "max_cloud_coverage",
    "providers",
    "bands",
    "image_types",
    "quote_amount",
    "quote_currency",
    "reviewed_at",
    "reviewed_by",
    "admin_notes",
    "additional_requirements",
)


def export_filename(today: date | None = None) -> str:
    """``imagery-requests-YYYY-MM-DD.csv``."""
    day = today or utcnow().date()
    return f"imagery-requests-{day.isoformat()}.csv"


def record_to_row(record: ImageryRequestRecord) -> dict[str, object]:
    """Flatten one record into CSV cells (list fields joined with ``; ``)."""
    filters = record.filters.to_dict() if record.filters else {}
    return {
        "id": record.id,
        "created_at": record.created_at.isoformat(),
        "updated_at": record.updated_at.isoformat(),
        "status": record.status.value,
        "urgency": record.urgency.value,
        "full_name": record.contact.full_name,
        "email": record.contact.email,
        "company": record.contact.company or "",
        "phone": record.contact.phone or "",
        "user_id": record.user_id or "",
        "aoi_type": record.aoi.kind.value,
        "aoi_area_km2": record.aoi.area_km2,
        "aoi_center_lat": record.aoi.center.lat,
        "aoi_center_lng": record.aoi.center.lng,
        "start_date": record.date_range.start_date.isoformat(),
        "end_date": record.date_range.end_date.isoformat(),
        "resolution_category": "; ".join(filters.get("resolution_category", [])),
        "max_cloud_coverage": filters.get("max_cloud_coverage", ""),
        "providers": "; ".join(filters.get("providers", [])),
        "bands": "; ".join(filters.get("bands", [])),
        "image_types": "; ".join(filters.get("image_types", [])),
        "quote_amount": "" if record.quote_amount is None else record.quote_amount,
        "quote_currency": record.quote_currency,
        "reviewed_at": isoformat(record.reviewed_at) or "",
        "reviewed_by": record.reviewed_by or "",
        "admin_notes": record.admin_notes or "",
        "additional_requirements": record.additional_requirements or "",
    }


def write_csv(records: Iterable[ImageryRequestRecord]) -> str:
    """Render *records* as CSV text with a header row."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS, lineterminator="\n")
    writer.writeheader()
    for record in records:
        writer.writerow(record_to_row(record))
    return buffer.getvalue()


def export_requests(repository: RequestRepository, query: ListingQuery) -> str:
    """Run *query* unpaged against *repository* and return CSV text."""
    page = repository.list_paged(query.unpaged())
    logger.info("CSV export | rows=%d", page.total)
    return write_csv(page.items)

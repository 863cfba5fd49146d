"""E-mail templates for lifecycle events.

``render_messages`` turns one ``StatusEvent`` into the messages it
should produce:

- submission: confirmation to the requester plus a notice to sales;
- admin status change: update to the requester;
- user cancellation: update to the requester plus a notice to sales.

Bodies are rendered from the event snapshot, never from a fresh read,
so a retried delivery always describes the state that was committed.
"""

from __future__ import annotations

import html
from dataclasses import dataclass
from typing import Any

from imagery_requests.workflow.events import EventType, StatusEvent

BRAND = "Earth Observation Platform"

STATUS_MESSAGES: dict[str, str] = {
    "pending": "Your imagery request is waiting to be reviewed.",
    "reviewing": "Our team is currently reviewing your imagery request.",
    "quoted": "We have prepared a quote for your imagery request.",
    "approved": "Great news! Your imagery request has been approved.",
    "completed": "Your imagery request has been completed.",
    "cancelled": "Your imagery request has been cancelled.",
}
DEFAULT_STATUS_MESSAGE = "Your imagery request status has been updated."


@dataclass(frozen=True, slots=True)
class EmailMessage:
    """A rendered e-mail ready for a gateway."""

    to: str
    subject: str
    text: str
    html: str

    def to_dict(self) -> dict[str, str]:
        return {"to": self.to, "subject": self.subject, "text": self.text, "html": self.html}


def render_messages(event: StatusEvent, *, sales_email: str) -> list[EmailMessage]:
    """Render every message *event* should produce."""
    if event.event_type is EventType.SUBMITTED:
        return [render_confirmation(event), render_admin_notice(event, sales_email)]
    messages = [render_status_update(event)]
    if event.initiated_by_user:
        messages.append(render_cancellation_notice(event, sales_email))
    return messages


# ---------------------------------------------------------------------------
# Requester-facing
# ---------------------------------------------------------------------------


def render_confirmation(event: StatusEvent) -> EmailMessage:
    snapshot = event.snapshot
    summary = _summary_lines(snapshot)
    text = (
        f"Hi {event.recipient_name},\n\n"
        f"We've received your satellite imagery request (ID: {event.request_id}).\n"
        + "\n".join(summary)
        + "\n\nOur team will review your request and get back to you within "
        "1-2 business days with availability and pricing information."
    )
    body = (
        f"<p>Hi {_e(event.recipient_name)},</p>"
        f"<p>We've received your satellite imagery request.</p>"
        f"<p><strong>Request ID:</strong> {_e(event.request_id)}</p>"
        f"<ul>{''.join(f'<li>{_e(line)}</li>' for line in summary)}</ul>"
        "<p>Our team will review your request and get back to you within "
        "1-2 business days with availability and pricing information.</p>"
    )
    return EmailMessage(
        to=event.recipient_email,
        subject=f"Imagery Request Received - {BRAND}",
        text=text,
        html=body,
    )


def render_status_update(event: StatusEvent) -> EmailMessage:
    new_status = event.new_status
    message = STATUS_MESSAGES.get(new_status, DEFAULT_STATUS_MESSAGE)
    lines = [
        message,
        f"Request ID: {event.request_id}",
        f"Status: {event.old_status or '-'} -> {new_status}",
    ]
    quote = _quote_line(event.snapshot) if new_status == "quoted" else None
    if quote:
        lines.append(quote)
    if event.notes:
        lines.append(f"Notes from our team: {event.notes}")

    text = f"Hi {event.recipient_name},\n\n" + "\n".join(lines)
    body = f"<p>Hi {_e(event.recipient_name)},</p>" + "".join(
        f"<p>{_e(line)}</p>" for line in lines
    )
    return EmailMessage(
        to=event.recipient_email,
        subject=f"Imagery Request Status Update - {new_status.capitalize()}",
        text=text,
        html=body,
    )


# ---------------------------------------------------------------------------
# Sales-facing
# ---------------------------------------------------------------------------


def render_admin_notice(event: StatusEvent, sales_email: str) -> EmailMessage:
    snapshot = event.snapshot
    lines = [
        f"Request ID: {event.request_id}",
        f"Customer: {event.recipient_name} <{event.recipient_email}>",
        f"Company: {snapshot.get('company') or '-'}",
        f"Registered user: {snapshot.get('user_id') or 'guest'}",
        *_summary_lines(snapshot),
    ]
    return EmailMessage(
        to=sales_email,
        subject="New Satellite Imagery Request",
        text="\n".join(lines),
        html="".join(f"<p>{_e(line)}</p>" for line in lines),
    )


def render_cancellation_notice(event: StatusEvent, sales_email: str) -> EmailMessage:
    lines = [
        f"Request ID: {event.request_id}",
        f"Customer: {event.recipient_name} <{event.recipient_email}>",
        f"Previous status: {event.old_status or '-'}",
        event.notes or "Cancelled by user",
    ]
    return EmailMessage(
        to=sales_email,
        subject="Imagery Request Cancelled by Customer",
        text="\n".join(lines),
        html="".join(f"<p>{_e(line)}</p>" for line in lines),
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _e(value: object) -> str:
    return html.escape(str(value))


def _summary_lines(snapshot: dict[str, Any]) -> list[str]:
    lines: list[str] = []
    area = snapshot.get("aoi_area_km2")
    if isinstance(area, (int, float)):
        lines.append(f"Area: {area:.2f} km2 ({snapshot.get('aoi_type', 'polygon')})")
    date_range = snapshot.get("date_range") or {}
    if date_range:
        lines.append(
            f"Date range: {date_range.get('start_date', '?')} to {date_range.get('end_date', '?')}"
        )
    if snapshot.get("urgency"):
        lines.append(f"Urgency: {str(snapshot['urgency']).capitalize()}")
    filters = snapshot.get("filters") or {}
    if filters.get("resolution_category"):
        lines.append("Resolution: " + ", ".join(filters["resolution_category"]).upper())
    if "max_cloud_coverage" in filters:
        lines.append(f"Max cloud coverage: {filters['max_cloud_coverage']}%")
    if filters.get("providers"):
        lines.append("Providers: " + ", ".join(filters["providers"]))
    if filters.get("bands"):
        lines.append("Bands: " + ", ".join(filters["bands"]))
    if filters.get("image_types"):
        lines.append("Image types: " + ", ".join(filters["image_types"]))
    if snapshot.get("additional_requirements"):
        lines.append(f"Additional requirements: {snapshot['additional_requirements']}")
    return lines


def _quote_line(snapshot: dict[str, Any]) -> str | None:
    amount = snapshot.get("quote_amount")
    if amount is None:
        return None
    currency = snapshot.get("quote_currency") or "USD"
    return f"Quote: {currency} {float(amount):,.2f}"

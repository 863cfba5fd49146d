"""Send notification activity: deliver one rendered e-mail.

Called by ``status_notification_orchestrator`` once per attempt per
message.  Delivery failures are reported in the result instead of
raised, so the orchestrator can read ``retryable`` and decide whether
to back off and try again.  Only a malformed payload raises.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from imagery_requests.core.exceptions import ContractError
from imagery_requests.notifications.gateway import NotificationError, get_gateway
from imagery_requests.notifications.templates import EmailMessage

if TYPE_CHECKING:
    from imagery_requests.core.config import ServiceConfig
    from imagery_requests.notifications.gateway import NotificationGateway

logger = logging.getLogger("imagery_requests.activities.send_notification")

_MESSAGE_FIELDS = ("to", "subject", "text", "html")


def send_status_notification(
    payload: dict[str, Any],
    *,
    gateway: NotificationGateway | None = None,
    config: ServiceConfig | None = None,
) -> dict[str, object]:
    """Deliver the message in *payload*.

    Args:
        payload: ``{"request_id", "attempt", "message": {to, subject, text, html}}``.
        gateway: Gateway override (tests); built from *config* otherwise.
        config: Service configuration used to build the gateway.

    Returns:
        ``{"state": "sent" | "failed", "request_id", "to", "attempt",
        "message_id", "retryable", "error"}``.

    Raises:
        ContractError: If the payload is not a dict or the message is incomplete.
    """
    if not isinstance(payload, dict):
        msg = f"send_status_notification: payload must be a dict, got {type(payload).__name__}"
        raise ContractError(msg, operation="notify")

    raw = payload.get("message")
    if not isinstance(raw, dict) or any(not raw.get(f) for f in ("to", "subject")):
        msg = "send_status_notification: message must include 'to' and 'subject'"
        raise ContractError(msg, operation="notify", code="INVALID_MESSAGE")
    message = EmailMessage(**{f: str(raw.get(f) or "") for f in _MESSAGE_FIELDS})

    request_id = str(payload.get("request_id", ""))
    attempt = int(payload.get("attempt", 1))

    if gateway is None:
        if config is None:
            from imagery_requests.core.config import ServiceConfig

            config = ServiceConfig.from_env()
        gateway = get_gateway(config)

    result: dict[str, object] = {
        "request_id": request_id,
        "to": message.to,
        "attempt": attempt,
        "message_id": None,
        "retryable": False,
        "error": "",
    }
    try:
        result["message_id"] = gateway.send(message)
    except NotificationError as exc:
        logger.warning(
            "Notification attempt failed | request=%s | to=%s | attempt=%d | retryable=%s | %s",
            request_id,
            message.to,
            attempt,
            exc.retryable,
            exc.message,
        )
        result.update(state="failed", retryable=exc.retryable, error=exc.message)
        return result

    result["state"] = "sent"
    logger.info(
        "Notification delivered | request=%s | to=%s | attempt=%d | backend=%s",
        request_id,
        message.to,
        attempt,
        gateway.name,
    )
    return result

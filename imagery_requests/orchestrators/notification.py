"""Durable Functions orchestrator delivering lifecycle notifications.

Started by the HTTP layer once per ``StatusEvent`` after the workflow
has committed.  Each rendered message is sent through the
``send_status_notification`` activity; a retryable failure waits on a
durable timer (exponential backoff) and tries again, up to
``max_attempts``.  A message that still fails is logged and reported
in the summary; the orchestration itself never fails because of it.

Input::

    {
        "request_id": "...",
        "event_type": "status_changed",
        "messages": [{"to", "subject", "text", "html"}, ...],
        "max_attempts": 3,
        "retry_seconds": 5,
    }
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from imagery_requests.core.constants import NOTIFICATION_ACTIVITY
from imagery_requests.notifications.templates import render_messages

if TYPE_CHECKING:
    from collections.abc import Generator

    import azure.durable_functions as df

    from imagery_requests.core.config import ServiceConfig
    from imagery_requests.workflow.events import StatusEvent

logger = logging.getLogger("imagery_requests.orchestrators.notification")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_SECONDS = 5


def build_notification_input(event: StatusEvent, config: ServiceConfig) -> dict[str, object]:
    """Render *event* into an orchestrator input."""
    messages = render_messages(event, sales_email=config.sales_email)
    return {
        "request_id": event.request_id,
        "event_type": event.event_type.value,
        "messages": [m.to_dict() for m in messages],
        "max_attempts": config.notification_max_attempts,
        "retry_seconds": config.notification_retry_seconds,
    }


def notification_orchestrator(
    context: df.DurableOrchestrationContext,
) -> Generator[Any, Any, dict[str, object]]:
    """Deliver every message in the input with bounded retries.

    Returns:
        ``{"request_id", "event_type", "sent", "failed", "results"}``.
    """
    payload: dict[str, Any] = context.get_input() or {}
    instance_id = context.instance_id
    request_id = str(payload.get("request_id", ""))
    messages = payload.get("messages") or []
    max_attempts = max(1, int(payload.get("max_attempts", DEFAULT_MAX_ATTEMPTS)))
    retry_seconds = max(1, int(payload.get("retry_seconds", DEFAULT_RETRY_SECONDS)))

    if not context.is_replaying:
        logger.info(
            "Notification orchestrator started | instance=%s | request=%s | messages=%d",
            instance_id,
            request_id,
            len(messages),
        )

    results: list[dict[str, Any]] = []
    for message in messages:
        outcome = yield from _deliver_with_retry(
            context,
            message,
            request_id=request_id,
            max_attempts=max_attempts,
            retry_seconds=retry_seconds,
        )
        results.append(outcome)

    sent = sum(1 for r in results if r.get("state") == "sent")
    failed = len(results) - sent

    if not context.is_replaying:
        logger.info(
            "Notification orchestrator completed | instance=%s | request=%s | sent=%d | failed=%d",
            instance_id,
            request_id,
            sent,
            failed,
        )

    return {
        "request_id": request_id,
        "event_type": payload.get("event_type", ""),
        "sent": sent,
        "failed": failed,
        "results": results,
    }


def _deliver_with_retry(
    context: df.DurableOrchestrationContext,
    message: dict[str, Any],
    *,
    request_id: str,
    max_attempts: int,
    retry_seconds: int,
) -> Generator[Any, Any, dict[str, Any]]:
    """Send one message, backing off ``retry_seconds * 2**(n-1)`` between attempts."""
    outcome: dict[str, Any] = {"state": "failed", "to": message.get("to", ""), "attempt": 0}

    for attempt in range(1, max_attempts + 1):
        try:
            result = yield context.call_activity(
                NOTIFICATION_ACTIVITY,
                {"request_id": request_id, "attempt": attempt, "message": message},
            )
        except Exception as exc:
            # Activity crashed (bad payload, host error): nothing to retry into
            if not context.is_replaying:
                logger.exception(
                    "Notification activity error | request=%s | to=%s | attempt=%d | error=%s",
                    request_id,
                    message.get("to", ""),
                    attempt,
                    exc,
                )
            return {
                "state": "failed",
                "to": message.get("to", ""),
                "attempt": attempt,
                "error": str(exc),
            }

        outcome = result if isinstance(result, dict) else {"state": "failed", "attempt": attempt}
        if outcome.get("state") == "sent" or not outcome.get("retryable"):
            break

        if attempt < max_attempts:
            delay = retry_seconds * 2 ** (attempt - 1)
            fire_at = context.current_utc_datetime + timedelta(seconds=delay)
            yield context.create_timer(fire_at)

    if outcome.get("state") != "sent" and not context.is_replaying:
        logger.error(
            "Notification abandoned | request=%s | to=%s | attempts=%s | error=%s",
            request_id,
            message.get("to", ""),
            outcome.get("attempt", 0),
            outcome.get("error", ""),
        )
    return outcome

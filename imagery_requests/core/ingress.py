"""Thin ingress boundary helpers for the Azure Functions entrypoints.

Centralises the transport concerns so that ``function_app.py`` only
holds trigger bindings and handoff:

- **deserialize_activity_input**: normalises the JSON-string-or-dict
  payload Durable Functions passes to activities.
- **parse_json_body**: decodes an HTTP request body, raising
  ``ContractError`` for anything that is not JSON.
- **caller_identity / require_user / require_admin**: read the caller
  identity headers injected by the upstream auth layer.
- **json_response / error_response**: render payloads and taxonomy
  errors as ``func.HttpResponse``.
- **dispatch_events**: start one notification orchestration per
  committed event; failures are logged, never raised.
- **get_blob_service_client**: builds an ``azure.storage.blob`` client
  from ``AzureWebJobsStorage``.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, NoReturn

import azure.functions as func

from imagery_requests.core.constants import (
    ADMIN_ID_HEADER,
    CORRELATION_ID_HEADER,
    NOTIFICATION_ORCHESTRATOR,
    USER_ID_HEADER,
)
from imagery_requests.core.exceptions import ContractError, Forbidden, RequestError, Unauthorized

if TYPE_CHECKING:
    from collections.abc import Iterable

    import azure.durable_functions as df
    from azure.storage.blob import BlobServiceClient

    from imagery_requests.core.config import ServiceConfig
    from imagery_requests.workflow.events import StatusEvent

logger = logging.getLogger("imagery_requests.core.ingress")

JSON_MIMETYPE = "application/json"


# ---------------------------------------------------------------------------
# Activity input deserialisation
# ---------------------------------------------------------------------------


def deserialize_activity_input(raw: str | dict[str, Any] | object) -> dict[str, Any]:
    """Normalise Durable Functions activity input to a plain dict.

    On first execution the input arrives as a JSON string; on replay it
    may already be a ``dict``.

    Raises:
        ContractError: If *raw* is neither a JSON object string nor a dict.
    """
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except (json.JSONDecodeError, ValueError) as exc:
            msg = f"Activity input is not valid JSON: {exc}"
            raise ContractError(msg, operation="ingress", code="INVALID_JSON") from exc
        if not isinstance(parsed, dict):
            msg = f"Activity input JSON must be an object, got {type(parsed).__name__}"
            raise ContractError(msg, operation="ingress", code="INVALID_INPUT_TYPE")
        return parsed
    if isinstance(raw, dict):
        return raw
    msg = f"Unexpected activity input type: {type(raw).__name__}"
    raise ContractError(msg, operation="ingress", code="INVALID_INPUT_TYPE")


# ---------------------------------------------------------------------------
# HTTP request helpers
# ---------------------------------------------------------------------------


def parse_json_body(req: func.HttpRequest, *, operation: str = "") -> Any:
    """Decode the request body as JSON.

    An empty body decodes to ``{}`` so that endpoints whose fields are
    all optional (cancel) accept a bare POST.

    Raises:
        ContractError: If the body is not valid JSON, including the
            non-standard ``NaN`` and ``Infinity`` tokens.
    """
    body = req.get_body()
    if not body or not body.strip():
        return {}
    try:
        return json.loads(body, parse_constant=_reject_constant)
    except ValueError as exc:
        msg = f"{operation or 'request'}: body is not valid JSON"
        raise ContractError(msg, operation=operation, code="INVALID_JSON") from exc


def _reject_constant(token: str) -> NoReturn:
    msg = f"{token} is not a valid JSON number"
    raise ValueError(msg)


def query_params(req: func.HttpRequest) -> dict[str, str]:
    """Return the query string as a plain dict."""
    return {key: str(value) for key, value in req.params.items()}


def correlation_id(req: func.HttpRequest) -> str:
    """Return the caller-supplied correlation id or mint one."""
    return (req.headers.get(CORRELATION_ID_HEADER) or "").strip() or uuid.uuid4().hex


@dataclass(frozen=True, slots=True)
class CallerIdentity:
    """Identity asserted by the upstream auth layer."""

    user_id: str | None = None
    admin_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.admin_id is not None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None or self.admin_id is not None


def caller_identity(req: func.HttpRequest) -> CallerIdentity:
    """Read the identity headers (blank values count as absent)."""
    user_id = (req.headers.get(USER_ID_HEADER) or "").strip() or None
    admin_id = (req.headers.get(ADMIN_ID_HEADER) or "").strip() or None
    return CallerIdentity(user_id=user_id, admin_id=admin_id)


def require_user(req: func.HttpRequest) -> str:
    """Return the end-user id.

    Raises:
        Unauthorized: If no user id header is present.
    """
    identity = caller_identity(req)
    if identity.user_id is None:
        msg = "Authentication required"
        raise Unauthorized(msg, operation="auth")
    return identity.user_id


def require_admin(req: func.HttpRequest) -> str:
    """Return the admin id.

    Raises:
        Unauthorized: If no identity header is present at all.
        Forbidden: If the caller is an end user.
    """
    identity = caller_identity(req)
    if identity.admin_id is not None:
        return identity.admin_id
    if identity.is_authenticated:
        msg = "Admin privileges required"
        raise Forbidden(msg, operation="auth")
    msg = "Authentication required"
    raise Unauthorized(msg, operation="auth")


# ---------------------------------------------------------------------------
# HTTP responses
# ---------------------------------------------------------------------------


def json_response(
    body: object,
    *,
    status_code: int = 200,
    headers: dict[str, str] | None = None,
) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps(body, default=str),
        status_code=status_code,
        mimetype=JSON_MIMETYPE,
        headers=headers,
    )


def error_response(exc: RequestError, *, correlation: str = "") -> func.HttpResponse:
    """Render a taxonomy error with its ``http_status``."""
    if correlation and not exc.correlation_id:
        exc.correlation_id = correlation
    payload = exc.to_error_dict()
    if exc.http_status >= 500:
        logger.error(
            "Request failed | kind=%s | code=%s | correlation_id=%s | %s",
            exc.kind,
            exc.code,
            exc.correlation_id,
            exc.message,
        )
    else:
        logger.info(
            "Request rejected | kind=%s | code=%s | status=%d | correlation_id=%s",
            exc.kind,
            exc.code,
            exc.http_status,
            exc.correlation_id,
        )
    return json_response(payload, status_code=exc.http_status)


def internal_error_response(*, correlation: str = "") -> func.HttpResponse:
    """Opaque 500 for unexpected failures (details stay in the log)."""
    return json_response(
        {
            "error": "InternalError",
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
            "correlation_id": correlation,
        },
        status_code=500,
    )


# ---------------------------------------------------------------------------
# Post-commit event dispatch
# ---------------------------------------------------------------------------


async def dispatch_events(
    client: df.DurableOrchestrationClient,
    events: Iterable[StatusEvent],
    config: ServiceConfig,
) -> list[str]:
    """Start one notification orchestration per event.

    Never raises: the transition is already committed, so a failure to
    schedule delivery is logged and skipped.

    Returns:
        Instance ids of the orchestrations that were started.
    """
    from imagery_requests.orchestrators.notification import build_notification_input

    started: list[str] = []
    for event in events:
        try:
            instance_id = await client.start_new(
                NOTIFICATION_ORCHESTRATOR,
                client_input=build_notification_input(event, config),
            )
        except Exception:
            logger.exception(
                "Failed to start notification orchestrator | type=%s | request=%s",
                event.event_type.value,
                event.request_id,
            )
            continue
        started.append(instance_id)
        logger.info(
            "Notification orchestrator started | instance_id=%s | type=%s | request=%s",
            instance_id,
            event.event_type.value,
            event.request_id,
        )
    return started


# ---------------------------------------------------------------------------
# Blob service client factory
# ---------------------------------------------------------------------------


def get_blob_service_client() -> BlobServiceClient:
    """Create a ``BlobServiceClient`` from the ``AzureWebJobsStorage`` env var.

    Raises:
        ContractError: If the environment variable is not set.
    """
    from azure.storage.blob import BlobServiceClient

    connection_string = os.environ.get("AzureWebJobsStorage", "")  # noqa: SIM112
    if not connection_string:
        msg = "AzureWebJobsStorage environment variable is not set"
        raise ContractError(msg, operation="ingress", code="MISSING_CONNECTION_STRING")

    return BlobServiceClient.from_connection_string(connection_string)

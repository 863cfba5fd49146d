"""Azure Functions entry point: Imagery Request Lifecycle Service.

This module registers all Azure Functions (HTTP triggers, the
notification orchestrator and its activity) using the Python v2
programming model.

All business logic lives in the imagery_requests package. This file is
purely the wiring layer between Azure Functions bindings and
application code.
"""

from __future__ import annotations

import functools
import logging

import azure.durable_functions as df
import azure.functions as func

from imagery_requests.api.handlers import ImageryRequestHandlers, run_and_dispatch
from imagery_requests.core.config import ServiceConfig
from imagery_requests.core.constants import NOTIFICATION_ACTIVITY, NOTIFICATION_ORCHESTRATOR
from imagery_requests.core.ingress import deserialize_activity_input
from imagery_requests.repository.factory import get_repository

app = func.FunctionApp(http_auth_level=func.AuthLevel.ANONYMOUS)

logger = logging.getLogger("imagery_requests.function_app")


@functools.cache
def _config() -> ServiceConfig:
    return ServiceConfig.from_env()


@functools.cache
def _handlers() -> ImageryRequestHandlers:
    config = _config()
    return ImageryRequestHandlers(get_repository(config), config)


# ---------------------------------------------------------------------------
# HTTP: end-user routes
# ---------------------------------------------------------------------------


@app.function_name("create_imagery_request")
@app.route(route="imagery-requests", methods=["POST"])
@app.durable_client_input(client_name="client")
async def create_imagery_request(
    req: func.HttpRequest, client: df.DurableOrchestrationClient
) -> func.HttpResponse:
    """Submit a new imagery request (guest or registered)."""
    return await run_and_dispatch(_handlers().create_request, req, client, _config())


@app.function_name("list_own_imagery_requests")
@app.route(route="imagery-requests", methods=["GET"])
def list_own_imagery_requests(req: func.HttpRequest) -> func.HttpResponse:
    """List the caller's own requests."""
    return _handlers().list_own(req).response


@app.function_name("get_own_imagery_request")
@app.route(route="imagery-requests/{id}", methods=["GET"])
def get_own_imagery_request(req: func.HttpRequest) -> func.HttpResponse:
    """Fetch one of the caller's requests (404 if not owned)."""
    return _handlers().get_own(req).response


@app.function_name("cancel_own_imagery_request")
@app.route(route="imagery-requests/{id}/cancel", methods=["POST"])
@app.durable_client_input(client_name="client")
async def cancel_own_imagery_request(
    req: func.HttpRequest, client: df.DurableOrchestrationClient
) -> func.HttpResponse:
    """Cancel one of the caller's requests while pending or reviewing."""
    return await run_and_dispatch(_handlers().cancel_own, req, client, _config())


# ---------------------------------------------------------------------------
# HTTP: admin routes
# ---------------------------------------------------------------------------


@app.function_name("admin_list_imagery_requests")
@app.route(route="admin/imagery-requests", methods=["GET"])
def admin_list_imagery_requests(req: func.HttpRequest) -> func.HttpResponse:
    """Filtered, paginated listing of every request."""
    return _handlers().admin_list(req).response


@app.function_name("admin_export_imagery_requests")
@app.route(route="admin/imagery-requests/export", methods=["GET"])
def admin_export_imagery_requests(req: func.HttpRequest) -> func.HttpResponse:
    """CSV export of the filtered listing."""
    return _handlers().admin_export(req).response


@app.function_name("admin_get_imagery_request")
@app.route(route="admin/imagery-requests/{id}", methods=["GET"])
def admin_get_imagery_request(req: func.HttpRequest) -> func.HttpResponse:
    """Fetch any request with admin-only fields."""
    return _handlers().admin_get(req).response


@app.function_name("admin_update_imagery_request")
@app.route(route="admin/imagery-requests/{id}", methods=["PUT"])
@app.durable_client_input(client_name="client")
async def admin_update_imagery_request(
    req: func.HttpRequest, client: df.DurableOrchestrationClient
) -> func.HttpResponse:
    """Update status, notes and quote; notifies the requester on a status change."""
    return await run_and_dispatch(_handlers().admin_update, req, client, _config())


# ---------------------------------------------------------------------------
# Orchestrator: status notifications
# ---------------------------------------------------------------------------


@app.function_name(NOTIFICATION_ORCHESTRATOR)
@app.orchestration_trigger(context_name="context")
def status_notification_orchestrator(context: df.DurableOrchestrationContext) -> object:
    """Deliver the e-mails for one lifecycle event with bounded retries.

    See ``imagery_requests.orchestrators.notification`` for implementation.
    """
    from imagery_requests.orchestrators.notification import notification_orchestrator

    return notification_orchestrator(context)


@app.function_name("notification_status")
@app.route(route="notifications/{instance_id}", methods=["GET"])
@app.durable_client_input(client_name="client")
async def notification_status(
    req: func.HttpRequest,
    client: df.DurableOrchestrationClient,
) -> func.HttpResponse:
    """Return the status of a notification orchestration (local debugging)."""
    instance_id = req.route_params.get("instance_id", "")
    if not instance_id:
        return func.HttpResponse("Missing instance_id", status_code=400)

    status = await client.get_status(instance_id)
    if not status:
        return func.HttpResponse("Instance not found", status_code=404)

    return client.create_check_status_response(req, instance_id)


# ---------------------------------------------------------------------------
# Activities
# ---------------------------------------------------------------------------


@app.function_name(NOTIFICATION_ACTIVITY)
@app.activity_trigger(input_name="activityInput")
def send_status_notification_activity(activityInput: str) -> dict[str, object]:  # noqa: N803
    """Durable Functions activity: deliver one rendered e-mail.

    Input:
        JSON string (or dict when replaying) with ``request_id``,
        ``attempt`` and ``message`` (``to``, ``subject``, ``text``, ``html``).

    Returns:
        Delivery result with ``state`` (``sent`` / ``failed``) and ``retryable``.
    """
    from imagery_requests.activities.send_notification import send_status_notification

    payload = deserialize_activity_input(activityInput)

    logger.info(
        "send_status_notification activity started | request=%s | attempt=%s",
        payload.get("request_id", ""),
        payload.get("attempt", 1),
    )

    return send_status_notification(payload, config=_config())

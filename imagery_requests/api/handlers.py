"""HTTP handlers for the imagery request routes.

Each handler takes a ``func.HttpRequest`` and returns a
``HandlerResult``: the response plus the workflow events committed
while producing it.  ``run_and_dispatch`` runs a handler on a worker
thread, then forwards those events to the Durable client; store and
geometry work is blocking and stays off the event loop.

Taxonomy errors become structured JSON responses with the error's
``http_status``; anything else is logged with its traceback and
answered with an opaque 500.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import azure.functions as func

from imagery_requests.core.exceptions import RequestError
from imagery_requests.core.ingress import (
    caller_identity,
    correlation_id,
    dispatch_events,
    error_response,
    internal_error_response,
    json_response,
    parse_json_body,
    query_params,
    require_admin,
    require_user,
)
from imagery_requests.export.csv_export import export_filename, export_requests
from imagery_requests.models.payloads import (
    AdminUpdateBody,
    CancelRequestBody,
    CreateImageryRequestBody,
    parse_body,
)
from imagery_requests.models.request import RecordView
from imagery_requests.query.listing import ListingQuery, ListingScope
from imagery_requests.workflow.events import CollectingPublisher
from imagery_requests.workflow.status_workflow import StatusWorkflow

if TYPE_CHECKING:
    from collections.abc import Callable

    import azure.durable_functions as df

    from imagery_requests.core.config import ServiceConfig
    from imagery_requests.repository.base import RequestRepository
    from imagery_requests.workflow.events import StatusEvent

logger = logging.getLogger("imagery_requests.api.handlers")


@dataclass(slots=True)
class HandlerResult:
    """Response plus the post-commit events to dispatch."""

    response: func.HttpResponse
    events: list[StatusEvent] = field(default_factory=list)


class ImageryRequestHandlers:
    """Route handlers bound to one repository and configuration."""

    def __init__(self, repository: RequestRepository, config: ServiceConfig) -> None:
        self._repository = repository
        self._config = config

    # ------------------------------------------------------------------
    # End-user routes
    # ------------------------------------------------------------------

    def create_request(self, req: func.HttpRequest) -> HandlerResult:
        """``POST /imagery-requests`` (guest or registered)."""

        def _create(workflow: StatusWorkflow) -> func.HttpResponse:
            body = parse_body(
                parse_json_body(req, operation="create"),
                CreateImageryRequestBody,
                operation="create",
            )
            draft = body.to_draft(user_id=caller_identity(req).user_id)
            record = workflow.submit(draft)
            return json_response(
                {
                    "message": "Imagery request submitted successfully",
                    "request_id": record.id,
                    "request": record.to_dict(RecordView.OWNER),
                },
                status_code=201,
            )

        return self._run(req, "create", _create)

    def list_own(self, req: func.HttpRequest) -> HandlerResult:
        """``GET /imagery-requests``: always scoped to the caller."""

        def _list(workflow: StatusWorkflow) -> func.HttpResponse:
            user_id = require_user(req)
            query = ListingQuery.from_params(
                query_params(req),
                scope=ListingScope.owned_by(user_id),
                default_limit=self._config.list_default_limit,
                max_limit=self._config.list_max_limit,
            )
            page = self._repository.list_paged(query)
            return json_response(page.to_dict(RecordView.OWNER))

        return self._run(req, "list", _list)

    def get_own(self, req: func.HttpRequest) -> HandlerResult:
        """``GET /imagery-requests/{id}``: 404 when absent or not owned."""

        def _get(workflow: StatusWorkflow) -> func.HttpResponse:
            user_id = require_user(req)
            record = self._repository.find_by_id(
                _route_id(req), ListingScope.owned_by(user_id)
            )
            return json_response({"request": record.to_dict(RecordView.OWNER)})

        return self._run(req, "lookup", _get)

    def cancel_own(self, req: func.HttpRequest) -> HandlerResult:
        """``POST /imagery-requests/{id}/cancel``."""

        def _cancel(workflow: StatusWorkflow) -> func.HttpResponse:
            user_id = require_user(req)
            body = parse_body(
                parse_json_body(req, operation="cancel"),
                CancelRequestBody,
                operation="cancel",
            )
            record = workflow.cancel_by_user(_route_id(req), user_id, body.cancellation_reason)
            return json_response(
                {
                    "message": "Imagery request cancelled successfully",
                    "request": record.to_dict(RecordView.OWNER),
                }
            )

        return self._run(req, "cancel", _cancel)

    # ------------------------------------------------------------------
    # Admin routes
    # ------------------------------------------------------------------

    def admin_list(self, req: func.HttpRequest) -> HandlerResult:
        """``GET /admin/imagery-requests``."""

        def _list(workflow: StatusWorkflow) -> func.HttpResponse:
            require_admin(req)
            page = self._repository.list_paged(self._admin_query(req))
            return json_response(page.to_dict(RecordView.ADMIN))

        return self._run(req, "admin_list", _list)

    def admin_export(self, req: func.HttpRequest) -> HandlerResult:
        """``GET /admin/imagery-requests/export``: CSV of the filtered listing."""

        def _export(workflow: StatusWorkflow) -> func.HttpResponse:
            require_admin(req)
            text = export_requests(self._repository, self._admin_query(req))
            return func.HttpResponse(
                text,
                status_code=200,
                mimetype="text/csv",
                headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
            )

        return self._run(req, "export", _export)

    def admin_get(self, req: func.HttpRequest) -> HandlerResult:
        """``GET /admin/imagery-requests/{id}``."""

        def _get(workflow: StatusWorkflow) -> func.HttpResponse:
            require_admin(req)
            record = self._repository.find_by_id(_route_id(req), ListingScope.any())
            return json_response({"request": record.to_dict(RecordView.ADMIN)})

        return self._run(req, "admin_lookup", _get)

    def admin_update(self, req: func.HttpRequest) -> HandlerResult:
        """``PUT /admin/imagery-requests/{id}``."""

        def _update(workflow: StatusWorkflow) -> func.HttpResponse:
            admin_id = require_admin(req)
            body = parse_body(
                parse_json_body(req, operation="admin_update"),
                AdminUpdateBody,
                operation="admin_update",
            )
            record = workflow.admin_update(_route_id(req), admin_id, body.to_update())
            return json_response(
                {
                    "message": "Imagery request updated successfully",
                    "request": record.to_dict(RecordView.ADMIN),
                }
            )

        return self._run(req, "admin_update", _update)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _admin_query(self, req: func.HttpRequest) -> ListingQuery:
        return ListingQuery.from_params(
            query_params(req),
            scope=ListingScope.any(),
            default_limit=self._config.admin_list_default_limit,
            max_limit=self._config.list_max_limit,
        )

    def _run(
        self,
        req: func.HttpRequest,
        operation: str,
        handler: Callable[[StatusWorkflow], func.HttpResponse],
    ) -> HandlerResult:
        correlation = correlation_id(req)
        publisher = CollectingPublisher()
        workflow = StatusWorkflow(self._repository, publisher)
        try:
            response = handler(workflow)
        except RequestError as exc:
            if not exc.operation:
                exc.operation = operation
            return HandlerResult(error_response(exc, correlation=correlation))
        except Exception:
            logger.exception(
                "Unhandled error | operation=%s | correlation_id=%s", operation, correlation
            )
            return HandlerResult(internal_error_response(correlation=correlation))
        return HandlerResult(response, publisher.drain())


def _route_id(req: func.HttpRequest) -> str:
    return str(req.route_params.get("id", ""))


async def run_and_dispatch(
    handler: Callable[[func.HttpRequest], HandlerResult],
    req: func.HttpRequest,
    client: df.DurableOrchestrationClient,
    config: ServiceConfig,
) -> func.HttpResponse:
    """Run a blocking *handler* off the event loop, then dispatch its events."""
    result = await asyncio.to_thread(handler, req)
    if result.events:
        await dispatch_events(client, result.events, config)
    return result.response

"""Tests for the Functions app wiring.

Validates:
- Every route is registered
- Read-only routes are plain functions, so the worker runs them on its
  thread pool instead of the event loop
"""

from __future__ import annotations

import inspect

import pytest

from function_app import app

READ_ONLY_ROUTES = (
    "list_own_imagery_requests",
    "get_own_imagery_request",
    "admin_list_imagery_requests",
    "admin_export_imagery_requests",
    "admin_get_imagery_request",
)


@pytest.fixture(scope="module")
def functions() -> dict[str, object]:
    return {fn.get_function_name(): fn for fn in app.get_functions()}


class TestRegistration:
    """Routes, orchestrator and activity are registered under their names."""

    def test_all_functions_registered(self, functions: dict[str, object]) -> None:
        assert set(READ_ONLY_ROUTES) <= set(functions)
        assert {
            "create_imagery_request",
            "cancel_own_imagery_request",
            "admin_update_imagery_request",
            "notification_status",
            "status_notification_orchestrator",
            "send_status_notification",
        } <= set(functions)

    @pytest.mark.parametrize("name", READ_ONLY_ROUTES)
    def test_read_only_routes_are_sync(self, functions: dict[str, object], name: str) -> None:
        user_function = functions[name].get_user_function()  # type: ignore[attr-defined]
        assert not inspect.iscoroutinefunction(user_function)

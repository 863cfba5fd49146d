"""Tests for the status notification orchestrator.

Uses a mock DurableOrchestrationContext to verify the orchestrator's
behaviour without Azure infrastructure.

The orchestrator is a **generator** function (it ``yield``s durable-task
calls), so the tests drive it via the generator protocol: ``next()`` to
advance to the first yield, then ``send()`` to supply each activity
result (or ``throw()`` to simulate an activity failure).
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import MagicMock

from imagery_requests.core.config import ServiceConfig
from imagery_requests.core.constants import NOTIFICATION_ACTIVITY
from imagery_requests.orchestrators.notification import (
    build_notification_input,
    notification_orchestrator,
)
from imagery_requests.workflow.events import EventType, StatusEvent

START = datetime(2026, 2, 17, 12, 0, 0, tzinfo=UTC)


def _make_context(
    input_data: dict[str, Any],
    *,
    instance_id: str = "notify-instance-001",
    is_replaying: bool = False,
    current_utc: datetime | None = None,
) -> MagicMock:
    """Create a mock DurableOrchestrationContext."""
    context = MagicMock()
    context.get_input.return_value = input_data
    context.instance_id = instance_id
    context.is_replaying = is_replaying
    context.current_utc_datetime = current_utc or START
    return context


def _message(to: str = "ada@example.com") -> dict[str, str]:
    return {"to": to, "subject": "s", "text": "t", "html": "h"}


def _input(*messages: dict[str, str], max_attempts: int = 3) -> dict[str, Any]:
    return {
        "request_id": "a" * 32,
        "event_type": "status_changed",
        "messages": list(messages),
        "max_attempts": max_attempts,
        "retry_seconds": 5,
    }


def _sent(attempt: int = 1) -> dict[str, object]:
    return {"state": "sent", "attempt": attempt, "retryable": False}


def _failed(attempt: int = 1, *, retryable: bool = True) -> dict[str, object]:
    return {"state": "failed", "attempt": attempt, "retryable": retryable, "error": "boom"}


def _finish(gen: Any, value: object) -> dict[str, Any]:
    try:
        gen.send(value)
    except StopIteration as stop:
        return stop.value
    msg = "orchestrator yielded again"
    raise AssertionError(msg)


class TestBuildNotificationInput:
    """Events are rendered before the orchestration starts."""

    def test_submission_input(self) -> None:
        event = StatusEvent(
            event_type=EventType.SUBMITTED,
            request_id="b" * 32,
            recipient_email="ada@example.com",
            recipient_name="Ada",
            new_status="pending",
        )
        config = ServiceConfig(sales_email="ops@example.test", notification_max_attempts=4)

        payload = build_notification_input(event, config)

        assert payload["request_id"] == "b" * 32
        assert payload["event_type"] == "request_submitted"
        assert payload["max_attempts"] == 4
        assert payload["retry_seconds"] == 5
        assert [m["to"] for m in payload["messages"]] == ["ada@example.com", "ops@example.test"]  # type: ignore[index, union-attr]


class TestNotificationOrchestrator:
    """Delivery loop with bounded retries."""

    def test_single_message_sent_first_try(self) -> None:
        context = _make_context(_input(_message()))
        gen = notification_orchestrator(context)

        next(gen)
        result = _finish(gen, _sent())

        assert result["sent"] == 1
        assert result["failed"] == 0
        assert result["event_type"] == "status_changed"
        context.call_activity.assert_called_once_with(
            NOTIFICATION_ACTIVITY,
            {"request_id": "a" * 32, "attempt": 1, "message": _message()},
        )

    def test_retryable_failure_waits_then_retries(self) -> None:
        context = _make_context(_input(_message()))
        gen = notification_orchestrator(context)

        next(gen)
        gen.send(_failed(1))  # yields the backoff timer
        context.create_timer.assert_called_once_with(START + timedelta(seconds=5))
        gen.send(None)  # timer fired, yields attempt 2
        result = _finish(gen, _sent(2))

        assert result["sent"] == 1
        assert context.call_activity.call_count == 2
        second_input = context.call_activity.call_args_list[1].args[1]
        assert second_input["attempt"] == 2

    def test_backoff_doubles(self) -> None:
        context = _make_context(_input(_message()))
        gen = notification_orchestrator(context)

        next(gen)
        gen.send(_failed(1))
        gen.send(None)
        gen.send(_failed(2))
        fire_times = [c.args[0] for c in context.create_timer.call_args_list]
        assert fire_times == [START + timedelta(seconds=5), START + timedelta(seconds=10)]

    def test_gives_up_after_max_attempts(self) -> None:
        context = _make_context(_input(_message(), max_attempts=2))
        gen = notification_orchestrator(context)

        next(gen)
        gen.send(_failed(1))
        gen.send(None)
        result = _finish(gen, _failed(2))

        assert result["sent"] == 0
        assert result["failed"] == 1
        assert context.call_activity.call_count == 2
        assert context.create_timer.call_count == 1

    def test_permanent_failure_not_retried(self) -> None:
        context = _make_context(_input(_message()))
        gen = notification_orchestrator(context)

        next(gen)
        result = _finish(gen, _failed(1, retryable=False))

        assert result["failed"] == 1
        context.create_timer.assert_not_called()

    def test_activity_exception_not_retried(self) -> None:
        context = _make_context(_input(_message()))
        gen = notification_orchestrator(context)

        next(gen)
        try:
            gen.throw(RuntimeError("activity crashed"))
        except StopIteration as stop:
            result = stop.value
        else:
            msg = "orchestrator yielded again"
            raise AssertionError(msg)

        assert result["failed"] == 1
        assert result["results"][0]["error"] == "activity crashed"

    def test_messages_delivered_in_order(self) -> None:
        context = _make_context(_input(_message("a@x.co"), _message("sales@x.co")))
        gen = notification_orchestrator(context)

        next(gen)
        gen.send(_sent())
        result = _finish(gen, _sent())

        recipients = [c.args[1]["message"]["to"] for c in context.call_activity.call_args_list]
        assert recipients == ["a@x.co", "sales@x.co"]
        assert result["sent"] == 2

    def test_one_failure_does_not_block_next_message(self) -> None:
        context = _make_context(_input(_message("a@x.co"), _message("sales@x.co")))
        gen = notification_orchestrator(context)

        next(gen)
        gen.send(_failed(1, retryable=False))
        result = _finish(gen, _sent())

        assert result["sent"] == 1
        assert result["failed"] == 1

    def test_empty_input(self) -> None:
        context = _make_context({})
        gen = notification_orchestrator(context)
        try:
            next(gen)
        except StopIteration as stop:
            result = stop.value
        else:
            msg = "orchestrator should not yield without messages"
            raise AssertionError(msg)
        assert result == {
            "request_id": "",
            "event_type": "",
            "sent": 0,
            "failed": 0,
            "results": [],
        }

    def test_replay_suppresses_logs(self, caplog: Any) -> None:
        context = _make_context(_input(_message()), is_replaying=True)
        gen = notification_orchestrator(context)
        next(gen)
        _finish(gen, _sent())
        assert "Notification orchestrator started" not in caplog.text

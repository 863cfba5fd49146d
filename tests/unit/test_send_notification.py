"""Tests for the send_status_notification activity.

Validates:
- Successful delivery reports ``state="sent"`` with the message id
- Gateway failures are reported, not raised, with ``retryable`` preserved
- Malformed payloads raise ``ContractError``
- The gateway is built from config when none is injected
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from imagery_requests.activities.send_notification import send_status_notification
from imagery_requests.core.config import ServiceConfig
from imagery_requests.core.exceptions import ContractError
from imagery_requests.notifications.gateway import NotificationError


def _payload(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "request_id": "a" * 32,
        "attempt": 2,
        "message": {
            "to": "ada@example.com",
            "subject": "Imagery Request Status Update - Quoted",
            "text": "Hi Ada",
            "html": "<p>Hi Ada</p>",
        },
    }
    payload.update(overrides)
    return payload


class TestSendStatusNotification:
    """Happy path and reported failures."""

    def test_sent(self) -> None:
        gateway = MagicMock()
        gateway.send.return_value = "msg-9"
        gateway.name = "http"

        result = send_status_notification(_payload(), gateway=gateway)

        assert result["state"] == "sent"
        assert result["message_id"] == "msg-9"
        assert result["attempt"] == 2
        assert result["to"] == "ada@example.com"
        message = gateway.send.call_args.args[0]
        assert message.subject == "Imagery Request Status Update - Quoted"

    def test_retryable_failure_reported(self) -> None:
        gateway = MagicMock()
        gateway.send.side_effect = NotificationError("HTTP 503", status_code=503)

        result = send_status_notification(_payload(), gateway=gateway)

        assert result["state"] == "failed"
        assert result["retryable"] is True
        assert result["error"] == "HTTP 503"

    def test_permanent_failure_reported(self) -> None:
        gateway = MagicMock()
        gateway.send.side_effect = NotificationError("HTTP 422", retryable=False)

        result = send_status_notification(_payload(), gateway=gateway)

        assert result["state"] == "failed"
        assert result["retryable"] is False

    def test_unexpected_error_propagates(self) -> None:
        gateway = MagicMock()
        gateway.send.side_effect = RuntimeError("bug")
        with pytest.raises(RuntimeError):
            send_status_notification(_payload(), gateway=gateway)

    def test_attempt_defaults_to_one(self) -> None:
        payload = _payload()
        del payload["attempt"]
        result = send_status_notification(payload, gateway=MagicMock())
        assert result["attempt"] == 1

    def test_gateway_built_from_config(self) -> None:
        with patch(
            "imagery_requests.activities.send_notification.get_gateway"
        ) as mock_get_gateway:
            mock_get_gateway.return_value.send.return_value = None
            result = send_status_notification(_payload(), config=ServiceConfig())
        mock_get_gateway.assert_called_once_with(ServiceConfig())
        assert result["state"] == "sent"


class TestSendStatusNotificationContract:
    """Malformed input is a contract error."""

    def test_payload_not_dict(self) -> None:
        with pytest.raises(ContractError):
            send_status_notification("nope", gateway=MagicMock())  # type: ignore[arg-type]

    def test_message_missing(self) -> None:
        with pytest.raises(ContractError) as exc:
            send_status_notification(_payload(message=None), gateway=MagicMock())
        assert exc.value.code == "INVALID_MESSAGE"

    def test_message_missing_recipient(self) -> None:
        message = {"subject": "s", "text": "t", "html": "h"}
        with pytest.raises(ContractError):
            send_status_notification(_payload(message=message), gateway=MagicMock())

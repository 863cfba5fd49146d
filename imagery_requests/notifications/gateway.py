"""NotificationGateway abstract base class and concrete gateways.

The gateway is the only place that talks to the outside mail service.
It is called from the ``send_status_notification`` activity, never
from the HTTP request path.

- ``HttpEmailGateway`` posts to an e-mail API (Resend-compatible JSON,
  Bearer auth) with ``httpx``.
- ``LoggingGateway`` only logs; it is the default for local runs.

Failures raise ``NotificationError``; ``retryable`` tells the
orchestrator whether another attempt can help.
"""

from __future__ import annotations

import abc
import logging
from typing import TYPE_CHECKING

import httpx

from imagery_requests.core.config import NOTIFICATION_BACKEND_HTTP
from imagery_requests.core.exceptions import TransientError

if TYPE_CHECKING:
    from imagery_requests.core.config import ServiceConfig
    from imagery_requests.notifications.templates import EmailMessage

logger = logging.getLogger("imagery_requests.notifications.gateway")

_RETRYABLE_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


class NotificationError(TransientError):
    """Delivery failed.

    Attributes:
        recipient: Address the message was meant for.
        status_code: HTTP status from the mail API, if any.
    """

    kind = "NotificationError"
    default_operation = "notify"
    default_code = "NOTIFICATION_FAILED"

    def __init__(
        self,
        message: str,
        *,
        recipient: str = "",
        status_code: int | None = None,
        retryable: bool = True,
    ) -> None:
        self.recipient = recipient
        self.status_code = status_code
        super().__init__(message, retryable=retryable)

    def details(self) -> dict[str, object]:
        return {"recipient": self.recipient, "status_code": self.status_code}


class NotificationGateway(abc.ABC):
    """Contract for outbound e-mail delivery."""

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Short backend name for logs."""

    @abc.abstractmethod
    def send(self, message: EmailMessage) -> str | None:
        """Deliver *message*; return the provider message id if one is issued.

        Raises:
            NotificationError: On delivery failure.
        """


class LoggingGateway(NotificationGateway):
    """Writes messages to the log instead of sending them."""

    @property
    def name(self) -> str:
        return "log"

    def send(self, message: EmailMessage) -> str | None:
        logger.info("Notification (not sent) | to=%s | subject=%s", message.to, message.subject)
        return None


class HttpEmailGateway(NotificationGateway):
    """Delivers messages through an HTTP e-mail API.

    Args:
        api_url: Endpoint accepting ``POST`` of ``{from, to, subject, html, text}``.
        api_key: Bearer token.
        sender: ``from`` address.
        timeout: Per-request timeout in seconds.
        client: Optional pre-built ``httpx.Client`` (tests inject a mock).
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        sender: str,
        *,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._api_url = api_url
        self._api_key = api_key
        self._sender = sender
        self._timeout = timeout
        self._client = client

    @property
    def name(self) -> str:
        return "http"

    def send(self, message: EmailMessage) -> str | None:
        payload = {
            "from": self._sender,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
            "text": message.text,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}

        try:
            if self._client is not None:
                response = self._client.post(self._api_url, json=payload, headers=headers)
                response.raise_for_status()
            else:
                with httpx.Client(timeout=self._timeout) as client:
                    response = client.post(self._api_url, json=payload, headers=headers)
                    response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            msg = f"E-mail API rejected message to {message.to}: HTTP {status}"
            raise NotificationError(
                msg,
                recipient=message.to,
                status_code=status,
                retryable=status in _RETRYABLE_STATUS_CODES,
            ) from exc
        except httpx.HTTPError as exc:
            msg = f"E-mail API unreachable for message to {message.to}: {exc}"
            raise NotificationError(msg, recipient=message.to) from exc

        message_id = _message_id(response)
        logger.info(
            "Notification sent | to=%s | subject=%s | id=%s",
            message.to,
            message.subject,
            message_id,
        )
        return message_id


def _message_id(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("id"):
        return str(body["id"])
    return None


def get_gateway(config: ServiceConfig) -> NotificationGateway:
    """Build the gateway selected by ``NOTIFICATION_BACKEND``."""
    if config.notification_backend == NOTIFICATION_BACKEND_HTTP:
        return HttpEmailGateway(
            config.email_api_url,
            config.email_api_key,
            config.email_from,
            timeout=config.notification_timeout_seconds,
        )
    return LoggingGateway()

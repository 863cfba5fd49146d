"""Outbound e-mail notifications.

- gateway: NotificationGateway contract, HTTP and logging backends
- templates: Message rendering per lifecycle event
"""

from imagery_requests.notifications.gateway import (
    HttpEmailGateway,
    LoggingGateway,
    NotificationError,
    NotificationGateway,
    get_gateway,
)
from imagery_requests.notifications.templates import EmailMessage, render_messages

__all__ = [
    "EmailMessage",
    "HttpEmailGateway",
    "LoggingGateway",
    "NotificationError",
    "NotificationGateway",
    "get_gateway",
    "render_messages",
]

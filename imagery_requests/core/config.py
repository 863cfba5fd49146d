"""Service configuration loaded from environment variables.

Azure Functions app settings (or ``local.settings.json`` for local dev)
are the source of truth.

Fail-fast validation:
    ``from_env()`` raises ``ConfigValidationError`` if any value is out
    of its valid range, so bad configuration is caught at startup rather
    than on the first request that needs it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from imagery_requests.core.constants import (
    DEFAULT_LIMIT,
    DEFAULT_REQUESTS_CONTAINER,
    MAX_LIMIT,
    STORE_BLOB,
    STORE_MEMORY,
)
from imagery_requests.core.exceptions import RequestError

NOTIFICATION_BACKEND_LOG = "log"
NOTIFICATION_BACKEND_HTTP = "http"


class ConfigValidationError(RequestError):
    """Raised when configuration values are out of valid range.

    Attributes:
        key: The configuration key that failed validation.
        value: The invalid value.
        message: Human-readable description of the valid range.
    """

    kind = "ConfigValidationError"
    default_operation = "config"
    default_code = "CONFIG_VALIDATION_FAILED"

    def __init__(self, key: str, value: object, message: str) -> None:
        self.key = key
        self.value = value
        super().__init__(f"Invalid configuration {key}={value!r}: {message}")


@dataclass(frozen=True, slots=True)
class ServiceConfig:
    """Immutable service configuration.

    Loaded once per worker and shared by the HTTP handlers and the
    notification worker.

    Attributes:
        request_store: Persistence backend (``memory`` or ``blob``).
        requests_container: Blob container for request documents.
        list_default_limit: Default page size for listings.
        admin_list_default_limit: Default page size for the admin listing.
        list_max_limit: Upper clamp for any requested page size.
        notification_backend: ``log`` (no delivery) or ``http`` (e-mail API).
        email_api_url: E-mail API endpoint used by the HTTP gateway.
        email_api_key: Bearer token for the e-mail API.
        email_from: Sender address for outgoing notifications.
        sales_email: Admin recipient for submission/cancellation notices.
        notification_max_attempts: Delivery attempts before giving up.
        notification_retry_seconds: First retry interval (doubles each attempt).
        notification_timeout_seconds: HTTP timeout per delivery attempt.
    """

    request_store: str = STORE_MEMORY
    requests_container: str = DEFAULT_REQUESTS_CONTAINER
    list_default_limit: int = DEFAULT_LIMIT
    admin_list_default_limit: int = DEFAULT_LIMIT
    list_max_limit: int = MAX_LIMIT
    notification_backend: str = NOTIFICATION_BACKEND_LOG
    email_api_url: str = "https://api.resend.com/emails"
    email_api_key: str = ""
    email_from: str = "noreply@earthintelligence.com"
    sales_email: str = "sales@earthintelligence.com"
    notification_max_attempts: int = 3
    notification_retry_seconds: int = 5
    notification_timeout_seconds: float = 10.0

    @classmethod
    def from_env(cls) -> ServiceConfig:
        """Load and validate configuration from environment variables.

        Raises:
            ConfigValidationError: If a value is out of range or a
                required string value is empty.
            ValueError: If a numeric environment variable cannot be
                parsed (e.g. ``LIST_MAX_LIMIT=abc``).
        """
        config = cls(
            request_store=os.getenv("REQUEST_STORE", STORE_MEMORY),
            requests_container=os.getenv("REQUESTS_CONTAINER", DEFAULT_REQUESTS_CONTAINER),
            list_default_limit=int(os.getenv("LIST_DEFAULT_LIMIT", str(DEFAULT_LIMIT))),
            admin_list_default_limit=int(
                os.getenv("ADMIN_LIST_DEFAULT_LIMIT", str(DEFAULT_LIMIT))
            ),
            list_max_limit=int(os.getenv("LIST_MAX_LIMIT", str(MAX_LIMIT))),
            notification_backend=os.getenv("NOTIFICATION_BACKEND", NOTIFICATION_BACKEND_LOG),
            email_api_url=os.getenv("EMAIL_API_URL", "https://api.resend.com/emails"),
            email_api_key=os.getenv("EMAIL_API_KEY", ""),
            email_from=os.getenv("EMAIL_FROM", "noreply@earthintelligence.com"),
            sales_email=os.getenv("SALES_EMAIL", "sales@earthintelligence.com"),
            notification_max_attempts=int(os.getenv("NOTIFICATION_MAX_ATTEMPTS", "3")),
            notification_retry_seconds=int(os.getenv("NOTIFICATION_RETRY_SECONDS", "5")),
            notification_timeout_seconds=float(os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "10")),
        )
        _validate(config)
        return config


def _validate(config: ServiceConfig) -> None:
    """Validate configuration ranges.  Raises ``ConfigValidationError``."""
    if config.request_store not in (STORE_MEMORY, STORE_BLOB):
        raise ConfigValidationError(
            "REQUEST_STORE",
            config.request_store,
            f"must be one of: {STORE_MEMORY}, {STORE_BLOB}",
        )

    if not config.requests_container:
        raise ConfigValidationError(
            "REQUESTS_CONTAINER",
            config.requests_container,
            "must not be empty",
        )

    if not 1 <= config.list_max_limit <= MAX_LIMIT:
        raise ConfigValidationError(
            "LIST_MAX_LIMIT",
            config.list_max_limit,
            f"must be between 1 and {MAX_LIMIT}",
        )

    if not 1 <= config.list_default_limit <= config.list_max_limit:
        raise ConfigValidationError(
            "LIST_DEFAULT_LIMIT",
            config.list_default_limit,
            f"must be between 1 and LIST_MAX_LIMIT ({config.list_max_limit})",
        )

    if not 1 <= config.admin_list_default_limit <= config.list_max_limit:
        raise ConfigValidationError(
            "ADMIN_LIST_DEFAULT_LIMIT",
            config.admin_list_default_limit,
            f"must be between 1 and LIST_MAX_LIMIT ({config.list_max_limit})",
        )

    if config.notification_backend not in (NOTIFICATION_BACKEND_LOG, NOTIFICATION_BACKEND_HTTP):
        raise ConfigValidationError(
            "NOTIFICATION_BACKEND",
            config.notification_backend,
            f"must be one of: {NOTIFICATION_BACKEND_LOG}, {NOTIFICATION_BACKEND_HTTP}",
        )

    if config.notification_backend == NOTIFICATION_BACKEND_HTTP and not config.email_api_url:
        raise ConfigValidationError(
            "EMAIL_API_URL",
            config.email_api_url,
            "must not be empty when NOTIFICATION_BACKEND=http",
        )

    if config.notification_max_attempts < 1:
        raise ConfigValidationError(
            "NOTIFICATION_MAX_ATTEMPTS",
            config.notification_max_attempts,
            "must be >= 1",
        )

    if config.notification_retry_seconds < 1:
        raise ConfigValidationError(
            "NOTIFICATION_RETRY_SECONDS",
            config.notification_retry_seconds,
            "must be >= 1 (seconds)",
        )

    if config.notification_timeout_seconds <= 0:
        raise ConfigValidationError(
            "NOTIFICATION_TIMEOUT_SECONDS",
            config.notification_timeout_seconds,
            "must be > 0 (seconds)",
        )

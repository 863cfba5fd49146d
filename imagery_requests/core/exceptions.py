"""Unified exception taxonomy for the imagery request service.

Every domain exception inherits from ``RequestError`` and carries
structured context fields so that HTTP handlers, the notification
worker, and logging all render failures the same way.

Taxonomy categories
-------------------
- ``ValidationError``    : missing or malformed input, never retryable.
- ``InvalidGeometry``    : AOI ring/center/area violations (a validation error).
- ``InvalidStatus``      : target status outside the enumerated set.
- ``IllegalTransition``  : workflow guard rejected a transition.
- ``NotFound``           : id absent or not owned by the caller.
- ``InvalidId``          : malformed identity token.
- ``Unauthorized``       : no caller identity on a protected route.
- ``Forbidden``          : non-admin caller on an admin route.
- ``ContractError``      : request body is not the expected JSON shape.
- ``TransientError``     : temporary failure (network, throttle), retryable.

Every exception exposes ``to_error_dict()`` for a stable structured
error payload and ``http_status`` for the ingress layer.
"""

from __future__ import annotations

from collections.abc import Iterable


class RequestError(Exception):
    """Base exception for all imagery-request domain errors.

    Attributes:
        message: Human-readable error description.
        operation: Operation where the error occurred
            (e.g. ``"admin_update"``, ``"cancel"``).
        code: Machine-readable error code (e.g. ``"INVALID_STATUS"``).
        retryable: Whether the caller may retry the operation.
        correlation_id: Request correlation identifier.
    """

    #: Default operation for subclasses (override via class attribute or kwarg).
    default_operation: str = ""
    #: Default code for subclasses (override via class attribute or kwarg).
    default_code: str = ""
    #: Stable error kind surfaced to callers.
    kind: str = "RequestError"
    #: HTTP status code used by the ingress layer.
    http_status: int = 500

    def __init__(
        self,
        message: str = "",
        *,
        operation: str = "",
        code: str = "",
        retryable: bool = False,
        correlation_id: str = "",
    ) -> None:
        self.message = message
        self.operation = operation or self.default_operation
        self.code = code or self.default_code
        self.retryable = retryable
        self.correlation_id = correlation_id
        super().__init__(message)

    @property
    def category(self) -> str:
        """Return the error category based on concrete class."""
        if isinstance(self, ContractError):
            return "contract"
        if isinstance(self, ValidationError):
            return "validation"
        if isinstance(self, TransientError):
            return "transient"
        if isinstance(self, (NotFound, InvalidId, IllegalTransition, Unauthorized, Forbidden)):
            return "client"
        return "transient" if self.retryable else "permanent"

    def details(self) -> dict[str, object]:
        """Extra structured fields merged into ``to_error_dict()``."""
        return {}

    def to_error_dict(self) -> dict[str, object]:
        """Return a structured error payload with stable keys."""
        payload: dict[str, object] = {
            "error": self.kind,
            "category": self.category,
            "code": self.code,
            "operation": self.operation,
            "message": self.message,
            "retryable": self.retryable,
            "correlation_id": self.correlation_id,
        }
        payload.update(self.details())
        return payload


# ---------------------------------------------------------------------------
# Validation family
# ---------------------------------------------------------------------------


class ValidationError(RequestError):
    """Missing or malformed required field. Never retryable.

    Attributes:
        fields: Optional mapping of field name to failure message.
    """

    kind = "ValidationError"
    default_code = "VALIDATION_FAILED"
    http_status = 400

    def __init__(
        self,
        message: str = "",
        *,
        fields: dict[str, str] | None = None,
        **kwargs: object,
    ) -> None:
        kwargs.setdefault("retryable", False)
        self.fields = dict(fields or {})
        super().__init__(message, **kwargs)  # type: ignore[arg-type]

    def details(self) -> dict[str, object]:
        if not self.fields:
            return {}
        return {"details": dict(self.fields)}


class InvalidGeometry(ValidationError):
    """The AOI ring, center, or area violates a geometric invariant."""

    kind = "InvalidGeometry"
    default_code = "INVALID_GEOMETRY"


class InvalidStatus(ValidationError):
    """Target status is not one of the enumerated values.

    Attributes:
        value: The rejected status string.
        allowed: The enumerated status values.
    """

    kind = "InvalidStatus"
    default_code = "INVALID_STATUS"

    def __init__(self, value: object, allowed: Iterable[str], **kwargs: object) -> None:
        self.value = value
        self.allowed = tuple(allowed)
        message = f"Status {value!r} is invalid; must be one of: {', '.join(self.allowed)}"
        super().__init__(message, **kwargs)  # type: ignore[arg-type]

    def details(self) -> dict[str, object]:
        return {"valid_statuses": list(self.allowed)}


# ---------------------------------------------------------------------------
# Workflow and lookup errors
# ---------------------------------------------------------------------------


class IllegalTransition(RequestError):
    """A workflow guard rejected the requested transition.

    Attributes:
        current_status: Status of the record when the guard ran.
        target_status: Status the caller asked for.
        allowed: Statuses from which the transition is legal.
    """

    kind = "IllegalTransition"
    default_code = "ILLEGAL_TRANSITION"
    http_status = 409

    def __init__(
        self,
        current_status: str,
        target_status: str,
        allowed: Iterable[str],
        **kwargs: object,
    ) -> None:
        self.current_status = current_status
        self.target_status = target_status
        self.allowed = tuple(allowed)
        message = (
            f"Requests with status {current_status!r} cannot be moved to "
            f"{target_status!r}. Allowed from: {', '.join(self.allowed)}"
        )
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]

    def details(self) -> dict[str, object]:
        return {"current_status": self.current_status, "allowed": list(self.allowed)}


class NotFound(RequestError):
    """The record does not exist or is not visible to the caller."""

    kind = "NotFound"
    default_code = "NOT_FOUND"
    http_status = 404


class InvalidId(RequestError):
    """The identity token is malformed."""

    kind = "InvalidId"
    default_code = "INVALID_ID"
    http_status = 400


class Unauthorized(RequestError):
    """No caller identity was supplied by the upstream auth layer."""

    kind = "Unauthorized"
    default_code = "AUTHENTICATION_REQUIRED"
    http_status = 401


class Forbidden(RequestError):
    """The caller is authenticated but may not use this operation."""

    kind = "Forbidden"
    default_code = "ADMIN_REQUIRED"
    http_status = 403


class ContractError(RequestError):
    """Request body does not match the expected JSON contract."""

    kind = "ContractError"
    default_code = "CONTRACT_VIOLATION"
    http_status = 400

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class TransientError(RequestError):
    """Temporary failure that may succeed on retry."""

    kind = "TransientError"
    default_code = "TRANSIENT_FAILURE"
    http_status = 503

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", True)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]

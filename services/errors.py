from __future__ import annotations

from typing import Optional


class ServiceError(Exception):
    """Base class for service-layer exceptions mapped to HTTP responses.

    Each subclass pins a stable error code and an HTTP status. The API layer
    renders them into the uniform error envelope; nothing else about the
    underlying cause crosses the trust boundary.
    """

    status_code: int = 400
    error_code: str = "VALIDATION"

    def __init__(self, message: str, *, details: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class RequestValidationError(ServiceError):
    """Missing or malformed request fields (422)."""
    status_code = 422
    error_code = "VALIDATION"


class AuthInvalid(ServiceError):
    """Bad credentials or a bad/expired token (401)."""
    status_code = 401
    error_code = "AUTH_INVALID"


class InvalidCredentials(AuthInvalid):
    """Unknown user, inactive user and wrong password all look the same."""

    def __init__(self, message: str = "Invalid credentials", **kwargs) -> None:
        super().__init__(message, **kwargs)


class InvalidToken(AuthInvalid):
    def __init__(self, message: str = "Invalid or expired token", **kwargs) -> None:
        super().__init__(message, **kwargs)


class AuthRequired(ServiceError):
    """No token presented on a protected operation (401)."""
    status_code = 401
    error_code = "AUTH_REQUIRED"


class Forbidden(ServiceError):
    """Valid identity but inactive account or insufficient role (403)."""
    status_code = 403
    error_code = "AUTH_FORBIDDEN"


class Conflict(ServiceError):
    status_code = 409
    error_code = "CONFLICT"


class NotFound(ServiceError):
    status_code = 404
    error_code = "NOT_FOUND"


class DependencyFailure(ServiceError):
    """Store or transport unavailable (503). The cause is logged, never returned."""
    status_code = 503
    error_code = "DEPENDENCY_FAILURE"

    def __init__(self, message: str = "A required service is unavailable", **kwargs) -> None:
        super().__init__(message, **kwargs)


class TransportError(Exception):
    """Raised by a Transport implementation when a publish cannot be delivered."""


class EventProcessingError(Exception):
    """A consumed event is malformed or inconsistent with local state.

    Never reaches HTTP; the reconciler logs it and drops the event.
    """

    error_code = "EVENT_PROCESSING_FAILURE"

    def __init__(self, topic: str, reason: str) -> None:
        super().__init__(f"{topic}: {reason}")
        self.topic = topic
        self.reason = reason

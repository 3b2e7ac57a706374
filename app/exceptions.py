from typing import Any, Mapping, Optional


class AppError(Exception):
    """Base class for errors raised by services and turned into HTTP responses.

    Attributes:
        message: human-readable message
        details: optional mapping with extra context (field errors, ids)
        code: machine-readable error code, defaults to the class code
        http_status: suggested HTTP status code for handlers
    """

    http_status = 500
    default_message = "Unexpected error"
    default_code = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: Optional[str] = None, details: Optional[Mapping[str, Any]] = None, code: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)
        self.details = details
        self.code = code or self.default_code

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = dict(self.details)
        return payload

    def __str__(self) -> str:
        return self.message


class ServiceValidationError(AppError):
    """Raised when input data is invalid or a precondition for a service call is not met."""

    http_status = 400
    default_message = "Invalid input"
    default_code = "VALIDATION_ERROR"


class UnauthorizedError(AppError):
    """Raised when the caller identity is missing or does not resolve to a user."""

    http_status = 401
    default_message = "Unauthorized"
    default_code = "UNAUTHORIZED"


class ForbiddenError(AppError):
    """Raised when the caller lacks scope for the target school or action."""

    http_status = 403
    default_message = "Access denied"
    default_code = "FORBIDDEN"


class NotFoundError(AppError):
    """Raised when a requested resource was not found."""

    http_status = 404
    default_message = "Not found"
    default_code = "NOT_FOUND"


class ConflictError(AppError):
    """Raised when a write collides with an existing row (e.g. same school, meal type and day)."""

    http_status = 409
    default_message = "Conflict"
    default_code = "CONFLICT"


class StateError(AppError):
    """Raised when an action is invalid for the entity's current status."""

    http_status = 400
    default_message = "Invalid state for this action"
    default_code = "INVALID_STATE"

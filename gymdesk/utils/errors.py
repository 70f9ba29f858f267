"""
Custom Exceptions
Dashboard client error taxonomy.

Controllers catch these at their boundary and fold them into an
``ActionResult`` carrying the matching ``ErrorKind``.
"""

from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from gymdesk.core.enums import ErrorKind

ModelT = TypeVar("ModelT", bound=BaseModel)


class DashboardError(Exception):
    """Base exception for dashboard client errors."""

    kind: ErrorKind = ErrorKind.REJECTED

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class FormValidationError(DashboardError):
    """Raised when form input fails client-side validation. No request is sent."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ApiError(DashboardError):
    """Base exception for failed API calls."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        payload: Any = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload
        self.original_error = original_error


class ApiRejectedError(ApiError):
    """Raised when the server answers with a non-success status (other than 429)."""

    kind = ErrorKind.REJECTED


class ApiPayloadError(ApiError):
    """Raised when a success response does not match the expected schema."""

    kind = ErrorKind.REJECTED

    def __init__(self, message: str, payload: Any = None, original_error: Optional[Exception] = None):
        super().__init__(message, status_code=None, payload=payload, original_error=original_error)


class ApiNetworkError(ApiError):
    """Raised when the request never produced a response."""

    kind = ErrorKind.NETWORK

    def __init__(self, message: str = "Network error. Please try again.", original_error: Optional[Exception] = None):
        super().__init__(message, status_code=None, original_error=original_error)


class CredentialVerificationError(DashboardError):
    """Raised when admin re-authentication fails before a destructive call."""

    kind = ErrorKind.CREDENTIALS

    def __init__(self, message: str = "Invalid admin credentials"):
        super().__init__(message)


class InvalidTransitionError(DashboardError):
    """Raised when an action is not legal from the entity's current status."""

    kind = ErrorKind.INVALID_TRANSITION

    def __init__(self, message: str, from_status: Optional[str] = None, event: Optional[str] = None):
        super().__init__(message)
        self.from_status = from_status
        self.event = event


def form_error_from_validation(exc: ValidationError) -> FormValidationError:
    """Turn the first pydantic error into an inline form error."""
    errors = exc.errors()
    if not errors:
        return FormValidationError("Invalid input")
    first = errors[0]
    message = str(first.get("msg", "Invalid input"))
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    loc = first.get("loc") or ()
    field = str(loc[0]) if loc else None
    return FormValidationError(message, field=field)


def validate_form(model: type[ModelT], data: Any) -> ModelT:
    """
    Validate form input against a request schema.

    Raises:
        FormValidationError: the input does not satisfy the schema
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise form_error_from_validation(e) from e

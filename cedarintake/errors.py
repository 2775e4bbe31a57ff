"""Structured error types for Cedar Intake.

Field-level validation failures are described by FieldError. Request-level
failures are IntakeError exceptions; each carries the HTTP status code it
maps to and serializes to the single error body shape the API exposes:
``{"message": str}``.

Taxonomy:
- ValidationFailed: schema violations, message surfaced verbatim (400)
- VerificationFailed: bot-token missing, invalid or low-score (400)
- InvalidIdentifier: malformed record id in the URL (400)
- RecordNotFound: unknown record id (404)
- SlotUnavailable: booking for a slot already taken that day (409)
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from cedarintake.types import ErrorType, FieldErrorCode


@dataclass(frozen=True)
class FieldError:
    """One violated rule on one field.

    ``path`` is dotted for nested values (``"modernizationGoals.0"``).
    ``expected`` and ``received`` carry the rule value and the offending
    input when they help a client render the error.

    Examples:
        >>> FieldError("email", FieldErrorCode.INVALID_FORMAT, "Invalid email address").to_dict()
        {'path': 'email', 'code': 'invalid_format', 'message': 'Invalid email address'}
    """
    path: str
    code: FieldErrorCode
    message: str
    expected: Optional[Any] = None
    received: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"path": self.path, "code": FieldErrorCode(self.code).value, "message": self.message}
        for key in ("expected", "received"):
            value = getattr(self, key)
            if value is not None:
                body[key] = value
        return body


class IntakeError(Exception):
    """Base class for errors that fail a request.

    Attributes:
        message: Human-readable message returned to the caller
        status_code: HTTP status code for the response
        error_type: Category of the error
    """

    status_code = 500
    error_type = ErrorType.INTERNAL

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the HTTP error body."""
        return {"message": self.message}


class ValidationFailed(IntakeError):
    """Raised when a payload violates its entity schema.

    The message is the aggregated summary of every field error, suitable
    for showing to the user as-is.
    """

    status_code = 400
    error_type = ErrorType.VALIDATION

    def __init__(self, message: str, fields: Optional[List[FieldError]] = None):
        super().__init__(message)
        self.fields = list(fields or [])


class VerificationFailed(IntakeError):
    """Raised when bot-token verification rejects a submission."""

    status_code = 400
    error_type = ErrorType.SECURITY

    def __init__(self, message: str = "Security verification failed", score: Optional[float] = None):
        super().__init__(message)
        self.score = score


class InvalidIdentifier(IntakeError):
    """Raised when a record id in the URL is not an integer."""

    status_code = 400
    error_type = ErrorType.VALIDATION

    def __init__(self, message: str = "Invalid ID format"):
        super().__init__(message)


class RecordNotFound(IntakeError):
    """Raised when a record id does not exist in its table."""

    status_code = 404
    error_type = ErrorType.NOT_FOUND


class SlotUnavailable(IntakeError):
    """Raised when a booking targets a slot that is already taken that day."""

    status_code = 409
    error_type = ErrorType.VALIDATION

    def __init__(self, message: str = "The selected time slot is no longer available"):
        super().__init__(message)


__all__ = [
    "FieldError",
    "IntakeError",
    "ValidationFailed",
    "VerificationFailed",
    "InvalidIdentifier",
    "RecordNotFound",
    "SlotUnavailable",
]

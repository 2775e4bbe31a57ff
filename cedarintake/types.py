"""Core type definitions for Cedar Intake.

This module defines the enumerations shared by the submission pipeline,
the validation layer and the form wizard:
- FormKind: The lead-generation forms the backend accepts
- ErrorType: Error categories surfaced to HTTP callers
- FieldErrorCode: Validation error codes for individual fields
- DeliveryStatus: Outcome of a best-effort side effect (task, email)
- EventType: Audit event types for the event stream
- WizardState: Lifecycle states of a multi-step form wizard
"""

from enum import Enum


class FormKind(str, Enum):
    """Lead-generation forms handled by the backend.

    Each kind maps to one storage table and one entity schema.
    """
    ASSESSMENT = "assessment"
    ASSESSMENT_SUBMISSION = "assessment_submission"
    INTAKE = "intake"
    GENERAL_CONTACT = "general_contact"
    CONTACT = "contact"
    NEWSLETTER = "newsletter"
    BOOKING = "booking"


class ErrorType(str, Enum):
    """Error categories for IntakeError responses.

    Validation and security errors are raised before anything is persisted.
    External-collaborator failures never become errors; they are reported
    as degraded deliveries instead.
    """
    VALIDATION = "validation"
    SECURITY = "security"
    NOT_FOUND = "not_found"
    INTERNAL = "internal"


class FieldErrorCode(str, Enum):
    """Validation error codes for individual field failures."""
    REQUIRED = "required"
    INVALID_TYPE = "invalid_type"
    INVALID_FORMAT = "invalid_format"
    INVALID_VALUE = "invalid_value"
    TOO_LONG = "too_long"
    TOO_SHORT = "too_short"
    CUSTOM = "custom"


class DeliveryStatus(str, Enum):
    """Outcome of a best-effort delivery.

    OK: the collaborator accepted the delivery.
    DEGRADED: the collaborator was called and failed; the record is safe.
    SKIPPED: the delivery did not apply (not configured, no address).
    """
    OK = "ok"
    DEGRADED = "degraded"
    SKIPPED = "skipped"


class EventType(str, Enum):
    """Audit event types for the event stream.

    Every pipeline step and every wizard transition emits a typed event.
    """
    SUBMISSION_RECEIVED = "submission.received"
    VERIFICATION_PASSED = "verification.passed"
    VERIFICATION_FAILED = "verification.failed"
    VALIDATION_FAILED = "validation.failed"
    RECORD_PERSISTED = "record.persisted"
    NOTIFICATION_SENT = "notification.sent"
    NOTIFICATION_DEGRADED = "notification.degraded"
    NOTIFICATION_SKIPPED = "notification.skipped"
    EMAIL_SENT = "email.sent"
    EMAIL_DEGRADED = "email.degraded"
    EMAIL_SKIPPED = "email.skipped"
    WIZARD_STEP_ADVANCED = "wizard.step_advanced"
    WIZARD_STEP_REJECTED = "wizard.step_rejected"
    WIZARD_SUBMITTED = "wizard.submitted"
    WIZARD_SUBMIT_FAILED = "wizard.submit_failed"


class WizardState(str, Enum):
    """Form wizard lifecycle states.

    Terminal state: completed.
    """
    IN_PROGRESS = "in_progress"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    FAILED = "failed"


__all__ = [
    "FormKind",
    "ErrorType",
    "FieldErrorCode",
    "DeliveryStatus",
    "EventType",
    "WizardState",
]

"""Submission pipeline for public lead forms.

The pipeline coordinates bot verification, schema validation, storage, the
task notifier and the confirmation mailer. It implements the common flow
every lead endpoint shares:

1. verify the bot token when the form is protected
2. strip the token, drop undeclared keys and validate
3. persist the record
4. notify the task system (best-effort)
5. send the confirmation email (best-effort)

Steps 1-3 fail fast with an IntakeError and nothing is persisted. Steps 4
and 5 never raise; their result is reported as a DeliveryOutcome.

Usage:
    >>> from cedarintake.storage import MemStorage
    >>> from cedarintake.schemas import CONTACT_SCHEMA
    >>> storage = MemStorage()
    >>> pipeline = SubmissionPipeline(storage)
    >>> route = FormRoute(kind=FormKind.CONTACT, schema=CONTACT_SCHEMA, create=storage.create_contact)
    >>> outcome = pipeline.submit(route, {"name": "Ada", "email": "ada@example.com"})
    >>> outcome.record["id"]
    1
"""

import datetime
import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from cedarintake.errors import ValidationFailed, VerificationFailed
from cedarintake.events import EventEmitter, PipelineEvent
from cedarintake.mailer import ConfirmationMailer, MailDeliveryError
from cedarintake.storage import Record
from cedarintake.tasks import ClickUpClient, TaskDeliveryError, format_task
from cedarintake.types import DeliveryStatus, EventType, FormKind
from cedarintake.validation import ValidationEngine
from cedarintake.verification import RecaptchaVerifier, VerificationResult

logger = logging.getLogger(__name__)

TOKEN_FIELD = "recaptchaToken"


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of a best-effort delivery step.

    Attributes:
        status: ok, degraded (attempted and failed) or skipped (not attempted)
        reason: Why the step degraded or was skipped

    Examples:
        >>> DeliveryOutcome.degraded("timeout").to_dict()
        {'status': 'degraded', 'reason': 'timeout'}
    """
    status: DeliveryStatus
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "DeliveryOutcome":
        return cls(DeliveryStatus.OK)

    @classmethod
    def degraded(cls, reason: str) -> "DeliveryOutcome":
        return cls(DeliveryStatus.DEGRADED, reason)

    @classmethod
    def skipped(cls, reason: str) -> "DeliveryOutcome":
        return cls(DeliveryStatus.SKIPPED, reason)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {"status": self.status.value}
        if self.reason is not None:
            result["reason"] = self.reason
        return result


@dataclass(frozen=True)
class FormRoute:
    """Describes which pipeline steps apply to one form endpoint.

    Attributes:
        kind: Entity the form persists
        schema: JSON Schema the payload is validated against
        create: Storage callable that persists validated data
        action: Bot-verification action; None disables verification
        notify: Create a task for each record
        email: Send a confirmation email to the submitter
        tags: Tags attached to created tasks
        message: Success message returned to the caller
    """
    kind: FormKind
    schema: Dict[str, Any]
    create: Callable[[Dict[str, Any]], Record]
    action: Optional[str] = None
    notify: bool = False
    email: bool = False
    tags: Sequence[str] = ()
    message: str = "Submission received"


@dataclass(frozen=True)
class SubmissionOutcome:
    """What happened to an accepted submission."""
    record: Record
    notification: DeliveryOutcome
    email: DeliveryOutcome
    verification: Optional[VerificationResult] = None

    def to_dict(self, message: str) -> Dict[str, Any]:
        """Build the 201 response body."""
        return {
            "success": True,
            "id": self.record["id"],
            "message": message,
            "data": self.record,
            "delivery": {
                "notification": self.notification.to_dict(),
                "email": self.email.to_dict(),
            },
        }


class SubmissionPipeline:
    """Runs lead-form submissions through verification, storage and delivery.

    Collaborators are injected so each can be replaced in tests. The task
    client and mailer are optional; missing or unconfigured collaborators
    turn their step into a skipped delivery.
    """

    def __init__(
        self,
        storage: Any,
        verifier: Optional[RecaptchaVerifier] = None,
        task_client: Optional[ClickUpClient] = None,
        mailer: Optional[ConfirmationMailer] = None,
        emitter: Optional[EventEmitter] = None,
    ) -> None:
        self.storage = storage
        self.verifier = verifier or RecaptchaVerifier()
        self.task_client = task_client
        self.mailer = mailer
        self.emitter = emitter or EventEmitter()
        self._engines: Dict[FormKind, ValidationEngine] = {}

    def _engine(self, route: FormRoute) -> ValidationEngine:
        engine = self._engines.get(route.kind)
        if engine is None or engine.schema is not route.schema:
            engine = ValidationEngine(route.schema)
            self._engines[route.kind] = engine
        return engine

    def _emit(
        self,
        event_type: EventType,
        route: FormRoute,
        record_id: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.emitter.emit(PipelineEvent(
            event_id=f"evt_{uuid.uuid4().hex[:16]}",
            type=event_type,
            form=route.kind.value,
            ts=datetime.datetime.now(datetime.timezone.utc),
            record_id=record_id,
            payload=payload,
        ))

    def submit(self, route: FormRoute, payload: Any) -> SubmissionOutcome:
        """Run a payload through the pipeline.

        Args:
            route: The form endpoint's pipeline configuration
            payload: Decoded JSON request body

        Returns:
            SubmissionOutcome with the persisted record and delivery outcomes

        Raises:
            VerificationFailed: If the bot token is rejected
            ValidationFailed: If the payload is not an object or violates the schema
        """
        if not isinstance(payload, Mapping):
            self._emit(EventType.VALIDATION_FAILED, route, payload={"reason": "body is not an object"})
            raise ValidationFailed("Validation error: Request body must be a JSON object")

        data = dict(payload)
        self._emit(EventType.SUBMISSION_RECEIVED, route, payload={"fields": sorted(data)})

        verification = None
        token = data.pop(TOKEN_FIELD, None)
        if route.action is not None:
            verification = self.verifier.verify(token, route.action)
            if not verification.success:
                self._emit(EventType.VERIFICATION_FAILED, route, payload=verification.to_dict())
                raise VerificationFailed(verification.error or "Security verification failed", verification.score)
            self._emit(EventType.VERIFICATION_PASSED, route, payload=verification.to_dict())

        engine = self._engine(route)
        data = engine.clean(data)
        result = engine.validate(data)
        if not result.is_valid:
            self._emit(EventType.VALIDATION_FAILED, route, payload={"errors": result.first_errors()})
            raise ValidationFailed(result.summary(), result.errors)

        record = route.create(data)
        logger.info("Persisted %s #%s", route.kind.value, record["id"])
        self._emit(EventType.RECORD_PERSISTED, route, record_id=record["id"])

        reduced_trust = bool(verification and verification.reduced_trust)
        notification = self._notify(route, record, reduced_trust)
        email = self._send_email(route, record)
        return SubmissionOutcome(
            record=record,
            notification=notification,
            email=email,
            verification=verification,
        )

    def _notify(self, route: FormRoute, record: Record, reduced_trust: bool) -> DeliveryOutcome:
        if not route.notify:
            return DeliveryOutcome.skipped("notifications disabled for this form")
        if self.task_client is None or not self.task_client.configured:
            outcome = DeliveryOutcome.skipped("task system not configured")
            self._emit(EventType.NOTIFICATION_SKIPPED, route, record["id"], outcome.to_dict())
            return outcome

        try:
            name, markdown = format_task(route.kind.value, record, reduced_trust=reduced_trust)
            self.task_client.create_task(name, markdown, route.tags)
        except Exception as e:
            # Full record in the log so the lead can be re-entered by hand.
            log = logger.error if isinstance(e, TaskDeliveryError) else logger.exception
            log(
                "Task creation failed for %s #%s: %s; payload=%s",
                route.kind.value, record["id"], e, json.dumps(record, default=str),
            )
            outcome = DeliveryOutcome.degraded(str(e) or type(e).__name__)
            self._emit(EventType.NOTIFICATION_DEGRADED, route, record["id"], outcome.to_dict())
            return outcome

        self._emit(EventType.NOTIFICATION_SENT, route, record["id"])
        return DeliveryOutcome.ok()

    def _send_email(self, route: FormRoute, record: Record) -> DeliveryOutcome:
        if not route.email:
            return DeliveryOutcome.skipped("confirmation email disabled for this form")
        to_email = record.get("email")
        if not to_email:
            outcome = DeliveryOutcome.skipped("no email address on record")
        elif self.mailer is None or not self.mailer.configured:
            outcome = DeliveryOutcome.skipped("mail not configured")
        else:
            outcome = None
        if outcome is not None:
            self._emit(EventType.EMAIL_SKIPPED, route, record["id"], outcome.to_dict())
            return outcome

        try:
            self.mailer.send(to_email, self.mailer.render(route.kind.value, record))
        except Exception as e:
            log = logger.error if isinstance(e, MailDeliveryError) else logger.exception
            log("Confirmation email failed for %s #%s: %s", route.kind.value, record["id"], e)
            outcome = DeliveryOutcome.degraded(str(e) or type(e).__name__)
            self._emit(EventType.EMAIL_DEGRADED, route, record["id"], outcome.to_dict())
            return outcome

        self._emit(EventType.EMAIL_SENT, route, record["id"])
        return DeliveryOutcome.ok()


__all__ = [
    "DeliveryOutcome",
    "FormRoute",
    "SubmissionOutcome",
    "SubmissionPipeline",
    "TOKEN_FIELD",
]

"""Unit tests for the submission pipeline.

Tests cover:
- The happy path: verify, validate, persist, notify, email
- Fail-fast steps: verification and validation errors persist nothing
- Best-effort steps: notifier and mailer failures degrade, never raise
- Event emission order
"""

import logging
from unittest.mock import MagicMock

import pytest

from cedarintake.errors import SlotUnavailable, ValidationFailed, VerificationFailed
from cedarintake.events import EventEmitter
from cedarintake.mailer import ConfirmationMailer, MailDeliveryError
from cedarintake.pipeline import DeliveryOutcome, FormRoute, SubmissionPipeline
from cedarintake.schemas import BOOKING_SCHEMA, GENERAL_CONTACT_SCHEMA, NEWSLETTER_SCHEMA
from cedarintake.storage import MemStorage
from cedarintake.tasks import ClickUpClient, TaskDeliveryError
from cedarintake.types import DeliveryStatus, EventType, FormKind
from cedarintake.verification import SCRIPT_LOAD_FAILED, RecaptchaVerifier, VerificationResult


CONTACT_PAYLOAD = {
    "businessName": "Acme",
    "firstName": "Ada",
    "lastName": "Lovelace",
    "email": "ada@example.com",
    "message": "We need help with our ERP.",
}


@pytest.fixture
def storage():
    return MemStorage()


@pytest.fixture
def verifier():
    verifier = MagicMock(spec=RecaptchaVerifier)
    verifier.verify.return_value = VerificationResult(success=True, score=0.9)
    return verifier


@pytest.fixture
def task_client():
    client = MagicMock(spec=ClickUpClient)
    client.configured = True
    return client


@pytest.fixture
def mailer():
    mailer = MagicMock(spec=ConfirmationMailer)
    mailer.configured = True
    return mailer


@pytest.fixture
def events():
    return []


@pytest.fixture
def pipeline(storage, verifier, task_client, mailer, events):
    emitter = EventEmitter()
    emitter.on_any(events.append)
    return SubmissionPipeline(storage, verifier, task_client, mailer, emitter)


@pytest.fixture
def route(storage):
    return FormRoute(
        kind=FormKind.GENERAL_CONTACT,
        schema=GENERAL_CONTACT_SCHEMA,
        create=storage.create_general_contact,
        action="contact_form",
        notify=True,
        email=True,
        tags=("website",),
    )


class TestHappyPath:
    """Test a fully successful submission."""

    def test_record_persisted_without_token(self, pipeline, route, storage, verifier):
        """Should store the input fields minus the token."""
        outcome = pipeline.submit(route, {**CONTACT_PAYLOAD, "recaptchaToken": "tok"})

        stored = storage.get_general_contact(outcome.record["id"])
        assert "recaptchaToken" not in stored
        assert {k: stored[k] for k in CONTACT_PAYLOAD} == CONTACT_PAYLOAD
        verifier.verify.assert_called_once_with("tok", "contact_form")

    def test_deliveries_ok(self, pipeline, route, task_client, mailer):
        """Should create a task and send a confirmation email."""
        outcome = pipeline.submit(route, {**CONTACT_PAYLOAD, "recaptchaToken": "tok"})

        assert outcome.notification.status == DeliveryStatus.OK
        assert outcome.email.status == DeliveryStatus.OK
        name, markdown, tags = task_client.create_task.call_args[0]
        assert name == "Website Inquiry: Acme"
        assert tags == ("website",)
        mailer.render.assert_called_once_with("general_contact", outcome.record)
        assert mailer.send.call_args[0][0] == "ada@example.com"

    def test_undeclared_keys_dropped(self, pipeline, route):
        """Should not persist keys the schema does not declare."""
        outcome = pipeline.submit(route, {**CONTACT_PAYLOAD, "recaptchaToken": "tok", "isAdmin": True})

        assert "isAdmin" not in outcome.record

    def test_response_body(self, pipeline, route):
        """Should build the 201 body with delivery outcomes."""
        outcome = pipeline.submit(route, {**CONTACT_PAYLOAD, "recaptchaToken": "tok"})
        body = outcome.to_dict("Message sent successfully")

        assert body["success"] is True
        assert body["id"] == outcome.record["id"]
        assert body["message"] == "Message sent successfully"
        assert body["delivery"] == {"notification": {"status": "ok"}, "email": {"status": "ok"}}

    def test_events_in_order(self, pipeline, route, events):
        """Should emit one event per step in pipeline order."""
        pipeline.submit(route, {**CONTACT_PAYLOAD, "recaptchaToken": "tok"})

        assert [e.type for e in events] == [
            EventType.SUBMISSION_RECEIVED,
            EventType.VERIFICATION_PASSED,
            EventType.RECORD_PERSISTED,
            EventType.NOTIFICATION_SENT,
            EventType.EMAIL_SENT,
        ]
        assert all(e.form == "general_contact" for e in events)

    def test_reduced_trust_reaches_task(self, pipeline, route, verifier, task_client):
        """Should flag the task when a sentinel token was accepted."""
        verifier.verify.return_value = VerificationResult(success=True, score=0.3, reduced_trust=True)

        pipeline.submit(route, {**CONTACT_PAYLOAD, "recaptchaToken": SCRIPT_LOAD_FAILED})

        _, markdown, _ = task_client.create_task.call_args[0]
        assert "reduced trust" in markdown


class TestFailFast:
    """Test steps that reject the submission."""

    def test_verification_failure_persists_nothing(self, pipeline, route, storage, verifier, task_client):
        """Should raise VerificationFailed before storing anything."""
        verifier.verify.return_value = VerificationResult(
            success=False, score=0.1, error="Security verification failed. Please try again.")

        with pytest.raises(VerificationFailed) as exc_info:
            pipeline.submit(route, {**CONTACT_PAYLOAD, "recaptchaToken": "tok"})

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Security verification failed. Please try again."
        assert len(storage.general_contacts) == 0
        task_client.create_task.assert_not_called()

    def test_missing_required_field_persists_nothing(self, pipeline, route, storage):
        """Should raise ValidationFailed with the aggregated message."""
        payload = {k: v for k, v in CONTACT_PAYLOAD.items() if k != "message"}

        with pytest.raises(ValidationFailed) as exc_info:
            pipeline.submit(route, {**payload, "recaptchaToken": "tok"})

        assert exc_info.value.message == 'Validation error: Message is required at "message"'
        assert [f.path for f in exc_info.value.fields] == ["message"]
        assert len(storage.general_contacts) == 0

    def test_verification_runs_before_validation(self, pipeline, route, verifier):
        """Should report the bot check failure even for an invalid payload."""
        verifier.verify.return_value = VerificationResult(success=False, error="Security verification required")

        with pytest.raises(VerificationFailed):
            pipeline.submit(route, {})

    def test_non_object_body(self, pipeline, route, storage):
        """Should reject a body that is not a JSON object."""
        with pytest.raises(ValidationFailed, match="JSON object"):
            pipeline.submit(route, ["not", "an", "object"])

    def test_storage_errors_propagate(self, storage, pipeline):
        """Should surface storage conflicts to the caller."""
        booking = FormRoute(kind=FormKind.BOOKING, schema=BOOKING_SCHEMA, create=storage.create_booking)
        payload = {
            "name": "Ada",
            "email": "ada@example.com",
            "phone": "555-0100",
            "company": "Acme",
            "date": "2026-11-02",
            "time": "09:00",
        }
        pipeline.submit(booking, payload)

        with pytest.raises(SlotUnavailable):
            pipeline.submit(booking, payload)


class TestBestEffortDelivery:
    """Test degraded and skipped deliveries."""

    def test_task_failure_degrades(self, pipeline, route, storage, task_client, events, caplog):
        """Should keep the record and log the full payload when ClickUp fails."""
        task_client.create_task.side_effect = TaskDeliveryError("ClickUp returned status 500")

        with caplog.at_level(logging.ERROR, logger="cedarintake.pipeline"):
            outcome = pipeline.submit(route, {**CONTACT_PAYLOAD, "recaptchaToken": "tok"})

        assert outcome.notification == DeliveryOutcome.degraded("ClickUp returned status 500")
        assert outcome.email.status == DeliveryStatus.OK
        assert len(storage.general_contacts) == 1
        assert "We need help with our ERP." in caplog.text
        assert EventType.NOTIFICATION_DEGRADED in [e.type for e in events]

    def test_mail_failure_degrades(self, pipeline, route, mailer):
        """Should report a degraded email when SendGrid fails."""
        mailer.send.side_effect = MailDeliveryError("SendGrid returned status code 401")

        outcome = pipeline.submit(route, {**CONTACT_PAYLOAD, "recaptchaToken": "tok"})

        assert outcome.email.status == DeliveryStatus.DEGRADED
        assert outcome.notification.status == DeliveryStatus.OK

    def test_unexpected_task_error_degrades(self, pipeline, route, storage, task_client, caplog):
        """Should keep the record and log the payload for any notifier error."""
        task_client.create_task.side_effect = KeyError("name")

        with caplog.at_level(logging.ERROR, logger="cedarintake.pipeline"):
            outcome = pipeline.submit(route, {**CONTACT_PAYLOAD, "recaptchaToken": "tok"})

        assert outcome.notification.status == DeliveryStatus.DEGRADED
        assert outcome.email.status == DeliveryStatus.OK
        assert len(storage.general_contacts) == 1
        assert "We need help with our ERP." in caplog.text

    def test_render_error_degrades(self, pipeline, route, storage, mailer):
        """Should report a degraded email when rendering raises."""
        mailer.render.side_effect = ValueError("bad template")

        outcome = pipeline.submit(route, {**CONTACT_PAYLOAD, "recaptchaToken": "tok"})

        assert outcome.email == DeliveryOutcome.degraded("bad template")
        assert len(storage.general_contacts) == 1
        mailer.send.assert_not_called()

    def test_unconfigured_integrations_skip(self, storage, route):
        """Should skip deliveries whose integrations are not configured."""
        pipeline = SubmissionPipeline(
            storage,
            RecaptchaVerifier(secret_key=""),
            ClickUpClient(),
            ConfirmationMailer(),
        )

        outcome = pipeline.submit(route, dict(CONTACT_PAYLOAD))

        assert outcome.notification == DeliveryOutcome.skipped("task system not configured")
        assert outcome.email == DeliveryOutcome.skipped("mail not configured")

    def test_routes_without_delivery(self, pipeline, storage, verifier, task_client, mailer):
        """Should neither verify nor deliver for persistence-only routes."""
        route = FormRoute(kind=FormKind.NEWSLETTER, schema=NEWSLETTER_SCHEMA, create=storage.create_newsletter)

        outcome = pipeline.submit(route, {"email": "ada@example.com"})

        assert outcome.record["email"] == "ada@example.com"
        assert outcome.notification.status == DeliveryStatus.SKIPPED
        assert outcome.email.status == DeliveryStatus.SKIPPED
        verifier.verify.assert_not_called()
        task_client.create_task.assert_not_called()
        mailer.send.assert_not_called()

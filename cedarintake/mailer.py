"""Confirmation emails sent to people who submit a form.

Emails are rendered from per-form ``string.Template`` templates and sent
through SendGrid. Every substituted value is HTML-escaped in the HTML body.
Sending is best-effort; the pipeline records a failure as a degraded
delivery and the submission still succeeds.
"""

import html
import logging
from dataclasses import dataclass
from string import Template
from typing import Any, Dict, Mapping, Optional

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Content, Email, Mail, Personalization

from cedarintake import schemas
from cedarintake.slots import TIME_SLOTS
from cedarintake.types import FormKind

logger = logging.getLogger(__name__)

DEFAULT_FROM_NAME = "Cedar Intake"


class MailDeliveryError(Exception):
    """Raised when SendGrid rejects or cannot accept a message."""


@dataclass(frozen=True)
class RenderedEmail:
    """A rendered confirmation email.

    Attributes:
        subject: Subject line
        html: HTML body
        text: Plain-text alternative body
    """
    subject: str
    html: str
    text: str


@dataclass(frozen=True)
class _EmailTemplate:
    subject: Template
    heading: Template
    body: Template


_TEMPLATES: Dict[str, _EmailTemplate] = {
    FormKind.ASSESSMENT_SUBMISSION.value: _EmailTemplate(
        subject=Template("Your AI readiness assessment for $company"),
        heading=Template("Thank you, $name"),
        body=Template(
            "We received your AI readiness assessment for $company. "
            "Our team will review your answers and follow up within two business days "
            "with a tailored set of recommendations."
        ),
    ),
    FormKind.INTAKE.value: _EmailTemplate(
        subject=Template("Your AI acceleration plan request"),
        heading=Template("Thank you, $name"),
        body=Template(
            "We received your request for $company. Project urgency: $projectUrgency. "
            "A consultant will reach out shortly to schedule a discovery call."
        ),
    ),
    FormKind.GENERAL_CONTACT.value: _EmailTemplate(
        subject=Template("We received your message"),
        heading=Template("Hi $firstName"),
        body=Template(
            "Thanks for contacting us on behalf of $businessName. "
            "We read every message and will reply to $email soon."
        ),
    ),
    FormKind.BOOKING.value: _EmailTemplate(
        subject=Template("Consultation confirmed for $date at $formattedTime"),
        heading=Template("See you soon, $name"),
        body=Template(
            "Your consultation is confirmed for $date at $formattedTime. "
            "If you need to reschedule, reply to this email."
        ),
    ),
}

_DEFAULT_TEMPLATE = _EmailTemplate(
    subject=Template("Thanks for getting in touch"),
    heading=Template("Thank you"),
    body=Template("We received your submission and will be in touch soon."),
)

_HTML_LAYOUT = Template(
    "<html><body style=\"font-family: Arial, sans-serif; color: #1f2933;\">"
    "<h2>$heading</h2><p>$body</p>"
    "<p style=\"font-size: 12px; color: #6b7280;\">Reference #$id</p>"
    "</body></html>"
)


def _context(kind: str, record: Mapping[str, Any]) -> Dict[str, str]:
    """Flatten a record into display strings, mapping option ids to labels."""
    context = {key: "" if value is None else str(value) for key, value in record.items()}
    if kind == FormKind.INTAKE.value:
        context["projectUrgency"] = schemas.option_label(
            schemas.PROJECT_URGENCY, record.get("projectUrgency")
        )
    if kind == FormKind.BOOKING.value:
        context["date"] = str(record.get("date", ""))[:10]
        labels = {slot.time: slot.label for slot in TIME_SLOTS}
        context["formattedTime"] = labels.get(record.get("time"), str(record.get("time", "")))
    context.setdefault("name", "")
    context.setdefault("id", "")
    return context


class ConfirmationMailer:
    """Renders and sends confirmation emails through SendGrid.

    Attributes:
        from_email: Sender address; mail is skipped when empty
        from_name: Sender display name
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
        client: Optional[SendGridAPIClient] = None,
    ) -> None:
        self.api_key = api_key or ""
        self.from_email = from_email or ""
        self.from_name = from_name or DEFAULT_FROM_NAME
        self._client = client
        if self._client is None and self.api_key:
            self._client = SendGridAPIClient(api_key=self.api_key)

    @property
    def configured(self) -> bool:
        return bool(self._client is not None and self.from_email)

    def render(self, kind: str, record: Mapping[str, Any]) -> RenderedEmail:
        """Render the confirmation email for a persisted record.

        Examples:
            >>> mailer = ConfirmationMailer()
            >>> mailer.render("general_contact", {"id": 3, "firstName": "Ada",
            ...     "businessName": "<Acme>", "email": "ada@example.com"}).subject
            'We received your message'
        """
        kind = FormKind(kind).value
        template = _TEMPLATES.get(kind, _DEFAULT_TEMPLATE)
        context = _context(kind, record)
        escaped = {key: html.escape(value) for key, value in context.items()}

        subject = template.subject.safe_substitute(context)
        heading = template.heading.safe_substitute(context)
        body = template.body.safe_substitute(context)
        html_body = _HTML_LAYOUT.substitute(
            heading=template.heading.safe_substitute(escaped),
            body=template.body.safe_substitute(escaped),
            id=escaped["id"],
        )
        text_body = f"{heading}\n\n{body}\n\nReference #{context['id']}\n"
        return RenderedEmail(subject=subject, html=html_body, text=text_body)

    def _build_mail(self, to_email: str, rendered: RenderedEmail) -> Mail:
        mail = Mail()
        mail.from_email = Email(self.from_email, self.from_name)
        personalization = Personalization()
        personalization.add_to(Email(to_email))
        mail.add_personalization(personalization)
        mail.subject = rendered.subject
        mail.add_content(Content("text/plain", rendered.text))
        mail.add_content(Content("text/html", rendered.html))
        return mail

    def send(self, to_email: str, rendered: RenderedEmail) -> int:
        """Send a rendered email.

        Returns:
            The SendGrid response status code

        Raises:
            MailDeliveryError: If the mailer is not configured, the client
                raises, or SendGrid answers with a non-2xx status
        """
        if not self.configured:
            raise MailDeliveryError("SendGrid is not configured")

        mail = self._build_mail(to_email, rendered)
        try:
            response = self._client.send(mail)
        except Exception as e:
            raise MailDeliveryError(f"SendGrid send failed: {e}") from e

        status_code = getattr(response, "status_code", 0)
        if not 200 <= status_code < 300:
            raise MailDeliveryError(f"SendGrid returned status code {status_code}")

        logger.info("Sent confirmation email %r (status=%s)", rendered.subject, status_code)
        return status_code


__all__ = [
    "ConfirmationMailer",
    "MailDeliveryError",
    "RenderedEmail",
]

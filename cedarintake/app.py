"""HTTP interface for Cedar Intake.

``create_app`` wires the store, verifier, notifier and mailer into a
FastAPI application. Every collaborator can be injected, which is how the
tests run the app against fakes; anything not injected is built from
Config.

Run with:
    cedarintake            # console script, uses HOST/PORT from the environment
    uvicorn cedarintake.app:create_app --factory
"""

import datetime
import logging
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cedarintake import __version__
from cedarintake.config import Config
from cedarintake.errors import IntakeError, InvalidIdentifier, RecordNotFound, ValidationFailed
from cedarintake.events import EventEmitter, log_event
from cedarintake.logging_utils import setup_logging
from cedarintake.mailer import ConfirmationMailer
from cedarintake.pipeline import FormRoute, SubmissionPipeline
from cedarintake.schemas import (
    ASSESSMENT_SCHEMA,
    ASSESSMENT_SUBMISSION_SCHEMA,
    ASSESSMENT_UPDATE_SCHEMA,
    BOOKING_SCHEMA,
    CONTACT_SCHEMA,
    GENERAL_CONTACT_SCHEMA,
    INTAKE_SCHEMA,
    NEWSLETTER_SCHEMA,
)
from cedarintake.slots import available_slots, parse_booking_date
from cedarintake.storage import MemStorage, Record
from cedarintake.tasks import ClickUpClient
from cedarintake.types import FormKind
from cedarintake.validation import ValidationEngine
from cedarintake.verification import RecaptchaVerifier

logger = logging.getLogger(__name__)

ASSESSMENT_ACTION = "assessment_form"
INTAKE_ACTION = "intake_form"
CONTACT_ACTION = "contact_form"


def _parse_id(raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise InvalidIdentifier() from None


def build_routes(storage: MemStorage) -> Dict[FormKind, FormRoute]:
    """Pipeline configuration for every form endpoint."""
    return {
        FormKind.ASSESSMENT: FormRoute(
            kind=FormKind.ASSESSMENT,
            schema=ASSESSMENT_SCHEMA,
            create=storage.create_assessment,
        ),
        FormKind.ASSESSMENT_SUBMISSION: FormRoute(
            kind=FormKind.ASSESSMENT_SUBMISSION,
            schema=ASSESSMENT_SUBMISSION_SCHEMA,
            create=storage.create_assessment_submission,
            action=ASSESSMENT_ACTION,
            notify=True,
            email=True,
            tags=("website", "ai-assessment"),
            message="Assessment submitted successfully",
        ),
        FormKind.INTAKE: FormRoute(
            kind=FormKind.INTAKE,
            schema=INTAKE_SCHEMA,
            create=storage.create_intake,
            action=INTAKE_ACTION,
            notify=True,
            email=True,
            tags=("website", "intake"),
            message="Intake submitted successfully",
        ),
        FormKind.GENERAL_CONTACT: FormRoute(
            kind=FormKind.GENERAL_CONTACT,
            schema=GENERAL_CONTACT_SCHEMA,
            create=storage.create_general_contact,
            action=CONTACT_ACTION,
            notify=True,
            email=True,
            tags=("website", "contact"),
            message="Message sent successfully",
        ),
        FormKind.CONTACT: FormRoute(
            kind=FormKind.CONTACT,
            schema=CONTACT_SCHEMA,
            create=storage.create_contact,
        ),
        FormKind.NEWSLETTER: FormRoute(
            kind=FormKind.NEWSLETTER,
            schema=NEWSLETTER_SCHEMA,
            create=storage.create_newsletter,
        ),
        FormKind.BOOKING: FormRoute(
            kind=FormKind.BOOKING,
            schema=BOOKING_SCHEMA,
            create=storage.create_booking,
            email=True,
        ),
    }


def create_app(
    config: Optional[Config] = None,
    storage: Optional[MemStorage] = None,
    verifier: Optional[RecaptchaVerifier] = None,
    task_client: Optional[ClickUpClient] = None,
    mailer: Optional[ConfirmationMailer] = None,
    emitter: Optional[EventEmitter] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Settings; loaded from the environment when omitted
        storage: Record store; a fresh MemStorage when omitted
        verifier: Bot-token verifier
        task_client: ClickUp notifier
        mailer: Confirmation mailer
        emitter: Event emitter; events are logged through ``log_event``

    Returns:
        The configured application
    """
    config = config or Config()
    storage = storage if storage is not None else MemStorage()
    if verifier is None:
        verifier = RecaptchaVerifier(
            secret_key=config.RECAPTCHA_SECRET_KEY,
            minimum_score=config.RECAPTCHA_MIN_SCORE,
            timeout=config.HTTP_TIMEOUT_SECONDS,
        )
    if task_client is None:
        task_client = ClickUpClient(
            api_token=config.CLICKUP_API_TOKEN,
            list_id=config.CLICKUP_LIST_ID,
            timeout=config.HTTP_TIMEOUT_SECONDS,
        )
    if mailer is None:
        mailer = ConfirmationMailer(
            api_key=config.SENDGRID_API_KEY,
            from_email=config.SENDGRID_FROM_EMAIL,
            from_name=config.SENDGRID_FROM_NAME,
        )
    if emitter is None:
        emitter = EventEmitter()
        emitter.on_any(log_event)

    pipeline = SubmissionPipeline(storage, verifier, task_client, mailer, emitter)
    routes = build_routes(storage)
    update_engine = ValidationEngine(ASSESSMENT_UPDATE_SCHEMA)

    app = FastAPI(
        title="Cedar Intake API",
        description="Lead capture backend: assessments, intakes, contact, newsletter and bookings.",
        version=__version__,
        debug=config.DEBUG,
    )
    app.state.config = config
    app.state.storage = storage
    app.state.pipeline = pipeline

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials="*" not in config.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(IntakeError)
    async def intake_error_handler(request: Request, exc: IntakeError) -> JSONResponse:
        log = logger.warning if exc.status_code < 500 else logger.error
        log("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("%s %s -> 400: malformed request", request.method, request.url.path)
        return JSONResponse(status_code=400, content={"message": "Validation error: Malformed request body"})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"message": "Internal server error"})

    # Landing-page assessment

    @app.post("/api/assessment", status_code=201)
    def create_assessment(payload: Any = Body(None)) -> Record:
        return pipeline.submit(routes[FormKind.ASSESSMENT], payload).record

    @app.get("/api/assessment/{assessment_id}")
    def get_assessment(assessment_id: str) -> Record:
        record = storage.get_assessment(_parse_id(assessment_id))
        if record is None:
            raise RecordNotFound("Assessment not found")
        return record

    @app.patch("/api/assessment/{assessment_id}")
    def update_assessment(assessment_id: str, payload: Any = Body(None)) -> Record:
        record_id = _parse_id(assessment_id)
        if storage.get_assessment(record_id) is None:
            raise RecordNotFound("Assessment not found")
        if not isinstance(payload, dict):
            raise ValidationFailed("Validation error: Request body must be a JSON object")
        result = update_engine.validate(payload)
        if not result.is_valid:
            raise ValidationFailed(result.summary(), result.errors)
        record = storage.update_assessment(record_id, payload)
        if record is None:
            raise RecordNotFound("Assessment not found")
        return record

    # Lead forms

    def submit_lead(kind: FormKind, payload: Any) -> Dict[str, Any]:
        route = routes[kind]
        return pipeline.submit(route, payload).to_dict(route.message)

    @app.post("/api/assessments", status_code=201)
    def create_assessment_submission(payload: Any = Body(None)) -> Dict[str, Any]:
        return submit_lead(FormKind.ASSESSMENT_SUBMISSION, payload)

    @app.post("/api/intake", status_code=201)
    def create_intake(payload: Any = Body(None)) -> Dict[str, Any]:
        return submit_lead(FormKind.INTAKE, payload)

    @app.post("/api/general-contact", status_code=201)
    def create_general_contact(payload: Any = Body(None)) -> Dict[str, Any]:
        return submit_lead(FormKind.GENERAL_CONTACT, payload)

    @app.post("/api/contact", status_code=201)
    def create_contact(payload: Any = Body(None)) -> Record:
        return pipeline.submit(routes[FormKind.CONTACT], payload).record

    @app.post("/api/newsletter", status_code=201)
    def create_newsletter(payload: Any = Body(None)) -> Record:
        return pipeline.submit(routes[FormKind.NEWSLETTER], payload).record

    # Bookings

    @app.post("/api/booking", status_code=201)
    def create_booking(payload: Any = Body(None)) -> Record:
        return pipeline.submit(routes[FormKind.BOOKING], payload).record

    @app.get("/api/booking/available-slots")
    def get_available_slots(date: Optional[str] = None) -> List[Dict[str, Any]]:
        if not date:
            raise ValidationFailed("Date parameter is required")
        try:
            day = parse_booking_date(date)
        except ValueError:
            raise ValidationFailed("Invalid date format") from None
        return available_slots(storage, day)

    # Service metadata

    @app.get("/api/config/recaptcha")
    def get_recaptcha_config() -> Dict[str, Any]:
        return {"siteKey": config.RECAPTCHA_SITE_KEY, "enabled": verifier.configured}

    @app.get("/api/health")
    def health() -> Dict[str, Any]:
        return {
            "status": "ok",
            "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "version": __version__,
            "integrations": {
                "recaptcha": verifier.configured,
                "clickup": task_client.configured,
                "sendgrid": mailer.configured,
            },
        }

    return app


def main() -> None:
    """Console entry point: configure logging and serve the app with uvicorn."""
    config = Config()
    setup_logging(config.LOG_LEVEL, config.LOG_FORMAT)
    config.log_summary()
    app = create_app(config)
    uvicorn.run(app, host=config.HOST, port=config.PORT, log_config=None)


if __name__ == "__main__":
    main()

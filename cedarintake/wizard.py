"""Multi-step form wizard for Cedar Intake.

A FormWizard walks a visitor through the ordered steps of a
WizardDefinition. Each step owns a subset of the fields and is validated
on its own before the wizard advances. The accumulating draft is saved to
a DraftStore after every change, so an interrupted visit can be resumed
at the furthest step the saved fields suggest.

Submission lifecycle:

    in_progress -> submitting -> completed
                            \\-> failed -> submitting (retry)
                                       -> in_progress (back)

Usage:
    >>> wizard = FormWizard(ASSESSMENT_SECTION_WIZARD, MemoryDraftStore(), submit=lambda data: data)
    >>> wizard.update_field("company", "Acme")
    >>> wizard.next()
    False
    >>> sorted(wizard.errors)
    ['industry', 'size']
"""

import datetime
import json
import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Set, Tuple, Union

from cedarintake import schemas
from cedarintake.events import EventEmitter, PipelineEvent
from cedarintake.types import EventType, WizardState
from cedarintake.validation import ValidationEngine

logger = logging.getLogger(__name__)

Draft = Dict[str, Any]


class InvalidWizardTransitionError(Exception):
    """Raised when a wizard operation is not allowed in its current state.

    Attributes:
        current_state: The state the wizard is in
        target_state: The state the operation would have moved to
    """

    def __init__(self, current_state: WizardState, target_state: WizardState, message: str):
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(message)


VALID_TRANSITIONS: Dict[WizardState, Set[WizardState]] = {
    WizardState.IN_PROGRESS: {WizardState.SUBMITTING},
    WizardState.SUBMITTING: {WizardState.COMPLETED, WizardState.FAILED},
    WizardState.FAILED: {WizardState.SUBMITTING, WizardState.IN_PROGRESS},
    WizardState.COMPLETED: set(),
}


@dataclass(frozen=True)
class WizardStep:
    """One page of a wizard.

    Attributes:
        number: 1-based position
        title: Heading shown above the step
        fields: Fields the step owns
        schema: JSON Schema the step's fields are validated against
        resume_any: Resume here when any of these fields is populated
        resume_all: Resume here when all of these fields are populated
    """
    number: int
    title: str
    fields: Tuple[str, ...]
    schema: Dict[str, Any]
    resume_any: Tuple[str, ...] = ()
    resume_all: Tuple[str, ...] = ()

    def resumes_from(self, draft: Mapping[str, Any]) -> bool:
        if self.resume_all and all(_populated(draft.get(f)) for f in self.resume_all):
            return True
        return bool(self.resume_any) and any(_populated(draft.get(f)) for f in self.resume_any)


@dataclass(frozen=True)
class WizardDefinition:
    """A complete wizard: its steps and how the final payload is built.

    Attributes:
        key: Draft storage key
        title: Human-readable wizard name
        steps: Ordered steps
        option_text_fields: Maps (field, option id) to the free-text field
            that describes that option; the text is cleared when the
            option is deselected
        defaults: Initial draft values
        finalize: Turns the draft into the submission payload
    """
    key: str
    title: str
    steps: Tuple[WizardStep, ...]
    option_text_fields: Dict[Tuple[str, str], str] = field(default_factory=dict)
    defaults: Dict[str, Any] = field(default_factory=dict)
    finalize: Optional[Callable[[Draft], Dict[str, Any]]] = None

    @property
    def field_names(self) -> Set[str]:
        names = set(self.defaults)
        names.update(self.option_text_fields.values())
        for step in self.steps:
            names.update(step.fields)
        return names

    def step(self, number: int) -> WizardStep:
        return self.steps[number - 1]


def _populated(value: Any) -> bool:
    return value is not None and value != "" and value != [] and value is not False


# Draft stores


class MemoryDraftStore:
    """Keeps drafts in a dict; useful for tests and server-side sessions."""

    def __init__(self) -> None:
        self._drafts: Dict[str, Draft] = {}

    def load(self, key: str) -> Optional[Draft]:
        draft = self._drafts.get(key)
        return dict(draft) if draft is not None else None

    def save(self, key: str, draft: Mapping[str, Any]) -> None:
        self._drafts[key] = dict(draft)

    def clear(self, key: str) -> None:
        self._drafts.pop(key, None)


class JsonFileDraftStore:
    """Keeps one JSON file per wizard key in a directory.

    Storage failures are logged, never raised.
    """

    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def load(self, key: str) -> Optional[Draft]:
        path = self._path(key)
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning("Could not read draft %s: %s", path, e)
            return None
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed draft %s", path)
            return None
        return data

    def save(self, key: str, draft: Mapping[str, Any]) -> None:
        path = self._path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as f:
                json.dump(dict(draft), f)
        except OSError as e:
            logger.warning("Could not save draft %s: %s", path, e)

    def clear(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove draft %s: %s", path, e)


# Wizard


class FormWizard:
    """Drives a visitor through a WizardDefinition.

    Attributes:
        definition: The wizard being filled in
        current: 1-based number of the step being shown
        progress: Furthest step reached
        draft: Field values entered so far
        errors: Field name to error message, for the last rejected step
        state: Submission lifecycle state
        result: Return value of the submit callable, once completed
        submit_error: Message of the last failed submission
    """

    def __init__(
        self,
        definition: WizardDefinition,
        store: Any,
        submit: Callable[[Dict[str, Any]], Any],
        emitter: Optional[EventEmitter] = None,
    ) -> None:
        self.definition = definition
        self.store = store
        self.submit = submit
        self.emitter = emitter or EventEmitter()
        self.current = 1
        self.progress = 1
        self.draft: Draft = json.loads(json.dumps(definition.defaults))
        self.errors: Dict[str, str] = {}
        self.state = WizardState.IN_PROGRESS
        self.result: Any = None
        self.submit_error: Optional[str] = None
        self._engines = {step.number: ValidationEngine(step.schema) for step in definition.steps}

    @property
    def total_steps(self) -> int:
        return len(self.definition.steps)

    @property
    def step(self) -> WizardStep:
        return self.definition.step(self.current)

    @property
    def is_last_step(self) -> bool:
        return self.current == self.total_steps

    def _transition(self, target: WizardState) -> None:
        if target not in VALID_TRANSITIONS[self.state]:
            raise InvalidWizardTransitionError(
                self.state, target,
                f"Cannot move wizard from {self.state.value} to {target.value}",
            )
        self.state = target

    def _require_editable(self) -> None:
        if self.state in (WizardState.SUBMITTING, WizardState.COMPLETED):
            raise InvalidWizardTransitionError(
                self.state, self.state,
                f"Wizard is {self.state.value}; the draft can no longer change",
            )

    def _emit(self, event_type: EventType, payload: Optional[Dict[str, Any]] = None) -> None:
        self.emitter.emit(PipelineEvent(
            event_id=f"evt_{uuid.uuid4().hex[:16]}",
            type=event_type,
            form=self.definition.key,
            ts=datetime.datetime.now(datetime.timezone.utc),
            payload=payload,
        ))

    def _persist(self) -> None:
        self.store.save(self.definition.key, self.draft)

    def update_field(self, name: str, value: Any) -> None:
        """Set a field, clear its error and save the draft.

        Moving a single-select away from an option that owns a free-text
        field, or dropping such an option from a multi-select, clears that
        text.

        Raises:
            ValueError: If the wizard has no such field
        """
        self._require_editable()
        if name not in self.definition.field_names:
            raise ValueError(f"Unknown field '{name}' for wizard {self.definition.key}")

        previous = self.draft.get(name)
        if isinstance(previous, list):
            kept = set(value) if isinstance(value, list) else set()
            dropped = set(previous) - kept
        elif isinstance(previous, str) and value != previous:
            dropped = {previous}
        else:
            dropped = set()
        for option in dropped:
            companion = self.definition.option_text_fields.get((name, option))
            if companion:
                self.draft[companion] = ""

        self.draft[name] = value
        self.errors.pop(name, None)
        self._persist()

    def toggle_option(self, name: str, option: str, checked: bool) -> bool:
        """Check or uncheck one option of a multi-select field.

        Unchecking an option that owns a free-text field clears that text.
        Checking is refused once the field's maxItems limit is reached.

        Returns:
            True if the selection changed
        """
        self._require_editable()
        if name not in self.definition.field_names:
            raise ValueError(f"Unknown field '{name}' for wizard {self.definition.key}")

        selected = list(self.draft.get(name) or [])
        if checked:
            if option in selected:
                return False
            limit = self._max_items(name)
            if limit is not None and len(selected) >= limit:
                logger.debug("Refusing %s=%s: limit of %s reached", name, option, limit)
                return False
            selected.append(option)
        else:
            if option not in selected:
                return False
            selected.remove(option)
            companion = self.definition.option_text_fields.get((name, option))
            if companion:
                self.draft[companion] = ""

        self.draft[name] = selected
        self.errors.pop(name, None)
        self._persist()
        return True

    def _max_items(self, name: str) -> Optional[int]:
        for step in self.definition.steps:
            prop = step.schema.get("properties", {}).get(name)
            if prop is not None:
                return prop.get("maxItems")
        return None

    def validate_step(self, number: Optional[int] = None) -> Dict[str, str]:
        """Validate one step's fields against the draft.

        Returns:
            The first violated rule per field; empty when the step is valid
        """
        step = self.definition.step(number or self.current)
        data = {f: self.draft[f] for f in step.fields if self.draft.get(f) is not None}
        return self._engines[step.number].validate(data).first_errors()

    def next(self) -> bool:
        """Advance one step, or submit from the last step.

        Returns:
            True if the wizard advanced or the submission completed
        """
        self._require_editable()
        errors = self.validate_step()
        if errors:
            self.errors = errors
            self._emit(EventType.WIZARD_STEP_REJECTED, {"step": self.current, "errors": errors})
            return False

        self.errors = {}
        self._persist()
        if self.is_last_step:
            return self._submit()

        self.current += 1
        self.progress = max(self.progress, self.current)
        self._emit(EventType.WIZARD_STEP_ADVANCED, {"step": self.current, "progress": self.progress})
        return True

    def back(self) -> None:
        """Go back one step without validating."""
        self._require_editable()
        if self.state == WizardState.FAILED:
            self._transition(WizardState.IN_PROGRESS)
        self.current = max(1, self.current - 1)

    def resume(self) -> bool:
        """Load a saved draft and jump to the furthest step it suggests.

        Returns:
            True if a draft was found
        """
        saved = self.store.load(self.definition.key)
        if not saved:
            return False

        self.draft = {**self.definition.defaults, **saved}
        self.current = 1
        for step in reversed(self.definition.steps):
            if step.resumes_from(self.draft):
                self.current = step.number
                break
        self.progress = max(self.progress, self.current)
        logger.info("Resumed %s draft at step %s", self.definition.key, self.current)
        return True

    def _submit(self) -> bool:
        self._transition(WizardState.SUBMITTING)
        finalize = self.definition.finalize or dict
        payload = finalize(dict(self.draft))
        try:
            self.result = self.submit(payload)
        except Exception as e:
            logger.warning("Submission of %s failed: %s", self.definition.key, e)
            self.submit_error = str(e)
            self._transition(WizardState.FAILED)
            self._emit(EventType.WIZARD_SUBMIT_FAILED, {"error": str(e)})
            return False

        self.submit_error = None
        self._transition(WizardState.COMPLETED)
        self.draft["completed"] = True
        self.store.clear(self.definition.key)
        self._emit(EventType.WIZARD_SUBMITTED, {"steps": self.total_steps})
        return True


# Definitions


def _step(number: int, title: str, properties: Mapping[str, Any], fields: Tuple[str, ...],
          required: Tuple[str, ...] = (), **resume: Tuple[str, ...]) -> WizardStep:
    schema = schemas.object_schema({f: properties[f] for f in fields}, required=required)
    return WizardStep(number=number, title=title, fields=fields, schema=schema, **resume)


_SECTION_PROPERTIES: Dict[str, Any] = {
    **schemas.ASSESSMENT_PROPERTIES,
    "company": schemas.text("Company name is required", required=True),
    "industry": schemas.text("Industry is required", required=True),
    "size": schemas.text("Company size is required", required=True),
    "name": schemas.text("Full name is required", required=True),
    "email": schemas.email("Invalid email address"),
    "consent": {"type": "boolean", "const": True, "errorMessage": "You must agree to receive the assessment"},
}


def _finalize_section(draft: Draft) -> Dict[str, Any]:
    return {
        **draft,
        "systems": draft.get("systems") or [],
        "aiInterests": draft.get("aiInterests") or [],
        "progress": 4,
        "completed": True,
    }


ASSESSMENT_SECTION_WIZARD = WizardDefinition(
    key="ai-assessment-form",
    title="AI Readiness Assessment",
    steps=(
        _step(1, "Company Profile", _SECTION_PROPERTIES, ("company", "industry", "size"),
              required=("company", "industry", "size")),
        _step(2, "Current Systems", _SECTION_PROPERTIES, ("systems", "dataQuality"),
              resume_any=("systems", "dataQuality")),
        _step(3, "AI Interests", _SECTION_PROPERTIES, ("aiInterests", "aiChallenges"),
              resume_any=("aiInterests", "aiChallenges")),
        _step(4, "Contact Details", _SECTION_PROPERTIES, ("name", "email", "phone", "consent"),
              required=("name", "email", "consent"), resume_all=("email", "name")),
    ),
    defaults={"systems": [], "aiInterests": []},
    finalize=_finalize_section,
)

_FULL = schemas.ASSESSMENT_SUBMISSION_PROPERTIES

_BUSINESS_FIELDS = ("businessDescription", "competitiveAdvantage", "salesProcess", "customerProfile",
                    "operationalChallenges", "departments")
_TECHNOLOGY_FIELDS = ("currentTools", "techInfrastructure", "aiExperience", "aiGoals")
_PROCESS_FIELDS = ("manualProcesses", "bottleneckProcesses", "documentProcesses", "customerChannels")
_PRIORITY_FIELDS = ("priorityAreas", "implementationTimeframe", "budgetRange", "specificOutcomes", "concerns")

ASSESSMENT_WIZARD = WizardDefinition(
    key="ai-readiness-assessment",
    title="Full AI Readiness Assessment",
    steps=(
        _step(1, "Contact & Company Profile", _FULL,
              ("name", "email", "company", "phone", "title", "industry", "annualRevenue", "employeeCount"),
              required=("name", "email", "company")),
        _step(2, "Business Overview", _FULL, _BUSINESS_FIELDS, resume_any=_BUSINESS_FIELDS),
        _step(3, "Technology Assessment", _FULL, _TECHNOLOGY_FIELDS, resume_any=_TECHNOLOGY_FIELDS),
        _step(4, "Process Assessment", _FULL, _PROCESS_FIELDS, resume_any=_PROCESS_FIELDS),
        _step(5, "Priority & Timeline", _FULL, _PRIORITY_FIELDS, resume_any=_PRIORITY_FIELDS),
    ),
    defaults={
        "operationalChallenges": [],
        "departments": [],
        "currentTools": [],
        "aiGoals": [],
        "documentProcesses": [],
        "customerChannels": [],
        "priorityAreas": [],
    },
)

INTAKE_WIZARD = WizardDefinition(
    key="intake-form",
    title="AI Acceleration Plan",
    steps=(
        _step(1, "Your Modernization Goals", schemas.INTAKE_PROPERTIES, tuple(schemas.INTAKE_PROPERTIES),
              required=tuple(schemas.INTAKE_SCHEMA["required"])),
    ),
    option_text_fields={
        ("legacyEnvironment", "other"): "legacyEnvironmentOther",
        ("modernizationGoals", schemas.OTHER_OPTION): "modernizationGoalsOther",
        ("productivityStack", schemas.OTHER_OPTION): "productivityStackOther",
    },
    defaults={"modernizationGoals": [], "productivityStack": []},
)


__all__ = [
    "ASSESSMENT_SECTION_WIZARD",
    "ASSESSMENT_WIZARD",
    "INTAKE_WIZARD",
    "FormWizard",
    "InvalidWizardTransitionError",
    "JsonFileDraftStore",
    "MemoryDraftStore",
    "VALID_TRANSITIONS",
    "WizardDefinition",
    "WizardStep",
]

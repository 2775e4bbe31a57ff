"""Unit tests for the multi-step form wizard.

Tests cover:
- Field updates and draft persistence
- Multi-select toggling, selection limits and free-text companions
- Per-step validation and advancement
- Back navigation
- Resuming from a saved draft
- The submission lifecycle (completed, failed, retry)
- JSON file draft storage
"""

import json

import pytest

from cedarintake.types import EventType, WizardState
from cedarintake.wizard import (
    ASSESSMENT_SECTION_WIZARD,
    ASSESSMENT_WIZARD,
    INTAKE_WIZARD,
    FormWizard,
    InvalidWizardTransitionError,
    JsonFileDraftStore,
    MemoryDraftStore,
)


class Recorder:
    """Submit callable that records payloads and can be told to fail."""

    def __init__(self, fail=False):
        self.payloads = []
        self.fail = fail

    def __call__(self, payload):
        if self.fail:
            raise RuntimeError("server unavailable")
        self.payloads.append(payload)
        return {"id": len(self.payloads)}


@pytest.fixture
def store():
    return MemoryDraftStore()


@pytest.fixture
def submit():
    return Recorder()


@pytest.fixture
def wizard(store, submit):
    return FormWizard(ASSESSMENT_SECTION_WIZARD, store, submit)


def fill_step_one(wizard):
    wizard.update_field("company", "Acme")
    wizard.update_field("industry", "technology")
    wizard.update_field("size", "11-50")


def fill_contact(wizard, consent=True):
    wizard.update_field("name", "Ada Lovelace")
    wizard.update_field("email", "ada@example.com")
    wizard.update_field("consent", consent)


class TestUpdateField:
    """Test draft updates."""

    def test_update_persists_draft(self, wizard, store):
        """Should save the draft after every change."""
        wizard.update_field("company", "Acme")

        assert store.load("ai-assessment-form")["company"] == "Acme"

    def test_update_clears_field_error(self, wizard):
        """Should clear the error of the field being edited only."""
        wizard.next()
        assert set(wizard.errors) == {"company", "industry", "size"}

        wizard.update_field("company", "Acme")

        assert set(wizard.errors) == {"industry", "size"}

    def test_unknown_field_rejected(self, wizard):
        """Should raise ValueError for a field the wizard does not own."""
        with pytest.raises(ValueError):
            wizard.update_field("favouriteColour", "teal")

    def test_defaults_are_copied(self, store, submit):
        """Should not share default lists between wizards."""
        first = FormWizard(ASSESSMENT_SECTION_WIZARD, store, submit)
        second = FormWizard(ASSESSMENT_SECTION_WIZARD, MemoryDraftStore(), submit)

        first.toggle_option("systems", "crm", True)

        assert second.draft["systems"] == []
        assert ASSESSMENT_SECTION_WIZARD.defaults["systems"] == []


class TestToggleOption:
    """Test multi-select handling."""

    def test_check_and_uncheck(self, wizard):
        """Should add and remove options."""
        assert wizard.toggle_option("systems", "crm", True) is True
        assert wizard.toggle_option("systems", "erp", True) is True
        assert wizard.toggle_option("systems", "crm", False) is True

        assert wizard.draft["systems"] == ["erp"]

    def test_duplicate_check_is_a_no_op(self, wizard):
        """Should not add an option twice."""
        wizard.toggle_option("systems", "crm", True)

        assert wizard.toggle_option("systems", "crm", True) is False
        assert wizard.draft["systems"] == ["crm"]

    def test_selection_limit(self, wizard):
        """Should refuse a fourth AI interest."""
        for option in ("legacy-modernization", "predictive-analytics", "process-automation"):
            wizard.toggle_option("aiInterests", option, True)

        assert wizard.toggle_option("aiInterests", "chatbots", True) is False
        assert len(wizard.draft["aiInterests"]) == 3

    def test_unchecking_other_clears_companion_text(self, store, submit):
        """Should clear the free-text field when other-custom is unchecked."""
        wizard = FormWizard(INTAKE_WIZARD, store, submit)
        wizard.toggle_option("modernizationGoals", "other-custom", True)
        wizard.update_field("modernizationGoalsOther", "Data lake")

        wizard.toggle_option("modernizationGoals", "other-custom", False)

        assert wizard.draft["modernizationGoalsOther"] == ""
        assert store.load("intake-form")["modernizationGoalsOther"] == ""

    def test_unchecking_other_option_keeps_unrelated_text(self, store, submit):
        """Should leave the companion alone when another option is unchecked."""
        wizard = FormWizard(INTAKE_WIZARD, store, submit)
        wizard.toggle_option("productivityStack", "slack", True)
        wizard.toggle_option("productivityStack", "other-custom", True)
        wizard.update_field("productivityStackOther", "Notion")

        wizard.toggle_option("productivityStack", "slack", False)

        assert wizard.draft["productivityStackOther"] == "Notion"

    def test_changing_select_away_from_other_clears_text(self, store, submit):
        """Should clear the legacy environment text when other is deselected."""
        wizard = FormWizard(INTAKE_WIZARD, store, submit)
        wizard.update_field("legacyEnvironment", "other")
        wizard.update_field("legacyEnvironmentOther", "Delphi")

        wizard.update_field("legacyEnvironment", "java")

        assert wizard.draft["legacyEnvironmentOther"] == ""

    def test_replacing_selection_without_other_clears_text(self, store, submit):
        """Should clear the companion when a whole selection drops other-custom."""
        wizard = FormWizard(INTAKE_WIZARD, store, submit)
        wizard.update_field("modernizationGoals", ["ai-automation", "other-custom"])
        wizard.update_field("modernizationGoalsOther", "Rust rewrite")

        wizard.update_field("modernizationGoals", ["ai-automation"])

        assert wizard.draft["modernizationGoalsOther"] == ""
        assert store.load("intake-form")["modernizationGoalsOther"] == ""

    def test_replacing_selection_keeping_other_keeps_text(self, store, submit):
        """Should keep the companion while other-custom stays selected."""
        wizard = FormWizard(INTAKE_WIZARD, store, submit)
        wizard.update_field("modernizationGoals", ["ai-automation", "other-custom"])
        wizard.update_field("modernizationGoalsOther", "Rust rewrite")

        wizard.update_field("modernizationGoals", ["other-custom"])

        assert wizard.draft["modernizationGoalsOther"] == "Rust rewrite"


class TestNavigation:
    """Test step validation and movement."""

    def test_invalid_step_does_not_advance(self, wizard):
        """Should keep current and set every field error on failure."""
        wizard.update_field("company", "Acme")

        assert wizard.next() is False
        assert wizard.current == 1
        assert wizard.errors == {
            "industry": "Industry is required",
            "size": "Company size is required",
        }

    def test_valid_step_advances(self, wizard):
        """Should advance and raise progress."""
        fill_step_one(wizard)

        assert wizard.next() is True
        assert wizard.current == 2
        assert wizard.progress == 2
        assert wizard.errors == {}

    def test_optional_steps_advance_empty(self, wizard):
        """Should allow steps without required fields to be skipped."""
        fill_step_one(wizard)
        wizard.next()

        assert wizard.next() is True
        assert wizard.next() is True
        assert wizard.current == 4

    def test_back_never_goes_below_one(self, wizard):
        """Should stop at the first step."""
        wizard.back()

        assert wizard.current == 1

    def test_back_keeps_progress_and_draft(self, wizard):
        """Should move back without validating or losing data."""
        fill_step_one(wizard)
        wizard.next()
        wizard.back()

        assert wizard.current == 1
        assert wizard.progress == 2
        assert wizard.draft["company"] == "Acme"

    def test_contact_step_rules(self, wizard):
        """Should require consent and a valid email on the last step."""
        fill_step_one(wizard)
        for _ in range(3):
            wizard.next()
        wizard.update_field("name", "Ada")
        wizard.update_field("email", "not-an-email")
        wizard.update_field("consent", False)

        assert wizard.next() is False
        assert wizard.errors == {
            "email": "Invalid email address",
            "consent": "You must agree to receive the assessment",
        }

    def test_step_events(self, store, submit):
        """Should emit rejected and advanced events."""
        from cedarintake.events import EventEmitter

        seen = []
        emitter = EventEmitter()
        emitter.on_any(seen.append)
        wizard = FormWizard(ASSESSMENT_SECTION_WIZARD, store, submit, emitter)

        wizard.next()
        fill_step_one(wizard)
        wizard.next()

        assert [e.type for e in seen] == [EventType.WIZARD_STEP_REJECTED, EventType.WIZARD_STEP_ADVANCED]
        assert seen[1].form == "ai-assessment-form"
        assert seen[1].payload == {"step": 2, "progress": 2}


class TestResume:
    """Test resuming from a saved draft."""

    def resume(self, store, draft):
        store.save("ai-assessment-form", draft)
        wizard = FormWizard(ASSESSMENT_SECTION_WIZARD, store, Recorder())
        found = wizard.resume()
        return wizard, found

    def test_no_draft(self, store):
        """Should report that nothing was resumed."""
        wizard = FormWizard(ASSESSMENT_SECTION_WIZARD, store, Recorder())

        assert wizard.resume() is False
        assert wizard.current == 1

    def test_contact_details_jump_to_last_step(self, store):
        """Should resume at step 4 when name and email are saved."""
        wizard, found = self.resume(store, {"company": "Acme", "name": "Ada", "email": "ada@example.com"})

        assert found is True
        assert wizard.current == 4
        assert wizard.progress == 4

    def test_interests_jump_to_step_three(self, store):
        """Should resume at step 3 when AI interests are saved."""
        wizard, _ = self.resume(store, {"company": "Acme", "aiInterests": ["chatbots"]})

        assert wizard.current == 3

    def test_systems_jump_to_step_two(self, store):
        """Should resume at step 2 when data quality is saved."""
        wizard, _ = self.resume(store, {"company": "Acme", "dataQuality": "fair"})

        assert wizard.current == 2

    def test_empty_groups_do_not_count(self, store):
        """Should ignore empty lists and blank strings."""
        wizard, _ = self.resume(store, {"company": "Acme", "systems": [], "aiChallenges": ""})

        assert wizard.current == 1
        assert wizard.draft["company"] == "Acme"

    def test_name_without_email_is_not_enough(self, store):
        """Should need both name and email to jump to contact details."""
        wizard, _ = self.resume(store, {"name": "Ada", "aiChallenges": "Too many spreadsheets"})

        assert wizard.current == 3


class TestSubmission:
    """Test the final step and submission lifecycle."""

    def complete(self, wizard):
        fill_step_one(wizard)
        wizard.next()
        wizard.next()
        wizard.next()
        fill_contact(wizard)
        return wizard.next()

    def test_successful_submission(self, wizard, store, submit):
        """Should submit the finalized payload and clear the saved draft."""
        assert self.complete(wizard) is True

        assert wizard.state == WizardState.COMPLETED
        assert wizard.result == {"id": 1}
        assert wizard.draft["completed"] is True
        assert store.load("ai-assessment-form") is None
        payload = submit.payloads[0]
        assert payload["completed"] is True
        assert payload["progress"] == 4
        assert payload["systems"] == []
        assert payload["company"] == "Acme"

    def test_completed_wizard_is_frozen(self, wizard):
        """Should refuse edits after completion."""
        self.complete(wizard)

        with pytest.raises(InvalidWizardTransitionError):
            wizard.update_field("company", "Other")
        with pytest.raises(InvalidWizardTransitionError):
            wizard.next()

    def test_failed_submission_keeps_draft(self, store):
        """Should keep the draft and expose the error on failure."""
        wizard = FormWizard(ASSESSMENT_SECTION_WIZARD, store, Recorder(fail=True))

        assert self.complete(wizard) is False
        assert wizard.state == WizardState.FAILED
        assert wizard.submit_error == "server unavailable"
        assert store.load("ai-assessment-form")["email"] == "ada@example.com"
        assert wizard.current == 4

    def test_retry_after_failure(self, store):
        """Should allow retrying a failed submission."""
        submit = Recorder(fail=True)
        wizard = FormWizard(ASSESSMENT_SECTION_WIZARD, store, submit)
        self.complete(wizard)

        submit.fail = False
        assert wizard.next() is True
        assert wizard.state == WizardState.COMPLETED
        assert wizard.submit_error is None

    def test_back_after_failure_returns_to_editing(self, store):
        """Should leave the failed state when going back."""
        wizard = FormWizard(ASSESSMENT_SECTION_WIZARD, store, Recorder(fail=True))
        self.complete(wizard)

        wizard.back()

        assert wizard.state == WizardState.IN_PROGRESS
        assert wizard.current == 3

    def test_full_assessment_requires_contact_on_step_one(self, store, submit):
        """Should require name, email and company on the first step."""
        wizard = FormWizard(ASSESSMENT_WIZARD, store, submit)

        assert wizard.next() is False
        assert set(wizard.errors) == {"name", "email", "company"}

    def test_full_assessment_submits_after_five_steps(self, store, submit):
        """Should submit the raw draft after the fifth step."""
        wizard = FormWizard(ASSESSMENT_WIZARD, store, submit)
        wizard.update_field("name", "Ada")
        wizard.update_field("email", "ada@example.com")
        wizard.update_field("company", "Acme")
        wizard.toggle_option("priorityAreas", "Process automation", True)

        results = [wizard.next() for _ in range(5)]

        assert results == [True] * 5
        assert wizard.state == WizardState.COMPLETED
        assert submit.payloads[0]["priorityAreas"] == ["Process automation"]


class TestJsonFileDraftStore:
    """Test file-backed draft storage."""

    def test_save_load_clear(self, tmp_path):
        """Should keep one JSON file per key."""
        store = JsonFileDraftStore(tmp_path / "drafts")

        store.save("intake-form", {"name": "Ada"})

        assert json.loads((tmp_path / "drafts" / "intake-form.json").read_text()) == {"name": "Ada"}
        assert store.load("intake-form") == {"name": "Ada"}
        store.clear("intake-form")
        assert store.load("intake-form") is None

    def test_corrupt_file_is_ignored(self, tmp_path, caplog):
        """Should log and ignore an unreadable draft."""
        (tmp_path / "intake-form.json").write_text("{not json")
        store = JsonFileDraftStore(tmp_path)

        assert store.load("intake-form") is None
        assert "Could not read draft" in caplog.text

    def test_clear_missing_file(self, tmp_path):
        """Should not raise when there is nothing to clear."""
        JsonFileDraftStore(tmp_path).clear("nothing-here")

    def test_wizard_resumes_from_file(self, tmp_path):
        """Should resume a wizard from a draft written by an earlier visit."""
        store = JsonFileDraftStore(tmp_path)
        first = FormWizard(ASSESSMENT_SECTION_WIZARD, store, Recorder())
        fill_step_one(first)
        first.toggle_option("systems", "crm", True)

        second = FormWizard(ASSESSMENT_SECTION_WIZARD, store, Recorder())
        second.resume()

        assert second.current == 2
        assert second.draft["company"] == "Acme"

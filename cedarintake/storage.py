"""In-memory record store for Cedar Intake.

MemStorage keeps one table per entity, each keyed by an auto-incrementing
integer id starting at 1. It is constructed once at process start and
handed to the HTTP app; nothing in the package holds a module-level store.

Records are plain dicts: the validated input fields plus ``id`` and
``createdAt`` (ISO-8601, UTC). Readers receive copies, so callers cannot
mutate stored records behind the store's back.

Usage:
    >>> storage = MemStorage()
    >>> record = storage.create_contact({"name": "Ada", "email": "ada@example.com"})
    >>> record["id"]
    1
"""

import datetime
import logging
import threading
from typing import Any, Dict, Iterator, List, Mapping, Optional

from cedarintake.errors import SlotUnavailable, ValidationFailed
from cedarintake.schemas import ASSESSMENT_UPDATABLE_FIELDS, AssessmentUpdate
from cedarintake.slots import parse_booking_date

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


def utc_now() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


class Table:
    """A single id-keyed table."""

    def __init__(self, name: str):
        self.name = name
        self._rows: Dict[int, Record] = {}
        self._next_id = 1

    def insert(self, data: Mapping[str, Any], **overrides: Any) -> Record:
        record: Record = dict(data)
        record.update(overrides)
        record["id"] = self._next_id
        record["createdAt"] = utc_now()
        self._rows[self._next_id] = record
        self._next_id += 1
        logger.debug("Inserted %s #%s", self.name, record["id"])
        return dict(record)

    def get(self, record_id: int) -> Optional[Record]:
        record = self._rows.get(record_id)
        return dict(record) if record is not None else None

    def replace(self, record_id: int, record: Record) -> Record:
        self._rows[record_id] = dict(record)
        return dict(record)

    def __iter__(self) -> Iterator[Record]:
        for record in list(self._rows.values()):
            yield dict(record)

    def __len__(self) -> int:
        return len(self._rows)


class MemStorage:
    """In-memory store with one table per entity.

    Individual inserts are atomic under a store-wide lock. Booking creation
    additionally checks slot availability inside the same critical section,
    so two concurrent requests cannot book the same slot on the same day.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self.users = Table("user")
        self.assessments = Table("assessment")
        self.assessment_submissions = Table("assessment_submission")
        self.intakes = Table("intake")
        self.general_contacts = Table("general_contact")
        self.contacts = Table("contact")
        self.bookings = Table("booking")
        self.newsletters = Table("newsletter")

    # Users

    def get_user(self, user_id: int) -> Optional[Record]:
        return self.users.get(user_id)

    def get_user_by_username(self, username: str) -> Optional[Record]:
        return next((user for user in self.users if user.get("username") == username), None)

    def create_user(self, data: Mapping[str, Any]) -> Record:
        """Create a user.

        Raises:
            ValueError: If the username is already taken
        """
        with self._lock:
            if self.get_user_by_username(data["username"]) is not None:
                raise ValueError(f"Username {data['username']} already exists")
            return self.users.insert(data)

    # Assessments (landing-page questionnaire, updated step by step)

    def get_assessment(self, assessment_id: int) -> Optional[Record]:
        return self.assessments.get(assessment_id)

    def get_assessment_by_email(self, email: str) -> Optional[Record]:
        return next((a for a in self.assessments if a.get("email") == email), None)

    def create_assessment(self, data: Mapping[str, Any]) -> Record:
        with self._lock:
            return self.assessments.insert(
                data,
                progress=data.get("progress") or 1,
                completed=bool(data.get("completed")),
            )

    def update_assessment(self, assessment_id: int, update: AssessmentUpdate) -> Optional[Record]:
        """Merge a partial update into an assessment.

        Only whitelisted fields are applied. ``progress`` never moves
        backwards and ``completed`` never reverts to false.

        Returns:
            The updated record, or None if the id is unknown
        """
        with self._lock:
            current = self.assessments.get(assessment_id)
            if current is None:
                return None

            for key, value in update.items():
                if key not in ASSESSMENT_UPDATABLE_FIELDS:
                    logger.warning("Ignoring non-updatable assessment field %s", key)
                    continue
                if key == "progress":
                    value = max(current.get("progress") or 1, value)
                elif key == "completed":
                    value = bool(current.get("completed")) or bool(value)
                current[key] = value

            return self.assessments.replace(assessment_id, current)

    # Full readiness assessments

    def create_assessment_submission(self, data: Mapping[str, Any]) -> Record:
        with self._lock:
            return self.assessment_submissions.insert(data)

    def get_assessment_submission(self, submission_id: int) -> Optional[Record]:
        return self.assessment_submissions.get(submission_id)

    # Intakes and contact messages

    def create_intake(self, data: Mapping[str, Any]) -> Record:
        with self._lock:
            return self.intakes.insert(data)

    def get_intake(self, intake_id: int) -> Optional[Record]:
        return self.intakes.get(intake_id)

    def create_general_contact(self, data: Mapping[str, Any]) -> Record:
        with self._lock:
            return self.general_contacts.insert(data)

    def get_general_contact(self, contact_id: int) -> Optional[Record]:
        return self.general_contacts.get(contact_id)

    def create_contact(self, data: Mapping[str, Any]) -> Record:
        with self._lock:
            return self.contacts.insert(data)

    def get_contact(self, contact_id: int) -> Optional[Record]:
        return self.contacts.get(contact_id)

    # Newsletter

    def get_newsletter_by_email(self, email: str) -> Optional[Record]:
        return next((n for n in self.newsletters if n.get("email") == email), None)

    def create_newsletter(self, data: Mapping[str, Any]) -> Record:
        """Subscribe an email; an existing subscription is returned unchanged."""
        with self._lock:
            existing = self.get_newsletter_by_email(data["email"])
            if existing is not None:
                logger.info("Newsletter subscription already exists (id=%s)", existing["id"])
                return existing
            return self.newsletters.insert(data)

    # Bookings

    def get_booking(self, booking_id: int) -> Optional[Record]:
        return self.bookings.get(booking_id)

    def get_bookings_by_date(self, day: Any) -> List[Record]:
        """Return every booking on the same calendar day as ``day``."""
        target = parse_booking_date(day)
        return [b for b in self.bookings if parse_booking_date(b["date"]) == target]

    def create_booking(self, data: Mapping[str, Any]) -> Record:
        """Book a slot; status is always "confirmed".

        Raises:
            ValidationFailed: If the date is not a real calendar day
            SlotUnavailable: If the slot is already booked that day
        """
        try:
            day = parse_booking_date(data["date"])
        except ValueError:
            raise ValidationFailed('Validation error: Please choose a valid date at "date"') from None

        with self._lock:
            taken = {b.get("time") for b in self.get_bookings_by_date(day)}
            if data["time"] in taken:
                logger.info("Rejected booking for taken slot %s on %s", data["time"], data["date"])
                raise SlotUnavailable()
            return self.bookings.insert(data, status="confirmed")

    def find_by_email(self, table: Table, email: str) -> List[Record]:
        """Return every record of a table submitted with the given email."""
        return [record for record in table if record.get("email") == email]


__all__ = [
    "MemStorage",
    "Record",
    "Table",
]

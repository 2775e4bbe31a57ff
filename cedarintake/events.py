"""Event system for Cedar Intake.

Every submission pipeline step and every form wizard transition emits a
typed PipelineEvent. Events are immutable; the emitter dispatches them to
registered listeners. The default listener, ``log_event``, writes each
event to the ``cedarintake.events`` logger, which makes the log the audit
trail for best-effort deliveries that have no other record.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import json
import logging

from cedarintake.types import EventType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineEvent:
    """Something that happened to one form submission or wizard.

    ``form`` is a FormKind value for pipeline events and the wizard key for
    wizard events. ``record_id`` is set once a record has been persisted;
    ``payload`` holds step-specific detail such as a failure reason.

    Examples:
        >>> from datetime import datetime, timezone
        >>> event = PipelineEvent("evt_1", EventType.RECORD_PERSISTED, "intake",
        ...                       datetime.now(timezone.utc), record_id=1)
        >>> event.to_dict()["recordId"]
        1
    """
    event_id: str
    type: EventType
    form: str
    ts: datetime
    record_id: Optional[int] = None
    payload: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        object.__setattr__(self, "type", EventType(self.type))

    def to_dict(self) -> Dict[str, Any]:
        body = {
            "eventId": self.event_id,
            "type": self.type.value,
            "form": self.form,
            "ts": self.ts.isoformat(),
            "recordId": self.record_id,
            "payload": self.payload,
        }
        return {key: value for key, value in body.items() if value is not None}

    def to_jsonl(self) -> str:
        """One compact JSON line, as written to the audit log."""
        return json.dumps(self.to_dict(), separators=(",", ":"), default=str)


EventListener = Callable[[PipelineEvent], None]


class EventEmitter:
    """Synchronous fan-out of events to listeners.

    Listeners registered for the event's type run first, then catch-all
    listeners, each group in registration order. A listener that raises is
    logged and skipped.

    Examples:
        >>> emitter = EventEmitter()
        >>> seen = []
        >>> emitter.on_any(seen.append)
    """

    def __init__(self):
        self._by_type: Dict[EventType, List[EventListener]] = {}
        self._catch_all: List[EventListener] = []

    def on(self, event_type: EventType, listener: EventListener) -> None:
        self._by_type.setdefault(event_type, []).append(listener)

    def on_any(self, listener: EventListener) -> None:
        self._catch_all.append(listener)

    def emit(self, event: PipelineEvent) -> None:
        for listener in self._by_type.get(event.type, []) + self._catch_all:
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener %r failed for %s", listener, event.type.value)


_DEGRADED_EVENTS = {
    EventType.VERIFICATION_FAILED,
    EventType.VALIDATION_FAILED,
    EventType.NOTIFICATION_DEGRADED,
    EventType.EMAIL_DEGRADED,
    EventType.WIZARD_SUBMIT_FAILED,
}


def log_event(event: PipelineEvent) -> None:
    """Write an event to the audit logger; failures and degradations log as warnings."""
    level = logging.WARNING if event.type in _DEGRADED_EVENTS else logging.INFO
    logger.log(level, "%s", event.to_jsonl())


__all__ = [
    "PipelineEvent",
    "EventListener",
    "EventEmitter",
    "log_event",
]

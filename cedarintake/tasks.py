"""ClickUp task notifier.

Each qualifying submission becomes a task in a ClickUp list so the sales
team can follow up. The task description is a markdown summary of the
record. Delivery is best-effort: the pipeline logs failures and carries on.

Usage:
    >>> name, markdown = format_task("contact", {"id": 1, "name": "Ada", "email": "ada@example.com"})
    >>> name
    'Contact: Ada'
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests
from requests.exceptions import RequestException

from cedarintake import schemas
from cedarintake.types import FormKind

logger = logging.getLogger(__name__)

CLICKUP_API_URL = "https://api.clickup.com/api/v2"
DEFAULT_TIMEOUT_SECONDS = 15
NOT_PROVIDED = "Not provided"


class TaskDeliveryError(Exception):
    """Raised when the task system rejects or cannot receive a task."""


class ClickUpClient:
    """Creates tasks in a ClickUp list.

    Attributes:
        api_token: Personal or OAuth token sent in the Authorization header
        list_id: Target list for new tasks
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        api_token: Optional[str] = None,
        list_id: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_token = api_token or ""
        self.list_id = list_id or ""
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.api_token and self.list_id)

    def create_task(self, name: str, markdown: str, tags: Sequence[str] = ()) -> Dict[str, Any]:
        """Create a task and return ClickUp's JSON response.

        Raises:
            TaskDeliveryError: On transport errors or non-2xx responses
        """
        url = f"{CLICKUP_API_URL}/list/{self.list_id}/task"
        body = {"name": name, "markdown_description": markdown, "tags": list(tags)}
        try:
            response = self.session.post(
                url,
                json=body,
                headers={"Authorization": self.api_token, "Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except RequestException as e:
            raise TaskDeliveryError(f"ClickUp request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise TaskDeliveryError(f"ClickUp returned status {response.status_code}: {response.text[:200]}")

        logger.info("Created ClickUp task %r in list %s", name, self.list_id)
        try:
            return response.json()
        except ValueError:
            return {}


def _value(value: Any, options: Optional[schemas.Options] = None) -> str:
    if value is None or value == "" or value == []:
        return NOT_PROVIDED
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (list, tuple)):
        return ", ".join(_value(item, options) for item in value)
    if options is not None:
        return schemas.option_label(options, value)
    return str(value)


def _bullets(values: Any, options: Optional[schemas.Options] = None) -> str:
    if not values:
        return f"- {NOT_PROVIDED}"
    return "\n".join(f"- {_value(item, options)}" for item in values)


def _with_other(values: Sequence[str], other_text: Any, options: schemas.Options) -> List[str]:
    """Replace the "other" option with the free text the user typed for it."""
    result = []
    for item in values or []:
        if item == schemas.OTHER_OPTION and other_text:
            result.append(f"Other: {other_text}")
        else:
            result.append(schemas.option_label(options, item))
    return result


def _section(title: str, lines: Sequence[Tuple[str, str]]) -> str:
    body = "\n".join(f"- **{label}:** {value}" for label, value in lines)
    return f"## {title}\n{body}"


def _format_assessment_submission(r: Dict[str, Any]) -> Tuple[str, str]:
    parts = [
        _section("Contact", [
            ("Name", _value(r.get("name"))),
            ("Email", _value(r.get("email"))),
            ("Phone", _value(r.get("phone"))),
            ("Title", _value(r.get("title"))),
        ]),
        _section("Company Profile", [
            ("Company", _value(r.get("company"))),
            ("Industry", _value(r.get("industry"), schemas.INDUSTRIES)),
            ("Annual Revenue", _value(r.get("annualRevenue"), schemas.ANNUAL_REVENUE)),
            ("Employees", _value(r.get("employeeCount"), schemas.EMPLOYEE_COUNTS)),
        ]),
        f"## Business Overview\n{_value(r.get('businessDescription'))}",
        f"### Competitive Advantage\n{_value(r.get('competitiveAdvantage'))}",
        f"### Operational Challenges\n{_bullets(r.get('operationalChallenges'))}",
        f"### Departments\n{_bullets(r.get('departments'))}",
        _section("Technology", [
            ("Current Tools", _value(r.get("currentTools"))),
            ("Infrastructure", _value(r.get("techInfrastructure"), schemas.TECH_INFRASTRUCTURE)),
            ("AI Experience", _value(r.get("aiExperience"), schemas.AI_EXPERIENCE)),
        ]),
        f"### AI Goals\n{_bullets(r.get('aiGoals'))}",
        f"## Processes\n- **Manual:** {_value(r.get('manualProcesses'))}\n"
        f"- **Bottlenecks:** {_value(r.get('bottleneckProcesses'))}",
        f"### Document Processes\n{_bullets(r.get('documentProcesses'))}",
        f"### Customer Channels\n{_bullets(r.get('customerChannels'))}",
        f"## Priorities\n{_bullets(r.get('priorityAreas'))}",
        _section("Plan", [
            ("Timeframe", _value(r.get("implementationTimeframe"), schemas.IMPLEMENTATION_TIMEFRAMES)),
            ("Budget", _value(r.get("budgetRange"), schemas.BUDGET_RANGES)),
            ("Desired Outcomes", _value(r.get("specificOutcomes"))),
            ("Concerns", _value(r.get("concerns"))),
        ]),
    ]
    return f"AI Readiness Assessment: {r.get('company') or r.get('name')}", "\n\n".join(parts)


def _format_intake(r: Dict[str, Any]) -> Tuple[str, str]:
    legacy = _value(r.get("legacyEnvironment"), schemas.LEGACY_ENVIRONMENTS)
    if r.get("legacyEnvironment") == "other" and r.get("legacyEnvironmentOther"):
        legacy = f"Other: {r['legacyEnvironmentOther']}"
    goals = _with_other(r.get("modernizationGoals") or [], r.get("modernizationGoalsOther"),
                        schemas.MODERNIZATION_GOALS)
    stack = _with_other(r.get("productivityStack") or [], r.get("productivityStackOther"),
                        schemas.PRODUCTIVITY_STACK)
    parts = [
        _section("Lead", [
            ("Name", _value(r.get("name"))),
            ("Company", _value(r.get("company"))),
            ("Email", _value(r.get("email"))),
            ("Urgency", _value(r.get("projectUrgency"), schemas.PROJECT_URGENCY)),
        ]),
        f"## Legacy Environment\n{legacy}",
        f"## Modernization Goals\n{_bullets(goals)}",
        f"## Productivity Stack\n{_bullets(stack)}",
    ]
    return f"AI Acceleration Plan: {r.get('company')}", "\n\n".join(parts)


def _format_general_contact(r: Dict[str, Any]) -> Tuple[str, str]:
    full_name = " ".join(p for p in (r.get("firstName"), r.get("lastName")) if p)
    parts = [
        _section("Contact", [
            ("Name", _value(full_name)),
            ("Business", _value(r.get("businessName"))),
            ("Email", _value(r.get("email"))),
        ]),
        f"## Message\n{_value(r.get('message'))}",
    ]
    return f"Website Inquiry: {r.get('businessName') or full_name}", "\n\n".join(parts)


def _format_generic(kind: str, r: Dict[str, Any]) -> Tuple[str, str]:
    lines = [(key, _value(value)) for key, value in r.items() if key not in ("id", "createdAt")]
    title = kind.replace("_", " ").title()
    return f"{title}: {r.get('name') or r.get('email') or r.get('id')}", _section("Details", lines)


_FORMATTERS = {
    FormKind.ASSESSMENT_SUBMISSION.value: _format_assessment_submission,
    FormKind.INTAKE.value: _format_intake,
    FormKind.GENERAL_CONTACT.value: _format_general_contact,
}


def format_task(kind: str, record: Dict[str, Any], reduced_trust: bool = False) -> Tuple[str, str]:
    """Render a task name and markdown description for a persisted record.

    Args:
        kind: FormKind value of the record
        record: The persisted record
        reduced_trust: Flag submissions whose bot check ran on a sentinel token

    Returns:
        (task name, markdown description)
    """
    kind = FormKind(kind).value
    formatter = _FORMATTERS.get(kind)
    if formatter is not None:
        name, markdown = formatter(record)
    else:
        name, markdown = _format_generic(kind, record)

    footer = f"_Submitted {record.get('createdAt', '')} (record #{record.get('id')})_"
    if reduced_trust:
        footer += "\n\n> Bot verification was unavailable for this submission (reduced trust)."
    return name, f"{markdown}\n\n---\n{footer}"


__all__ = [
    "ClickUpClient",
    "TaskDeliveryError",
    "format_task",
]

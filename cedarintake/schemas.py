"""Entity schemas and option catalogues for Cedar Intake forms.

Every form the backend accepts is described by a Draft 7 JSON Schema.
Property definitions are shared between the full-record schemas used by
the HTTP endpoints and the per-step schemas used by the form wizard, so a
field is validated by the same rule on both sides.

Option catalogues are ordered ``(id, label)`` pairs. Ids are what forms
submit; labels are what humans read in task summaries and emails.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

from typing_extensions import TypedDict

from cedarintake.slots import TIME_SLOTS
from cedarintake.types import FormKind

Options = Sequence[Tuple[str, str]]

# Option id that owns a free-text companion field in checkbox groups.
OTHER_OPTION = "other-custom"

INDUSTRIES: Options = (
    ("technology", "Technology"),
    ("manufacturing", "Manufacturing"),
    ("healthcare", "Healthcare"),
    ("finance", "Finance & Banking"),
    ("retail", "Retail & E-commerce"),
    ("professional-services", "Professional Services"),
    ("other", "Other"),
)

COMPANY_SIZES: Options = (
    ("1-10", "1-10 employees"),
    ("11-50", "11-50 employees"),
    ("51-200", "51-200 employees"),
    ("201-500", "201-500 employees"),
    ("500+", "500+ employees"),
)

SYSTEMS: Options = (
    ("crm", "CRM (e.g., Salesforce, HubSpot)"),
    ("erp", "ERP System"),
    ("analytics", "Analytics Platform"),
    ("cloud", "Cloud Infrastructure"),
    ("none", "None of the above"),
)

DATA_QUALITY: Options = (
    ("poor", "Poor - Data is scattered and inconsistent"),
    ("fair", "Fair - Some organized data, but many gaps"),
    ("good", "Good - Mostly organized with some standardization"),
    ("excellent", "Excellent - Well-structured and accessible"),
)

AI_INTERESTS: Options = (
    ("legacy-modernization", "Legacy System Modernization"),
    ("predictive-analytics", "Predictive Analytics & Forecasting"),
    ("process-automation", "Process & Workflow Automation"),
    ("data-integration", "Data Integration & Synchronization"),
    ("decision-support", "Decision Support & Insights"),
)

AI_CHALLENGES: Options = (
    ("expertise", "Lack of technical expertise"),
    ("cost", "Implementation costs"),
    ("data", "Data quality and quantity issues"),
    ("integration", "Integration with existing systems"),
    ("strategy", "Unclear strategic direction"),
)

ANNUAL_REVENUE: Options = (
    ("under-1m", "Under $1M"),
    ("1m-10m", "$1M - $10M"),
    ("10m-50m", "$10M - $50M"),
    ("50m-100m", "$50M - $100M"),
    ("over-100m", "Over $100M"),
)

EMPLOYEE_COUNTS: Options = (
    ("1-10", "1-10"),
    ("11-50", "11-50"),
    ("51-200", "51-200"),
    ("201-1000", "201-1000"),
    ("1000+", "1000+"),
)

TECH_INFRASTRUCTURE: Options = (
    ("basic", "Basic (Minimal digital tools)"),
    ("developing", "Developing (Key systems but not integrated)"),
    ("advanced", "Advanced (Well-integrated systems)"),
    ("leading", "Leading Edge (Fully digital, data-driven)"),
)

AI_EXPERIENCE: Options = (
    ("none", "No AI experience"),
    ("exploring", "Exploring AI options"),
    ("pilot", "Pilot projects underway"),
    ("some", "Some AI solutions implemented"),
    ("extensive", "Extensive AI implementation"),
)

IMPLEMENTATION_TIMEFRAMES: Options = (
    ("immediate", "Immediate (Next 30 days)"),
    ("short-term", "Short-term (1-3 months)"),
    ("medium-term", "Medium-term (3-6 months)"),
    ("long-term", "Long-term (6+ months)"),
)

BUDGET_RANGES: Options = (
    ("under-25k", "Under $25,000"),
    ("25k-50k", "$25,000 - $50,000"),
    ("50k-100k", "$50,000 - $100,000"),
    ("over-100k", "Over $100,000"),
    ("undetermined", "Not yet determined"),
)

LEGACY_ENVIRONMENTS: Options = (
    ("coldfusion", "ColdFusion"),
    ("sql-server", "SQL Server"),
    ("legacy-dotnet", "Legacy .NET"),
    ("java", "Java"),
    ("other", "Other"),
)

MODERNIZATION_GOALS: Options = (
    ("ai-automation", "AI Automation"),
    ("go-microservices", "Go Microservices Migration"),
    ("svelte-frontend", "Svelte Frontend Overhaul"),
    ("ionic-mobile", "Ionic Mobile App"),
    (OTHER_OPTION, "Other"),
)

PRODUCTIVITY_STACK: Options = (
    ("clickup", "ClickUp"),
    ("google-workspace", "Google Workspace"),
    ("microsoft-365", "Microsoft 365"),
    ("slack", "Slack"),
    (OTHER_OPTION, "Other"),
)

PROJECT_URGENCY: Options = (
    ("immediate", "Immediate (Next 30 days)"),
    ("short-term", "Short-term (1-3 months)"),
    ("exploring", "Exploring"),
)

# Checkbox groups of the full assessment submit their labels as values.
DEPARTMENTS = ("Sales", "Marketing", "Customer Service", "Operations", "Finance/Accounting",
               "HR", "IT/Technology", "R&D", "Manufacturing")
OPERATIONAL_CHALLENGES = ("Manual data entry", "Slow reporting", "System integration issues",
                          "Legacy software limitations", "Data silos", "Compliance tracking",
                          "Customer communication gaps", "Workflow bottlenecks")
CURRENT_TOOLS = ("CRM", "ERP", "Marketing Automation", "Customer Service Software",
                 "Project Management", "Communication Tools", "Analytics Tools", "Accounting Software")
AI_GOALS = ("Reduce operational costs", "Improve efficiency", "Enhance customer experience",
            "Increase revenue", "Gain competitive advantage", "Improve decision making",
            "Automate routine tasks", "Better data analysis")
DOCUMENT_PROCESSES = ("Invoice processing", "Contract review", "Customer documentation",
                      "HR documentation", "Quality control docs", "Reports and analytics")
CUSTOMER_CHANNELS = ("Phone", "Email", "Chat", "Social media", "In-person", "Self-service portal")
PRIORITY_AREAS = ("Process automation", "Customer service enhancement", "Data analysis & reporting",
                  "Document processing", "Quality control", "Decision support",
                  "Sales optimization", "Cost reduction")


def option_ids(options: Options) -> List[str]:
    """Return the ids of an option catalogue, in display order."""
    return [option_id for option_id, _ in options]


def option_label(options: Options, value: Any) -> str:
    """Return the label for an option id, or the value itself when unknown."""
    for option_id, label in options:
        if option_id == value:
            return label
    return str(value)


def text(message: Optional[str] = None, required: bool = False, max_length: int = 5000,
         nullable: bool = False) -> Dict[str, Any]:
    """Build a string property; ``required`` also rejects the empty string."""
    schema: Dict[str, Any] = {"type": ["string", "null"] if nullable else "string", "maxLength": max_length}
    if required:
        schema["minLength"] = 1
    if message:
        schema["errorMessage"] = message
    return schema


def email(message: str = "Invalid email address") -> Dict[str, Any]:
    return {"type": "string", "format": "email", "maxLength": 320, "errorMessage": message}


def choice(options: Options, message: Optional[str] = None, allow_blank: bool = False) -> Dict[str, Any]:
    """Build a single-select property limited to the catalogue ids."""
    values = option_ids(options)
    if allow_blank:
        values = [""] + values
    schema: Dict[str, Any] = {"type": "string", "enum": values}
    if message:
        schema["errorMessage"] = message
    return schema


def selections(options: Optional[Options] = None, min_items: int = 0, max_items: Optional[int] = None,
               message: Optional[str] = None, nullable: bool = False) -> Dict[str, Any]:
    """Build a multi-select (checkbox group) property."""
    items: Dict[str, Any] = {"type": "string"}
    if options is not None:
        items["enum"] = option_ids(options)
    schema: Dict[str, Any] = {"type": ["array", "null"] if nullable else "array", "items": items}
    if min_items:
        schema["minItems"] = min_items
    if max_items is not None:
        schema["maxItems"] = max_items
    if message:
        schema["errorMessage"] = message
    return schema


def object_schema(properties: Dict[str, Any], required: Sequence[str] = (),
                  additional: bool = True) -> Dict[str, Any]:
    schema: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = list(required)
    if not additional:
        schema["additionalProperties"] = False
    return schema


# Short assessment embedded in the landing page. Every column is nullable,
# so the record may be created early and filled in by later PATCHes.
ASSESSMENT_PROPERTIES: Dict[str, Any] = {
    "company": text("Company name is required", nullable=True),
    "industry": text("Industry is required", nullable=True),
    "size": text("Company size is required", nullable=True),
    "systems": selections(nullable=True),
    "dataQuality": text(nullable=True),
    "aiInterests": selections(max_items=3, message="Select up to 3 areas of interest", nullable=True),
    "aiChallenges": text(nullable=True),
    "name": text("Full name is required", nullable=True),
    "email": text("Invalid email address", nullable=True, max_length=320),
    "phone": text(nullable=True, max_length=50),
    "consent": {"type": ["boolean", "null"]},
    "progress": {"type": "integer", "minimum": 1, "errorMessage": "Progress must be a positive step number"},
    "completed": {"type": "boolean"},
}

ASSESSMENT_SCHEMA = object_schema(ASSESSMENT_PROPERTIES)

ASSESSMENT_UPDATABLE_FIELDS = tuple(ASSESSMENT_PROPERTIES)

# PATCH bodies: any subset of the whitelist, nothing else.
ASSESSMENT_UPDATE_SCHEMA = object_schema(ASSESSMENT_PROPERTIES, additional=False)


class AssessmentUpdate(TypedDict, total=False):
    """Partial update accepted by PATCH /api/assessment/{id}."""
    company: Optional[str]
    industry: Optional[str]
    size: Optional[str]
    systems: Optional[List[str]]
    dataQuality: Optional[str]
    aiInterests: Optional[List[str]]
    aiChallenges: Optional[str]
    name: Optional[str]
    email: Optional[str]
    phone: Optional[str]
    consent: Optional[bool]
    progress: int
    completed: bool


# Full five-step AI readiness assessment.
ASSESSMENT_SUBMISSION_PROPERTIES: Dict[str, Any] = {
    "name": text("Full name is required", required=True, max_length=200),
    "email": email("Please enter a valid email address"),
    "company": text("Company name is required", required=True, max_length=200),
    "phone": text(max_length=50),
    "title": text(max_length=200),
    "industry": choice(INDUSTRIES, "Please select an industry", allow_blank=True),
    "annualRevenue": choice(ANNUAL_REVENUE, "Please select a revenue range", allow_blank=True),
    "employeeCount": choice(EMPLOYEE_COUNTS, "Please select an employee count", allow_blank=True),
    "businessDescription": text(),
    "competitiveAdvantage": text(),
    "salesProcess": text(),
    "customerProfile": text(),
    "operationalChallenges": selections(),
    "departments": selections(),
    "currentTools": selections(),
    "techInfrastructure": choice(TECH_INFRASTRUCTURE, allow_blank=True),
    "aiExperience": choice(AI_EXPERIENCE, allow_blank=True),
    "aiGoals": selections(),
    "manualProcesses": text(),
    "bottleneckProcesses": text(),
    "documentProcesses": selections(),
    "customerChannels": selections(),
    "priorityAreas": selections(),
    "implementationTimeframe": choice(IMPLEMENTATION_TIMEFRAMES, allow_blank=True),
    "budgetRange": choice(BUDGET_RANGES, allow_blank=True),
    "specificOutcomes": text(),
    "concerns": text(),
}

ASSESSMENT_SUBMISSION_SCHEMA = object_schema(
    ASSESSMENT_SUBMISSION_PROPERTIES, required=("name", "email", "company"))

INTAKE_PROPERTIES: Dict[str, Any] = {
    "name": text("Name is required", required=True, max_length=200),
    "company": text("Company name is required", required=True, max_length=200),
    "email": email("Please enter a valid email address"),
    "legacyEnvironment": choice(LEGACY_ENVIRONMENTS, "Please select your legacy environment"),
    "legacyEnvironmentOther": text(max_length=500),
    "modernizationGoals": selections(MODERNIZATION_GOALS, min_items=1, message="Please select at least one goal"),
    "modernizationGoalsOther": text(max_length=500),
    "productivityStack": selections(PRODUCTIVITY_STACK),
    "productivityStackOther": text(max_length=500),
    "projectUrgency": choice(PROJECT_URGENCY, "Please select project urgency"),
}

INTAKE_SCHEMA = object_schema(
    INTAKE_PROPERTIES,
    required=("name", "company", "email", "legacyEnvironment", "modernizationGoals", "projectUrgency"),
)

GENERAL_CONTACT_PROPERTIES: Dict[str, Any] = {
    "businessName": text("Business name is required", required=True, max_length=200),
    "firstName": text("First name is required", required=True, max_length=100),
    "lastName": text("Last name is required", required=True, max_length=100),
    "email": email("Please enter a valid email address"),
    "message": text("Message is required", required=True),
}

GENERAL_CONTACT_SCHEMA = object_schema(GENERAL_CONTACT_PROPERTIES, required=tuple(GENERAL_CONTACT_PROPERTIES))

CONTACT_SCHEMA = object_schema(
    {
        "name": text("Name is required", required=True, max_length=200),
        "email": email(),
        "phone": text(nullable=True, max_length=50),
        "company": text(nullable=True, max_length=200),
        "interest": text(nullable=True, max_length=200),
        "message": text(nullable=True),
    },
    required=("name", "email"),
)

NEWSLETTER_SCHEMA = object_schema({"email": email()}, required=("email",))

BOOKING_SCHEMA = object_schema(
    {
        "name": text("Full name is required", required=True, max_length=200),
        "email": email(),
        "phone": text("Phone number is required", required=True, max_length=50),
        "company": text("Company name is required", required=True, max_length=200),
        "date": {
            "type": "string",
            "pattern": r"^\d{4}-\d{2}-\d{2}([T ].*)?$",
            "errorMessage": "Please choose a valid date",
        },
        "time": {
            "type": "string",
            "enum": [slot.time for slot in TIME_SLOTS],
            "errorMessage": "Please select an available time slot",
        },
    },
    required=("name", "email", "phone", "company", "date", "time"),
)

USER_SCHEMA = object_schema(
    {
        "username": text("Username is required", required=True, max_length=100),
        "password": text("Password is required", required=True, max_length=200),
    },
    required=("username", "password"),
)

ENTITY_SCHEMAS: Dict[FormKind, Dict[str, Any]] = {
    FormKind.ASSESSMENT: ASSESSMENT_SCHEMA,
    FormKind.ASSESSMENT_SUBMISSION: ASSESSMENT_SUBMISSION_SCHEMA,
    FormKind.INTAKE: INTAKE_SCHEMA,
    FormKind.GENERAL_CONTACT: GENERAL_CONTACT_SCHEMA,
    FormKind.CONTACT: CONTACT_SCHEMA,
    FormKind.NEWSLETTER: NEWSLETTER_SCHEMA,
    FormKind.BOOKING: BOOKING_SCHEMA,
}


__all__ = [
    "OTHER_OPTION",
    "ASSESSMENT_SCHEMA",
    "ASSESSMENT_UPDATE_SCHEMA",
    "ASSESSMENT_UPDATABLE_FIELDS",
    "AssessmentUpdate",
    "ASSESSMENT_SUBMISSION_SCHEMA",
    "INTAKE_SCHEMA",
    "GENERAL_CONTACT_SCHEMA",
    "CONTACT_SCHEMA",
    "NEWSLETTER_SCHEMA",
    "BOOKING_SCHEMA",
    "USER_SCHEMA",
    "ENTITY_SCHEMAS",
    "option_ids",
    "option_label",
]

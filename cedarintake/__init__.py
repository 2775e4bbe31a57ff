"""Cedar Intake: lead capture backend for a consultancy marketing site.

Cedar Intake accepts the site's public forms and turns them into leads:
- Landing-page and full AI readiness assessments
- Modernization intake requests and general contact messages
- Newsletter signups and consultation bookings

Protected forms are checked with reCAPTCHA v3, persisted, then forwarded
to ClickUp as tasks and acknowledged with a SendGrid confirmation email.
Forwarding is best-effort; a failed delivery never loses the submission.

Basic usage:
    >>> from cedarintake.storage import MemStorage
    >>> from cedarintake.app import create_app
    >>> app = create_app(storage=MemStorage())
    >>> app.title
    'Cedar Intake API'
"""

__version__ = "0.1.0"
__author__ = "Cedar Intake Team"

# Version info
VERSION = (0, 1, 0)

# Core exports
from cedarintake.app import create_app
from cedarintake.pipeline import SubmissionPipeline
from cedarintake.storage import MemStorage
from cedarintake.wizard import FormWizard

# Package metadata
__all__ = [
    "__version__",
    "VERSION",
    "create_app",
    "FormWizard",
    "MemStorage",
    "SubmissionPipeline",
]

"""reCAPTCHA v3 bot-token verification.

Public forms send a reCAPTCHA token with every submission. The verifier
checks it against Google's siteverify endpoint, scoped to the action the
form executed, and rejects low scores.

Two client-side sentinels are accepted as reduced-trust successes: the
browser sends ``RECAPTCHA_LOAD_FAILED`` when the reCAPTCHA script could not
be loaded and ``RECAPTCHA_EXECUTE_FAILED`` when it loaded but could not
produce a token. Both substitute ``REDUCED_TRUST_SCORE`` for a real score,
so a blocked third-party script never locks visitors out of the forms.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from requests.exceptions import RequestException

logger = logging.getLogger(__name__)

RECAPTCHA_VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"
MINIMUM_SCORE = 0.5
REDUCED_TRUST_SCORE = 0.3
DEFAULT_TIMEOUT_SECONDS = 10

SCRIPT_LOAD_FAILED = "RECAPTCHA_LOAD_FAILED"
EXECUTE_FAILED = "RECAPTCHA_EXECUTE_FAILED"

SENTINEL_TOKENS = {
    SCRIPT_LOAD_FAILED: "client script failed to load",
    EXECUTE_FAILED: "client could not execute reCAPTCHA",
}


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a token verification.

    Attributes:
        success: Whether the submission may proceed
        score: Trust score (0.0 - 1.0), substituted for sentinels
        error: Caller-facing message when verification failed
        reduced_trust: True when a sentinel stood in for a real token
    """
    success: bool
    score: Optional[float] = None
    error: Optional[str] = None
    reduced_trust: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {"success": self.success, "reducedTrust": self.reduced_trust}
        if self.score is not None:
            result["score"] = self.score
        if self.error is not None:
            result["error"] = self.error
        return result


class RecaptchaVerifier:
    """Verifies reCAPTCHA v3 tokens.

    Attributes:
        secret_key: Server-side reCAPTCHA secret; verification is skipped when empty
        minimum_score: Scores below this threshold are rejected
        timeout: Request timeout in seconds

    Examples:
        >>> verifier = RecaptchaVerifier(secret_key="")
        >>> verifier.verify("any-token", "contact_form").success
        True
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        minimum_score: float = MINIMUM_SCORE,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.secret_key = secret_key or ""
        self.minimum_score = minimum_score
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)

    def verify(self, token: Optional[str], expected_action: Optional[str] = None) -> VerificationResult:
        """Verify a token for the given action.

        Args:
            token: Token produced by the browser, or a sentinel
            expected_action: Action name the token must have been issued for

        Returns:
            VerificationResult; failures carry a generic, caller-safe message
        """
        if not self.configured:
            logger.warning("RECAPTCHA_SECRET_KEY not configured, skipping verification")
            return VerificationResult(success=True, score=1.0)

        if not token:
            logger.warning("reCAPTCHA token missing (action=%s)", expected_action)
            return VerificationResult(success=False, error="Security verification required")

        if token in SENTINEL_TOKENS:
            logger.warning(
                "reCAPTCHA unavailable on client (%s, action=%s); accepting with reduced trust",
                SENTINEL_TOKENS[token],
                expected_action,
            )
            return VerificationResult(success=True, score=REDUCED_TRUST_SCORE, reduced_trust=True)

        try:
            response = self.session.post(
                RECAPTCHA_VERIFY_URL,
                data={"secret": self.secret_key, "response": token},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (RequestException, ValueError) as e:
            logger.error("reCAPTCHA verification error: %s", e)
            return VerificationResult(success=False, error="Security verification temporarily unavailable")

        if not data.get("success"):
            error_codes = ", ".join(data.get("error-codes") or []) or "Unknown error"
            logger.error("reCAPTCHA verification failed: %s", error_codes)
            return VerificationResult(success=False, error="Security verification failed")

        score = data.get("score")
        if score is not None and score < self.minimum_score:
            logger.warning("reCAPTCHA score too low: %s (action=%s)", score, expected_action)
            return VerificationResult(
                success=False,
                score=score,
                error="Security verification failed. Please try again.",
            )

        if expected_action and data.get("action") != expected_action:
            logger.warning(
                "reCAPTCHA action mismatch: expected %s, got %s", expected_action, data.get("action")
            )
            return VerificationResult(success=False, score=score, error="Security verification failed")

        return VerificationResult(success=True, score=score)


__all__ = [
    "RecaptchaVerifier",
    "VerificationResult",
    "SCRIPT_LOAD_FAILED",
    "EXECUTE_FAILED",
    "REDUCED_TRUST_SCORE",
    "RECAPTCHA_VERIFY_URL",
]

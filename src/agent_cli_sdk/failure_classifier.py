"""Deterministic classification of failed vendor CLI runs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

FAILURE_CLASSIFIER_VERSION = 1


class FailureClass(str, Enum):
    """Normalized failure classes reported in ``ExecutionResponse.error``."""

    ACCESS_OR_AUTH = "access_or_auth"
    BILLING_OR_QUOTA = "billing_or_quota"
    MODEL_NOT_AVAILABLE = "model_not_available"
    RATE_LIMITED = "rate_limited"
    EXECUTION_FAILED = "execution_failed"


_ERROR_CODES: dict[FailureClass, str] = {
    FailureClass.ACCESS_OR_AUTH: "AUTHENTICATION_ERROR",
    FailureClass.BILLING_OR_QUOTA: "QUOTA_EXCEEDED",
    FailureClass.MODEL_NOT_AVAILABLE: "MODEL_NOT_AVAILABLE",
    FailureClass.RATE_LIMITED: "RATE_LIMITED",
    FailureClass.EXECUTION_FAILED: "EXECUTION_FAILED",
}

_ACCESS_OR_AUTH_PATTERNS: tuple[str, ...] = (
    "not logged in",
    "not authenticated",
    "please run /login",
    "please run `codex login`",
    "invalid api key",
    "invalid x-api-key",
    "oauth token has expired",
    "authentication_error",
    "authentication failed",
    "unauthorized",
)
_BILLING_OR_QUOTA_PATTERNS: tuple[str, ...] = (
    "credit balance is too low",
    "insufficient_quota",
    "quota exceeded",
    "usage limit",
    "billing",
)
_MODEL_NOT_AVAILABLE_PATTERNS: tuple[str, ...] = (
    "model not found",
    "unknown model",
    "unsupported model",
    "invalid model",
    "model is not available",
)
_RATE_LIMIT_PATTERNS: tuple[str, ...] = (
    "rate limit",
    "rate_limit_error",
    "too many requests",
    "overloaded",
)

_RULES: tuple[tuple[FailureClass, str, tuple[str, ...]], ...] = (
    (FailureClass.ACCESS_OR_AUTH, "access_or_auth", _ACCESS_OR_AUTH_PATTERNS),
    (FailureClass.BILLING_OR_QUOTA, "billing_or_quota", _BILLING_OR_QUOTA_PATTERNS),
    (FailureClass.MODEL_NOT_AVAILABLE, "model_not_available", _MODEL_NOT_AVAILABLE_PATTERNS),
    (FailureClass.RATE_LIMITED, "rate_limit", _RATE_LIMIT_PATTERNS),
)


@dataclass(slots=True)
class FailureClassification:
    """Normalized failure classification result."""

    failure_class: FailureClass
    reason_code: str
    matched_rule: str
    matched_pattern: str | None

    @property
    def error_code(self) -> str:
        return _ERROR_CODES[self.failure_class]

    @property
    def is_authentication_failure(self) -> bool:
        return self.failure_class == FailureClass.ACCESS_OR_AUTH

    def to_details(self, *, agent: str, exit_code: int) -> dict[str, object]:
        """Serialize classifier diagnostics for ``ResponseError.details``."""

        return {
            "classifier_version": FAILURE_CLASSIFIER_VERSION,
            "agent": agent,
            "exit_code": exit_code,
            "reason_code": self.reason_code,
            "matched_rule": self.matched_rule,
            "matched_pattern": self.matched_pattern,
        }


def classify_failure(*, agent: str, error_text: str, stderr: str) -> FailureClassification:
    """Classify a failed run from vendor-reported error text and stderr.

    Only error markers and stderr are matched, never assistant text.
    """

    haystack = f"{stderr}\n{error_text}".lower()
    for failure_class, rule, patterns in _RULES:
        pattern = _first_match(haystack, patterns)
        if pattern is not None:
            return FailureClassification(
                failure_class=failure_class,
                reason_code=f"{agent}_{rule}",
                matched_rule=rule,
                matched_pattern=pattern,
            )

    return FailureClassification(
        failure_class=FailureClass.EXECUTION_FAILED,
        reason_code=f"{agent}_execution_failed",
        matched_rule="fallback",
        matched_pattern=None,
    )


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None

from __future__ import annotations

import allure
import pytest

from agent_cli_sdk.failure_classifier import (
    FAILURE_CLASSIFIER_VERSION,
    FailureClass,
    classify_failure,
)

pytestmark = [
    allure.epic("Error Handling"),
    allure.feature("Failure Classification"),
]


def test_classifier_version_is_stable() -> None:
    assert FAILURE_CLASSIFIER_VERSION == 1


def test_classifier_prefers_auth_over_rate_limit() -> None:
    classified = classify_failure(
        agent="claude",
        error_text="rate limit reached",
        stderr="Error: Invalid API key",
    )

    assert classified.failure_class == FailureClass.ACCESS_OR_AUTH
    assert classified.is_authentication_failure is True
    assert classified.error_code == "AUTHENTICATION_ERROR"
    assert classified.matched_pattern == "invalid api key"


@pytest.mark.parametrize(
    ("stderr", "failure_class", "error_code"),
    [
        ("Credit balance is too low", FailureClass.BILLING_OR_QUOTA, "QUOTA_EXCEEDED"),
        ("Unknown model: gpt-0", FailureClass.MODEL_NOT_AVAILABLE, "MODEL_NOT_AVAILABLE"),
        ("API Error: Overloaded", FailureClass.RATE_LIMITED, "RATE_LIMITED"),
    ],
)
def test_classifier_maps_stderr_patterns(
    stderr: str,
    failure_class: FailureClass,
    error_code: str,
) -> None:
    classified = classify_failure(agent="codex", error_text="", stderr=stderr)

    assert classified.failure_class == failure_class
    assert classified.error_code == error_code
    assert classified.reason_code.startswith("codex_")


def test_classifier_matches_vendor_error_text() -> None:
    classified = classify_failure(
        agent="codex",
        error_text="You've hit your usage limit.",
        stderr="",
    )

    assert classified.failure_class == FailureClass.BILLING_OR_QUOTA
    assert classified.reason_code == "codex_billing_or_quota"


def test_classifier_falls_back_to_execution_failed() -> None:
    classified = classify_failure(agent="claude", error_text="boom", stderr="Traceback ...")

    assert classified.failure_class == FailureClass.EXECUTION_FAILED
    assert classified.matched_rule == "fallback"
    assert classified.matched_pattern is None
    assert classified.to_details(agent="claude", exit_code=2) == {
        "classifier_version": 1,
        "agent": "claude",
        "exit_code": 2,
        "reason_code": "claude_execution_failed",
        "matched_rule": "fallback",
        "matched_pattern": None,
    }

from __future__ import annotations

import allure

from task_bridge.orchestrator.errors import ProcessError, ProcessTimeoutError
from task_bridge.orchestrator.failure_classifier import (
    PROCESS_FAILURE_CLASSIFIER_VERSION,
    classify_process_failure,
)
from task_bridge.orchestrator.models import ErrorType

pytestmark = [
    allure.epic("Task Engine"),
    allure.feature("Failure Classification"),
]


def test_classifier_version_is_stable() -> None:
    assert PROCESS_FAILURE_CLASSIFIER_VERSION == 1


def test_timeout_wins_over_output_patterns() -> None:
    classified = classify_process_failure(
        ProcessTimeoutError("timed out", signal=15, stderr="quota exceeded"),
    )

    assert classified.error_type == ErrorType.TIMEOUT
    assert classified.matched_rule == "timeout"
    assert classified.recoverable is True


def test_spawn_failure_maps_to_system() -> None:
    classified = classify_process_failure(ProcessError("not found", stderr="No such file"))

    assert classified.error_type == ErrorType.SYSTEM
    assert classified.matched_rule == "spawn_failed"
    assert classified.recoverable is False


def test_quota_maps_to_recoverable_api_error() -> None:
    classified = classify_process_failure(
        ProcessError("exit 1", exit_code=1, stderr="Quota exceeded for this project"),
    )

    assert classified.error_type == ErrorType.API
    assert classified.matched_rule == "api_quota"
    assert classified.matched_pattern == "quota"
    assert classified.recoverable is True


def test_permission_failure() -> None:
    classified = classify_process_failure(
        ProcessError("exit 1", exit_code=1, stderr="Error: Invalid API key provided"),
    )

    assert classified.error_type == ErrorType.PERMISSION
    assert classified.matched_pattern == "invalid api key"


def test_network_failure_reads_stdout_too() -> None:
    classified = classify_process_failure(
        ProcessError("exit 1", exit_code=1, stdout="connection refused by upstream"),
    )

    assert classified.error_type == ErrorType.NETWORK
    assert classified.recoverable is True


def test_unknown_failure_falls_back_to_system() -> None:
    classified = classify_process_failure(
        ProcessError("exit 2", exit_code=2, stderr="something odd"),
    )

    assert classified.error_type == ErrorType.SYSTEM
    assert classified.matched_rule == "fallback_system"
    assert classified.matched_pattern is None

"""Deterministic classification of assistant CLI failures into error entries."""

from __future__ import annotations

from dataclasses import dataclass

from task_bridge.orchestrator.errors import ProcessError
from task_bridge.orchestrator.models import ErrorType

PROCESS_FAILURE_CLASSIFIER_VERSION = 1

_API_QUOTA_PATTERNS: tuple[str, ...] = (
    "quota",
    "resource_exhausted",
    "insufficient",
    "billing",
    "credits",
    "usage limit",
    "too many requests",
    "rate limit",
    "429",
    "overloaded",
)
_PERMISSION_PATTERNS: tuple[str, ...] = (
    "unauthorized",
    "forbidden",
    "permission denied",
    "invalid api key",
    "authentication",
    "not logged in",
)
_NETWORK_PATTERNS: tuple[str, ...] = (
    "temporarily unavailable",
    "temporary failure",
    "connection reset",
    "connection refused",
    "network error",
    "could not resolve host",
    "dns",
)


@dataclass(slots=True)
class ProcessFailureClassification:
    """Normalized failure classification result."""

    error_type: ErrorType
    recoverable: bool
    matched_rule: str
    matched_pattern: str | None


def classify_process_failure(error: ProcessError) -> ProcessFailureClassification:
    """Map a process failure onto an error entry type; first matching rule wins."""

    if error.timed_out:
        return ProcessFailureClassification(
            error_type=ErrorType.TIMEOUT,
            recoverable=True,
            matched_rule="timeout",
            matched_pattern=None,
        )

    if error.exit_code is None and error.signal is None:
        return ProcessFailureClassification(
            error_type=ErrorType.SYSTEM,
            recoverable=False,
            matched_rule="spawn_failed",
            matched_pattern=None,
        )

    haystack = f"{error.stderr}\n{error.stdout}".lower()

    pattern = _first_match(haystack, _API_QUOTA_PATTERNS)
    if pattern is not None:
        return ProcessFailureClassification(
            error_type=ErrorType.API,
            recoverable=True,
            matched_rule="api_quota",
            matched_pattern=pattern,
        )

    pattern = _first_match(haystack, _PERMISSION_PATTERNS)
    if pattern is not None:
        return ProcessFailureClassification(
            error_type=ErrorType.PERMISSION,
            recoverable=False,
            matched_rule="permission",
            matched_pattern=pattern,
        )

    pattern = _first_match(haystack, _NETWORK_PATTERNS)
    if pattern is not None:
        return ProcessFailureClassification(
            error_type=ErrorType.NETWORK,
            recoverable=True,
            matched_rule="network",
            matched_pattern=pattern,
        )

    return ProcessFailureClassification(
        error_type=ErrorType.SYSTEM,
        recoverable=False,
        matched_rule="fallback_system",
        matched_pattern=None,
    )


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None

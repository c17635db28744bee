from __future__ import annotations

from datetime import UTC, datetime, timedelta

import allure

from task_bridge.orchestrator.classifier import (
    TASK_CLASSIFIER_VERSION,
    classify_prompt,
    estimate_completion,
)
from task_bridge.orchestrator.models import ArchivePriority, TaskType

pytestmark = [
    allure.epic("Task Engine"),
    allure.feature("Prompt Classification"),
]


def test_classifier_version_is_stable() -> None:
    assert TASK_CLASSIFIER_VERSION == 1


def test_file_operation_prompt_is_archived_with_low_priority() -> None:
    classification = classify_prompt("Create file x.txt")

    assert classification.task_type == TaskType.FILE_OPERATION
    assert classification.complexity_score == 1
    assert classification.should_archive is True
    assert classification.archive_priority == ArchivePriority.LOW
    assert classification.archive_tags == ["file-ops"]


def test_first_matching_rule_wins() -> None:
    classification = classify_prompt("Edit the script")

    assert classification.task_type == TaskType.FILE_OPERATION
    assert classification.archive_tags == ["file-ops"]


def test_analysis_prompt_gets_medium_priority() -> None:
    classification = classify_prompt("Review the module")

    assert classification.task_type == TaskType.ANALYSIS
    assert classification.should_archive is True
    assert classification.archive_priority == ArchivePriority.MEDIUM


def test_step_indicator_forces_multi_step_and_high_priority() -> None:
    classification = classify_prompt("Write tests then commit")

    assert classification.task_type == TaskType.MULTI_STEP
    assert classification.complexity_score == 3
    assert classification.archive_priority == ArchivePriority.HIGH
    assert classification.archive_tags == ["file-ops", "multi-step"]


def test_step_indicator_must_be_a_whole_word() -> None:
    classification = classify_prompt("Summarize another standard report")

    assert classification.task_type == TaskType.OTHER
    assert classification.should_archive is False
    assert classification.archive_priority == ArchivePriority.LOW
    assert classification.archive_tags == []


def test_long_prompt_raises_complexity_and_is_clamped() -> None:
    assert classify_prompt("x" * 650).complexity_score == 7
    assert classify_prompt("x" * 650).archive_priority == ArchivePriority.HIGH
    assert classify_prompt("x" * 5000).complexity_score == 10


def test_estimate_completion_uses_keywords_and_length() -> None:
    started = datetime(2026, 1, 1, tzinfo=UTC)

    assert estimate_completion("hello", started) == started + timedelta(minutes=2)
    assert estimate_completion("search the docs", started) == started + timedelta(minutes=3)
    assert estimate_completion("summarize this", started) == started + timedelta(minutes=4)
    assert estimate_completion("create a page", started) == started + timedelta(minutes=5)
    assert estimate_completion("create " + "x" * 600, started) == started + timedelta(minutes=7)

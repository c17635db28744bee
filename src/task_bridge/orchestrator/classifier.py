"""Deterministic keyword classification of task prompts."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta

from task_bridge.orchestrator.models import ArchivePriority, TaskClassification, TaskType

TASK_CLASSIFIER_VERSION = 1


@dataclass(frozen=True, slots=True)
class TypeRule:
    """Keyword rule; the first rule with any keyword present wins."""

    task_type: TaskType
    keywords: tuple[str, ...]
    tag: str


TYPE_RULES: tuple[TypeRule, ...] = (
    TypeRule(TaskType.FILE_OPERATION, ("file", "create", "write", "edit"), "file-ops"),
    TypeRule(TaskType.CODE_GENERATION, ("generate", "code", "script"), "code-gen"),
    TypeRule(TaskType.ANALYSIS, ("analyze", "review", "examine"), "analysis"),
    TypeRule(TaskType.SEARCH, ("search", "find", "research"), "search"),
    TypeRule(TaskType.GIT_OPERATION, ("git", "commit", "push", "branch"), "git"),
    TypeRule(TaskType.TERMINAL_COMMAND, ("run", "execute", "command"), "terminal"),
)

STEP_INDICATORS: tuple[str, ...] = ("then", "after", "next", "finally", "also", "and")
_STEP_PATTERN = re.compile(r"\b(?:" + "|".join(STEP_INDICATORS) + r")\b")

_MEDIUM_PRIORITY_TYPES = frozenset(
    {TaskType.CODE_GENERATION, TaskType.ANALYSIS, TaskType.GIT_OPERATION},
)
_LOW_PRIORITY_ARCHIVED_TYPES = frozenset({TaskType.FILE_OPERATION, TaskType.SEARCH})

_MIN_COMPLEXITY = 1
_MAX_COMPLEXITY = 10
_HIGH_COMPLEXITY = 7
_MEDIUM_COMPLEXITY = 4
_MULTI_STEP_BONUS = 2


def classify_prompt(prompt: str) -> TaskClassification:
    """Classify prompt into task type, complexity and archival policy."""

    lowered = prompt.lower()
    task_type = TaskType.OTHER
    tags: list[str] = []

    for rule in TYPE_RULES:
        if any(keyword in lowered for keyword in rule.keywords):
            task_type = rule.task_type
            tags.append(rule.tag)
            break

    complexity = _clamp(len(prompt) // 100 + 1)

    if _STEP_PATTERN.search(lowered) is not None:
        task_type = TaskType.MULTI_STEP
        complexity = _clamp(complexity + _MULTI_STEP_BONUS)
        tags.append("multi-step")

    should_archive = False
    priority = ArchivePriority.LOW
    if complexity >= _HIGH_COMPLEXITY or task_type == TaskType.MULTI_STEP:
        priority = ArchivePriority.HIGH
        should_archive = True
    elif complexity >= _MEDIUM_COMPLEXITY or task_type in _MEDIUM_PRIORITY_TYPES:
        priority = ArchivePriority.MEDIUM
        should_archive = True
    elif task_type in _LOW_PRIORITY_ARCHIVED_TYPES:
        should_archive = True

    return TaskClassification(
        task_type=task_type,
        complexity_score=complexity,
        should_archive=should_archive,
        archive_priority=priority,
        archive_tags=tags,
    )


def estimate_completion(prompt: str, started_at: datetime) -> datetime:
    """Rough completion estimate from prompt keywords and length."""

    lowered = prompt.lower()
    minutes = 2
    if "search" in lowered or "research" in lowered:
        minutes = 3
    if "analyze" in lowered or "summarize" in lowered:
        minutes = 4
    if "create" in lowered or "generate" in lowered:
        minutes = 5
    if len(prompt) > 500:
        minutes += 2
    return started_at + timedelta(minutes=minutes)


def _clamp(score: int) -> int:
    return min(_MAX_COMPLEXITY, max(_MIN_COMPLEXITY, score))

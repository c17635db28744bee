"""Long-form rendering of finished status records for archival memory."""

from __future__ import annotations

from typing import Any

from task_bridge.orchestrator.models import TaskStatus, TaskStatusRecord

COMPLEX_TASK_THRESHOLD = 7


def archival_tags(record: TaskStatusRecord) -> list[str]:
    """Searchable tags: type, classifier tags, outcome and complexity."""

    tags = [record.task_type.value, *record.archive_tags]
    if record.status == TaskStatus.COMPLETED:
        tags.append("completed")
    elif record.status == TaskStatus.FAILED:
        tags.append("failed")
    if record.complexity_score >= COMPLEX_TASK_THRESHOLD:
        tags.append("complex")
    return tags


def archival_metadata(record: TaskStatusRecord) -> dict[str, Any]:
    finished_at = record.completed_at or record.updated_at
    return {
        "task_id": record.task_id,
        "task_type": record.task_type.value,
        "complexity_score": record.complexity_score,
        "archive_priority": record.archive_priority.value,
        "status": record.status.value,
        "execution_time_ms": record.execution_time_ms,
        "timestamp": finished_at.isoformat(),
        "tags": archival_tags(record),
    }


def format_record_for_archival(record: TaskStatusRecord) -> str:  # noqa: C901
    """Render header, request, progress, result, outputs, performance, issues and tags."""

    lines: list[str] = [
        f"# Claude Code Task: {record.task_id}",
        f"**Status:** {record.status.value}",
        f"**Type:** {record.task_type.value}",
        f"**Complexity:** {record.complexity_score}/10",
        f"**Started:** {record.started_at.isoformat()}",
    ]
    if record.completed_at is not None:
        lines.append(f"**Completed:** {record.completed_at.isoformat()}")
    if record.execution_time_ms:
        lines.append(f"**Duration:** {round(record.execution_time_ms / 1000)}s")
    lines.append("")

    lines.extend(["## Original Request", record.prompt, ""])

    if record.total_steps > 0:
        lines.append("## Progress")
        lines.append(
            f"Completed {record.steps_completed}/{record.total_steps} steps "
            f"({record.progress_percentage}%)",
        )
        if record.current_step:
            lines.append(f"Final step: {record.current_step}")
        lines.append("")

    if record.result:
        lines.extend(["## Result", record.result, ""])

    if record.files_created or record.files_modified or record.commands_executed:
        lines.append("## Outputs")
        for title, items in (
            ("Files Created", record.files_created),
            ("Files Modified", record.files_modified),
            ("Commands Executed", record.commands_executed),
        ):
            if items:
                lines.append(f"**{title}:**")
                lines.extend(f"- {item}" for item in items)
        lines.append("")

    if record.memory_usage_mb or record.cpu_usage_percent:
        lines.append("## Performance")
        if record.memory_usage_mb:
            lines.append(f"Memory: {record.memory_usage_mb}MB")
        if record.cpu_usage_percent:
            lines.append(f"CPU: {record.cpu_usage_percent}%")
        lines.append("")

    if record.errors or record.warnings:
        lines.append("## Issues")
        if record.errors:
            lines.append("**Errors:**")
            for error in record.errors:
                lines.append(f"- [{error.error_type.value}] {error.message}")
                if error.details:
                    lines.append(f"  Details: {error.details}")
        if record.warnings:
            lines.append("**Warnings:**")
            lines.extend(
                f"- [{warning.warning_type.value}] {warning.message}" for warning in record.warnings
            )
        lines.append("")

    lines.append(f"## Tags: {', '.join(archival_tags(record))}")
    return "\n".join(lines)

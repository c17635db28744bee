from __future__ import annotations

from datetime import UTC, datetime

import allure

from task_bridge.memory import archival_metadata, archival_tags, format_record_for_archival
from task_bridge.orchestrator.models import (
    ErrorType,
    TaskError,
    TaskStatus,
    TaskStatusRecord,
    TaskType,
)

pytestmark = [
    allure.epic("Status Store"),
    allure.feature("Archival"),
]

STARTED = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
COMPLETED = datetime(2026, 3, 1, 12, 2, tzinfo=UTC)


def _finished_record(**overrides) -> TaskStatusRecord:
    values = {
        "task_id": "task_9",
        "agent_id": "agent-1",
        "prompt": "Write tests then commit",
        "started_at": STARTED,
        "updated_at": COMPLETED,
        "completed_at": COMPLETED,
        "status": TaskStatus.COMPLETED,
        "task_type": TaskType.MULTI_STEP,
        "complexity_score": 3,
        "archive_tags": ["file-ops", "multi-step"],
        "result": "All tests pass.",
        "execution_time_ms": 120_000,
        "total_steps": 2,
        "steps_completed": 2,
        "progress_percentage": 100,
        "current_step": "Completed",
    }
    values.update(overrides)
    return TaskStatusRecord(**values)


def test_tags_include_outcome_and_complexity() -> None:
    assert archival_tags(_finished_record()) == ["multi_step", "file-ops", "multi-step", "completed"]
    assert archival_tags(
        _finished_record(status=TaskStatus.FAILED, complexity_score=8, archive_tags=[]),
    ) == ["multi_step", "failed", "complex"]


def test_metadata_uses_completion_time() -> None:
    metadata = archival_metadata(_finished_record())

    assert metadata["task_id"] == "task_9"
    assert metadata["timestamp"] == COMPLETED.isoformat()
    assert metadata["execution_time_ms"] == 120_000


def test_document_sections() -> None:
    record = _finished_record(
        files_created=["tests/test_x.py"],
        errors=[
            TaskError(
                timestamp=COMPLETED,
                error_type=ErrorType.NETWORK,
                message="retry needed",
                details="connection reset",
            ),
        ],
    )

    text = format_record_for_archival(record)

    assert text.splitlines()[0] == "# Claude Code Task: task_9"
    assert "**Duration:** 120s" in text
    assert "## Original Request\nWrite tests then commit" in text
    assert "Completed 2/2 steps (100%)" in text
    assert "## Result\nAll tests pass." in text
    assert "**Files Created:**\n- tests/test_x.py" in text
    assert "- [network] retry needed\n  Details: connection reset" in text
    assert text.endswith("## Tags: multi_step, file-ops, multi-step, completed")


def test_document_skips_empty_sections() -> None:
    text = format_record_for_archival(_finished_record(result=None, execution_time_ms=None))

    assert "## Result" not in text
    assert "## Outputs" not in text
    assert "## Issues" not in text
    assert "**Duration:**" not in text

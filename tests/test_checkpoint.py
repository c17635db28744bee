from __future__ import annotations

import allure
import pytest

from task_bridge.orchestrator.checkpoint import (
    CheckpointMonitor,
    compile_checkpoint_pattern,
    monitor,
)
from task_bridge.orchestrator.errors import ValidationError

pytestmark = [
    allure.epic("Task Engine"),
    allure.feature("Checkpoint Monitor"),
]


def test_invalid_pattern_is_rejected() -> None:
    with pytest.raises(ValidationError, match="Invalid checkpoint pattern"):
        compile_checkpoint_pattern("[invalid(regex")


def test_empty_pattern_is_rejected() -> None:
    with pytest.raises(ValidationError):
        compile_checkpoint_pattern("")


def test_pattern_is_case_insensitive() -> None:
    result = monitor(["working\n", "Ready for review\n", "done\n"], compile_checkpoint_pattern("READY"))

    assert result.checkpoint_reached is True
    assert result.trigger_text == "Ready for review"
    assert result.text == "working\nReady for review\ndone\n"


def test_first_matching_chunk_is_kept() -> None:
    watcher = CheckpointMonitor(compile_checkpoint_pattern(r"step \d"))
    watcher.feed("step 1 finished\n")
    watcher.feed("step 2 finished\n")

    assert watcher.result().trigger_text == "step 1 finished"


def test_no_match_reports_unreached() -> None:
    result = monitor(["all good\n"], compile_checkpoint_pattern("READY"))

    assert result.checkpoint_reached is False
    assert result.trigger_text is None

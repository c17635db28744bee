from __future__ import annotations

from pathlib import Path

import allure
import pytest

from task_bridge.orchestrator.backend import (
    CliProcessInvoker,
    InvokeRequest,
    build_cli_args,
    resolve_cli_executable,
)
from task_bridge.orchestrator.backend.echo_agent import ECHO_SESSION_ID
from task_bridge.orchestrator.backend.output import parse_cli_output
from task_bridge.orchestrator.errors import ProcessError, ProcessTimeoutError, ValidationError
from task_bridge.orchestrator.failure_classifier import classify_process_failure
from task_bridge.orchestrator.models import ErrorType

pytestmark = [
    allure.epic("Task Engine"),
    allure.feature("Process Invoker"),
]


def _request(executable: Path | str, prompt: str, cwd: Path, **overrides) -> InvokeRequest:
    values = {
        "executable": str(executable),
        "args": build_cli_args(prompt),
        "cwd": cwd,
        "timeout_seconds": 20.0,
    }
    values.update(overrides)
    return InvokeRequest(**values)


def test_build_cli_args_orders_flags_before_prompt() -> None:
    assert build_cli_args("hi") == ["--dangerously-skip-permissions", "-p", "hi"]
    assert build_cli_args(
        "hi",
        skip_permissions=False,
        session_id="s-1",
        output_format="json",
    ) == ["--resume", "s-1", "--output-format", "json", "-p", "hi"]


def test_resolve_prefers_absolute_override(tmp_path: Path) -> None:
    assert resolve_cli_executable("/opt/bin/claude", local_install_path=str(tmp_path / "x")) == (
        "/opt/bin/claude"
    )


def test_resolve_rejects_relative_override_path() -> None:
    with pytest.raises(ValidationError):
        resolve_cli_executable("bin/claude")


def test_resolve_uses_local_install_when_present(tmp_path: Path) -> None:
    local = tmp_path / "claude"
    local.write_text("#!/bin/sh\n", encoding="utf-8")

    assert resolve_cli_executable(None, local_install_path=str(local)) == str(local)


def test_resolve_falls_back_to_bare_name(tmp_path: Path) -> None:
    missing = str(tmp_path / "missing")

    assert resolve_cli_executable(None, local_install_path=missing) == "claude"
    assert resolve_cli_executable("claude-beta", local_install_path=missing) == "claude-beta"


def test_invoke_streams_stdout_lines(fake_cli: Path, tmp_path: Path) -> None:
    chunks: list[str] = []

    result = CliProcessInvoker().invoke(
        _request(fake_cli, "Hello [say:line one]", tmp_path, on_stdout=chunks.append),
    )

    assert result.exit_code == 0
    assert result.stdout == "line one\ndone\n"
    assert chunks == ["line one\n", "done\n"]
    assert result.duration_ms >= 0


def test_invoke_runs_in_requested_directory(fake_cli: Path, tmp_path: Path) -> None:
    work_dir = tmp_path / "work"
    work_dir.mkdir()

    result = CliProcessInvoker().invoke(_request(fake_cli, "[pwd]", work_dir))

    assert Path(result.stdout.splitlines()[0]).resolve() == work_dir.resolve()


def test_observer_failure_does_not_break_invocation(fake_cli: Path, tmp_path: Path) -> None:
    def _explode(_chunk: str) -> None:
        raise RuntimeError("observer bug")

    result = CliProcessInvoker().invoke(_request(fake_cli, "hi", tmp_path, on_stdout=_explode))

    assert result.stdout == "done\n"


def test_nonzero_exit_carries_streams(fake_cli: Path, tmp_path: Path) -> None:
    with pytest.raises(ProcessError) as excinfo:
        CliProcessInvoker().invoke(
            _request(fake_cli, "[say:partial] [stderr:Quota exceeded] [exit:2]", tmp_path),
        )

    error = excinfo.value
    assert error.exit_code == 2
    assert error.timed_out is False
    assert error.stdout == "partial\n"
    assert "Quota exceeded" in error.stderr
    assert classify_process_failure(error).error_type == ErrorType.API


def test_timeout_terminates_process(fake_cli: Path, tmp_path: Path) -> None:
    with pytest.raises(ProcessTimeoutError) as excinfo:
        CliProcessInvoker().invoke(
            _request(fake_cli, "[sleep:10]", tmp_path, timeout_seconds=0.5),
        )

    assert excinfo.value.timed_out is True
    assert classify_process_failure(excinfo.value).error_type == ErrorType.TIMEOUT


def test_missing_executable_is_a_spawn_failure(tmp_path: Path) -> None:
    with pytest.raises(ProcessError) as excinfo:
        CliProcessInvoker().invoke(_request(tmp_path / "missing-cli", "hi", tmp_path))

    assert excinfo.value.exit_code is None
    assert classify_process_failure(excinfo.value).matched_rule == "spawn_failed"


def test_json_output_exposes_session(fake_cli: Path, tmp_path: Path) -> None:
    result = CliProcessInvoker().invoke(
        _request(
            fake_cli,
            "hi",
            tmp_path,
            args=build_cli_args("hi", output_format="json"),
        ),
    )

    parsed = parse_cli_output(result.stdout)
    assert parsed.result == "done"
    assert parsed.session_id == ECHO_SESSION_ID


def test_parse_plain_output_keeps_text() -> None:
    parsed = parse_cli_output("  line one\nline two\n")

    assert parsed.result == "line one\nline two"
    assert parsed.session_id is None


def test_parse_stream_output_last_session_wins() -> None:
    stdout = (
        '{"type": "system", "session_id": "s-1"}\n'
        "not json\n"
        '{"type": "result", "result": "final answer", "session_id": "s-2"}\n'
    )

    parsed = parse_cli_output(stdout)

    assert parsed.result == "final answer"
    assert parsed.session_id == "s-2"


def test_parse_ignores_non_object_json() -> None:
    assert parse_cli_output("[1, 2]").result == "[1, 2]"
    assert parse_cli_output("").result == ""

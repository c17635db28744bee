"""Controllers for task-bridge CLI commands."""

from __future__ import annotations

import json
from dataclasses import dataclass

from task_bridge.config import Settings
from task_bridge.orchestrator.classifier import classify_prompt
from task_bridge.orchestrator.engine import TaskEngine
from task_bridge.orchestrator.errors import ProcessError, ValidationError
from task_bridge.orchestrator.models import SubmitRequest


@dataclass(slots=True)
class RunCommand:
    """CLI input for a synchronous assistant run."""

    prompt: str
    work_folder: str | None
    session_id: str | None
    timeout_seconds: float | None


@dataclass(slots=True)
class SubmitCommand:
    """CLI input for an asynchronous task submission."""

    prompt: str
    agent_id: str
    work_folder: str | None
    session_id: str | None
    interaction_mode: str
    checkpoint_pattern: str | None
    max_iterations: int | None
    keep_records: int | None
    elevate: bool
    callback_url: str | None
    timeout_seconds: float | None


@dataclass(slots=True)
class ClassifyCommand:
    prompt: str
    as_json: bool


@dataclass(slots=True)
class CommandResult:
    """Lines to render plus the exit verdict."""

    lines: list[str]
    success: bool


class TaskCliController:
    """Builds the engine from environment settings and drives it for one command."""

    def run(self, command: RunCommand) -> CommandResult:
        settings = _settings(timeout_seconds=command.timeout_seconds)
        settings.memory.enabled = False
        with TaskEngine.from_settings(settings) as engine:
            try:
                output = engine.run_prompt(
                    command.prompt,
                    work_folder=command.work_folder,
                    session_id=command.session_id,
                )
            except ValidationError as error:
                return CommandResult(lines=[f"Invalid request: {error}"], success=False)
            except ProcessError as error:
                lines = [f"Assistant CLI failed: {error}"]
                if error.stderr.strip():
                    lines.append(error.stderr.strip())
                return CommandResult(lines=lines, success=False)
        return CommandResult(lines=[output], success=True)

    def submit(self, command: SubmitCommand) -> CommandResult:
        settings = _settings(timeout_seconds=command.timeout_seconds)
        with TaskEngine.from_settings(settings) as engine:
            try:
                handle = engine.submit(
                    SubmitRequest(
                        prompt=command.prompt,
                        agent_id=command.agent_id,
                        work_folder=command.work_folder,
                        session_id=command.session_id,
                        interaction_mode=command.interaction_mode,
                        checkpoint_pattern=command.checkpoint_pattern,
                        max_iterations=command.max_iterations,
                        keep_records=command.keep_records,
                        elevate=command.elevate,
                        callback_url=command.callback_url,
                    ),
                )
            except ValidationError as error:
                return CommandResult(lines=[f"Invalid request: {error}"], success=False)

            outcome = handle.wait()

        lines = [
            f"Task submitted: task_id={handle.task_id}",
            f"Task finished: status={outcome.status.value} "
            f"checkpoint_reached={str(outcome.checkpoint_reached).lower()} "
            f"notified={str(outcome.notified).lower()}",
        ]
        if outcome.session_id:
            lines.append(f"Session: {outcome.session_id}")
        if outcome.execution_time_ms is not None:
            lines.append(f"Duration: {outcome.execution_time_ms}ms")
        if outcome.success:
            lines.append(outcome.result or "")
        else:
            lines.append(f"Error ({_enum_value(outcome.error_type)}): {outcome.error}")
        return CommandResult(lines=lines, success=outcome.success)

    def classify(self, command: ClassifyCommand) -> list[str]:
        classification = classify_prompt(command.prompt)
        payload = {
            "task_type": classification.task_type.value,
            "complexity_score": classification.complexity_score,
            "should_archive": classification.should_archive,
            "archive_priority": classification.archive_priority.value,
            "archive_tags": classification.archive_tags,
        }
        if command.as_json:
            return [json.dumps(payload, sort_keys=True)]
        return [f"{key}={_render_value(value)}" for key, value in payload.items()]


def _settings(*, timeout_seconds: float | None) -> Settings:
    settings = Settings.from_env()
    if timeout_seconds is not None:
        settings.cli.execution_timeout_seconds = timeout_seconds
    settings.validate()
    return settings


def _enum_value(value: object) -> str:
    return getattr(value, "value", None) or "unknown"


def _render_value(value: object) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, list):
        return ",".join(str(item) for item in value) or "-"
    return str(value)

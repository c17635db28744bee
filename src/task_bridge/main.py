"""CLI entrypoint for task-bridge."""

import logging
from pathlib import Path

import rich_click as click

from task_bridge import __version__
from task_bridge.orchestrator.controllers import (
    ClassifyCommand,
    CommandResult,
    RunCommand,
    SubmitCommand,
    TaskCliController,
)
from task_bridge.orchestrator.models import InteractionMode

click.rich_click.USE_MARKDOWN = True
TASK_CONTROLLER = TaskCliController()


@click.group()
@click.version_option(version=__version__, prog_name="task-bridge")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")
def task_bridge(verbose: bool) -> None:
    """Run a coding-assistant CLI on behalf of remote agents."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@task_bridge.command("run")
@click.argument("prompt")
@click.option(
    "--work-folder",
    type=click.Path(path_type=Path),
    default=None,
    help="Directory to run the assistant in. Falls back to the home directory.",
)
@click.option("--session-id", default=None, help="Resume an existing assistant session.")
@click.option(
    "--timeout",
    "timeout_seconds",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Override the execution timeout, seconds.",
)
def run(
    prompt: str,
    work_folder: Path | None,
    session_id: str | None,
    timeout_seconds: float | None,
) -> None:
    """Run one prompt synchronously and print the assistant output."""

    _emit_result(
        _call(
            TASK_CONTROLLER.run,
            RunCommand(
                prompt=prompt,
                work_folder=str(work_folder) if work_folder else None,
                session_id=session_id,
                timeout_seconds=timeout_seconds,
            ),
        ),
        failure_message="Assistant run failed.",
    )


@task_bridge.command("submit")
@click.argument("prompt")
@click.option("--agent-id", required=True, help="Agent that owns the task and its status records.")
@click.option(
    "--work-folder",
    type=click.Path(path_type=Path),
    default=None,
    help="Directory to run the assistant in. Falls back to the home directory.",
)
@click.option("--session-id", default=None, help="Resume an existing assistant session.")
@click.option(
    "--interaction-mode",
    type=click.Choice([mode.value for mode in InteractionMode]),
    default=InteractionMode.AUTO.value,
    show_default=True,
    help="`checkpoint` watches output for --checkpoint-pattern.",
)
@click.option(
    "--checkpoint-pattern",
    default=None,
    help="Case-insensitive regex signalling a checkpoint in assistant output.",
)
@click.option(
    "--max-iterations",
    type=click.IntRange(min=1),
    default=None,
    help="Iteration limit for continuing the session after a checkpoint.",
)
@click.option(
    "--keep-records",
    type=click.IntRange(min=1, max=50),
    default=None,
    help="How many recent status records to keep attached to the agent.",
)
@click.option("--elevate", is_flag=True, default=False, help="Archive with high priority.")
@click.option("--callback-url", default=None, help="Explicit URL for the fallback callback.")
@click.option(
    "--timeout",
    "timeout_seconds",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Override the execution timeout, seconds.",
)
def submit(  # noqa: PLR0913
    prompt: str,
    agent_id: str,
    work_folder: Path | None,
    session_id: str | None,
    interaction_mode: str,
    checkpoint_pattern: str | None,
    max_iterations: int | None,
    keep_records: int | None,
    elevate: bool,
    callback_url: str | None,
    timeout_seconds: float | None,
) -> None:
    """Submit one asynchronous task, wait for its outcome and print it."""

    _emit_result(
        _call(
            TASK_CONTROLLER.submit,
            SubmitCommand(
                prompt=prompt,
                agent_id=agent_id,
                work_folder=str(work_folder) if work_folder else None,
                session_id=session_id,
                interaction_mode=interaction_mode,
                checkpoint_pattern=checkpoint_pattern,
                max_iterations=max_iterations,
                keep_records=keep_records,
                elevate=elevate,
                callback_url=callback_url,
                timeout_seconds=timeout_seconds,
            ),
        ),
        failure_message="Task failed.",
    )


@task_bridge.command("classify")
@click.argument("prompt")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print JSON.")
def classify(prompt: str, as_json: bool) -> None:
    """Show how a prompt would be classified for archival."""

    _emit_lines(TASK_CONTROLLER.classify(ClassifyCommand(prompt=prompt, as_json=as_json)))


def _call(handler, command):
    try:
        return handler(command)
    except ValueError as error:
        raise click.ClickException(str(error)) from error


def _emit_result(result: CommandResult, *, failure_message: str) -> None:
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException(failure_message)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    task_bridge()

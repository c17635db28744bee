"""Subprocess-based invoker for the coding-assistant CLI."""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import IO

from task_bridge.orchestrator.backend.base import InvokeRequest, InvokeResult
from task_bridge.orchestrator.errors import ProcessError, ProcessTimeoutError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_LOCAL_INSTALL_PATH = "~/.claude/local/claude"
DEFAULT_FALLBACK_NAME = "claude"
SKIP_PERMISSIONS_FLAG = "--dangerously-skip-permissions"

_POLL_INTERVAL_SECONDS = 0.1
_READER_JOIN_SECONDS = 5


def resolve_cli_executable(
    override: str | None,
    *,
    local_install_path: str = DEFAULT_LOCAL_INSTALL_PATH,
    fallback_name: str = DEFAULT_FALLBACK_NAME,
) -> str:
    """Pick the CLI executable: explicit override, local install, then PATH name."""

    if override:
        candidate = override.strip()
        if Path(candidate).is_absolute():
            return candidate
        if "/" in candidate or "\\" in candidate:
            raise ValidationError(
                f"CLI executable override must be an absolute path or a bare name: {candidate!r}",
            )
        fallback_name = candidate

    local_path = Path(local_install_path).expanduser()
    if local_path.is_file():
        return str(local_path)

    logger.warning("Assistant CLI not found at %s, relying on PATH for %r", local_path, fallback_name)
    return fallback_name


def build_cli_args(
    prompt: str,
    *,
    skip_permissions: bool = True,
    session_id: str | None = None,
    output_format: str = "text",
) -> list[str]:
    """Argument vector for one non-interactive CLI run."""

    args: list[str] = []
    if skip_permissions:
        args.append(SKIP_PERMISSIONS_FLAG)
    if session_id:
        args.extend(["--resume", session_id])
    if output_format == "json":
        args.extend(["--output-format", "json"])
    args.extend(["-p", prompt])
    return args


class CliProcessInvoker:
    """Run the assistant CLI without a shell and capture both streams."""

    def invoke(self, request: InvokeRequest) -> InvokeResult:
        started = time.monotonic()
        try:
            process = subprocess.Popen(  # noqa: S603
                [request.executable, *request.args],
                cwd=str(request.cwd),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except FileNotFoundError as error:
            raise ProcessError(
                f"Assistant CLI not found: {request.executable}",
                stderr=str(error),
            ) from error
        except OSError as error:
            raise ProcessError(
                f"Assistant CLI failed to start: {error}",
                stderr=str(error),
            ) from error

        logger.info("Spawned assistant CLI pid=%s cwd=%s", process.pid, request.cwd)
        stdout_chunks: list[str] = []
        stderr_chunks: list[str] = []
        readers = [
            _start_reader(process.stdout, stdout_chunks, request.on_stdout),
            _start_reader(process.stderr, stderr_chunks, None),
        ]

        timed_out = _wait_with_timeout(process, request.timeout_seconds)
        for reader in readers:
            reader.join(timeout=_READER_JOIN_SECONDS)

        stdout = "".join(stdout_chunks)
        stderr = "".join(stderr_chunks)
        duration_ms = int((time.monotonic() - started) * 1000)
        returncode = process.returncode

        if timed_out:
            raise ProcessTimeoutError(
                f"Assistant CLI timed out after {request.timeout_seconds}s",
                exit_code=returncode if returncode is not None and returncode >= 0 else None,
                signal=-returncode if returncode is not None and returncode < 0 else None,
                stdout=stdout,
                stderr=stderr,
            )
        if returncode < 0:
            raise ProcessError(
                f"Assistant CLI killed by signal {-returncode}",
                signal=-returncode,
                stdout=stdout,
                stderr=stderr,
            )
        if returncode != 0:
            raise ProcessError(
                f"Assistant CLI exited with code {returncode}",
                exit_code=returncode,
                stdout=stdout,
                stderr=stderr,
            )

        return InvokeResult(
            stdout=stdout,
            stderr=stderr,
            exit_code=returncode,
            duration_ms=duration_ms,
        )


def _start_reader(
    stream: IO[str] | None,
    sink: list[str],
    on_chunk: Callable[[str], None] | None,
) -> threading.Thread:
    def _pump() -> None:
        if stream is None:
            return
        with stream:
            for chunk in iter(stream.readline, ""):
                sink.append(chunk)
                if on_chunk is None:
                    continue
                try:
                    on_chunk(chunk)
                except Exception:
                    logger.exception("Output observer failed")

    reader = threading.Thread(target=_pump, daemon=True, name="assistant-cli-reader")
    reader.start()
    return reader


def _wait_with_timeout(process: subprocess.Popen[str], timeout_seconds: float) -> bool:
    """Poll until exit; terminate and return True when the ceiling is hit."""

    start_monotonic = time.monotonic()
    while True:
        if process.poll() is not None:
            return False
        if time.monotonic() - start_monotonic >= timeout_seconds:
            logger.warning("Assistant CLI pid=%s exceeded %ss, terminating", process.pid, timeout_seconds)
            _terminate_process(process)
            return True
        time.sleep(_POLL_INTERVAL_SECONDS)


def _terminate_process(process: subprocess.Popen[str]) -> None:
    try:
        process.terminate()
    except OSError:
        return
    try:
        process.wait(timeout=2)
    except subprocess.TimeoutExpired:
        try:
            process.kill()
        except OSError:
            return
        process.wait(timeout=2)

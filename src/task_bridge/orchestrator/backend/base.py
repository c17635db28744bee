"""Invoker interface for assistant CLI execution."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


@dataclass(slots=True)
class InvokeRequest:
    """Inputs required to run the assistant CLI once."""

    executable: str
    args: list[str]
    cwd: Path
    timeout_seconds: float
    on_stdout: Callable[[str], None] | None = None


@dataclass(slots=True)
class InvokeResult:
    """Captured output of a successful invocation."""

    stdout: str
    stderr: str
    exit_code: int
    duration_ms: int


class ProcessInvoker(Protocol):
    """Protocol implemented by process invokers."""

    def invoke(self, request: InvokeRequest) -> InvokeResult:
        """Run the process to exit; raise ``ProcessError`` on failure."""

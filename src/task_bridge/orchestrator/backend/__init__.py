"""Assistant CLI invocation backends."""

from task_bridge.orchestrator.backend.base import InvokeRequest, InvokeResult, ProcessInvoker
from task_bridge.orchestrator.backend.cli_backend import (
    CliProcessInvoker,
    build_cli_args,
    resolve_cli_executable,
)

__all__ = [
    "CliProcessInvoker",
    "InvokeRequest",
    "InvokeResult",
    "ProcessInvoker",
    "build_cli_args",
    "resolve_cli_executable",
]

"""Error taxonomy for task submission, execution and delivery."""

from __future__ import annotations


class TaskBridgeError(RuntimeError):
    """Base class for bridge errors."""


class ValidationError(TaskBridgeError, ValueError):
    """Submission input rejected before any side effect."""


class ProcessError(TaskBridgeError):
    """Assistant CLI exited non-zero, died from a signal, or could not be spawned."""

    timed_out = False

    def __init__(  # noqa: PLR0913
        self,
        message: str,
        *,
        exit_code: int | None = None,
        signal: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.signal = signal
        self.stdout = stdout
        self.stderr = stderr


class ProcessTimeoutError(ProcessError):
    """Assistant CLI exceeded its execution ceiling and was terminated."""

    timed_out = True


class StoreError(TaskBridgeError):
    """Status-store call failed."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotificationError(TaskBridgeError):
    """Notification channel could not deliver an event."""

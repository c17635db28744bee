"""Domain models for the task lifecycle engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


def utc_now() -> datetime:
    """Current UTC timestamp."""

    return datetime.now(tz=UTC)


class TaskStatus(str, Enum):
    """Status record lifecycle states."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"

    @property
    def is_terminal(self) -> bool:
        return self not in (TaskStatus.PENDING, TaskStatus.IN_PROGRESS)


class TaskType(str, Enum):
    """Prompt classification buckets."""

    FILE_OPERATION = "file_operation"
    CODE_GENERATION = "code_generation"
    ANALYSIS = "analysis"
    SEARCH = "search"
    GIT_OPERATION = "git_operation"
    TERMINAL_COMMAND = "terminal_command"
    MULTI_STEP = "multi_step"
    OTHER = "other"


class ArchivePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ErrorType(str, Enum):
    """Error entry categories appended to a status record."""

    SYSTEM = "system"
    USER = "user"
    NETWORK = "network"
    PERMISSION = "permission"
    TIMEOUT = "timeout"
    API = "api"
    VALIDATION = "validation"


class WarningType(str, Enum):
    PERFORMANCE = "performance"
    SECURITY = "security"
    DEPRECATION = "deprecation"
    RESOURCE = "resource"
    BEST_PRACTICE = "best_practice"


class InteractionMode(str, Enum):
    """How the engine watches a running invocation."""

    AUTO = "auto"
    CHECKPOINT = "checkpoint"


class NotificationKind(str, Enum):
    COMPLETION = "completion"
    CHECKPOINT = "checkpoint"


@dataclass(slots=True)
class TaskDescriptor:
    """Lightweight in-memory handle kept while a task is live."""

    task_id: str
    agent_id: str
    created_at: datetime
    prompt_excerpt: str


@dataclass(slots=True)
class TaskError:
    """Error entry; appended to a record, never removed."""

    timestamp: datetime
    error_type: ErrorType
    message: str
    details: str | None = None
    recoverable: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "error_type": self.error_type.value,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> TaskError:
        return cls(
            timestamp=_parse_datetime(payload["timestamp"]),
            error_type=ErrorType(payload["error_type"]),
            message=str(payload["message"]),
            details=payload.get("details"),
            recoverable=bool(payload.get("recoverable", False)),
        )


@dataclass(slots=True)
class TaskWarning:
    timestamp: datetime
    warning_type: WarningType
    message: str
    details: str | None = None
    severity: str = "low"

    def to_payload(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "warning_type": self.warning_type.value,
            "message": self.message,
            "details": self.details,
            "severity": self.severity,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> TaskWarning:
        return cls(
            timestamp=_parse_datetime(payload["timestamp"]),
            warning_type=WarningType(payload["warning_type"]),
            message=str(payload["message"]),
            details=payload.get("details"),
            severity=str(payload.get("severity", "low")),
        )


@dataclass(slots=True)
class TaskClassification:
    """Deterministic prompt classification result."""

    task_type: TaskType
    complexity_score: int
    should_archive: bool
    archive_priority: ArchivePriority
    archive_tags: list[str] = field(default_factory=list)


@dataclass(slots=True)
class TaskStatusRecord:
    """Authoritative task state mirrored into the external status store."""

    task_id: str
    agent_id: str
    prompt: str
    started_at: datetime
    updated_at: datetime
    status: TaskStatus = TaskStatus.PENDING
    completed_at: datetime | None = None
    estimated_completion: datetime | None = None
    working_directory: str | None = None
    progress: str = "Task received and queued"
    progress_percentage: int = 0
    steps_completed: int = 0
    total_steps: int = 1
    current_step: str = "Starting Claude Code"
    step_details: str | None = None
    task_type: TaskType = TaskType.OTHER
    complexity_score: int = 1
    result: str | None = None
    errors: list[TaskError] = field(default_factory=list)
    warnings: list[TaskWarning] = field(default_factory=list)
    execution_time_ms: int | None = None
    memory_usage_mb: float | None = None
    cpu_usage_percent: float | None = None
    files_created: list[str] = field(default_factory=list)
    files_modified: list[str] = field(default_factory=list)
    commands_executed: list[str] = field(default_factory=list)
    urls_accessed: list[str] = field(default_factory=list)
    should_archive: bool = False
    archive_priority: ArchivePriority = ArchivePriority.LOW
    archive_tags: list[str] = field(default_factory=list)
    checkpoint_reached: bool = False
    session_id: str | None = None
    iteration: int = 1
    elevated: bool = False
    keep_records: int = 3

    def to_payload(self) -> dict[str, Any]:
        """Serialize into the JSON value stored in the external record."""

        return {
            "task_id": self.task_id,
            "agent_id": self.agent_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "completed_at": _iso_or_none(self.completed_at),
            "estimated_completion": _iso_or_none(self.estimated_completion),
            "prompt": self.prompt,
            "working_directory": self.working_directory,
            "progress": self.progress,
            "progress_percentage": self.progress_percentage,
            "steps_completed": self.steps_completed,
            "total_steps": self.total_steps,
            "current_step": self.current_step,
            "step_details": self.step_details,
            "task_type": self.task_type.value,
            "complexity_score": self.complexity_score,
            "result": self.result,
            "errors": [error.to_payload() for error in self.errors],
            "warnings": [warning.to_payload() for warning in self.warnings],
            "execution_time_ms": self.execution_time_ms,
            "memory_usage_mb": self.memory_usage_mb,
            "cpu_usage_percent": self.cpu_usage_percent,
            "files_created": list(self.files_created),
            "files_modified": list(self.files_modified),
            "commands_executed": list(self.commands_executed),
            "urls_accessed": list(self.urls_accessed),
            "should_archive": self.should_archive,
            "archive_priority": self.archive_priority.value,
            "archive_tags": list(self.archive_tags),
            "checkpoint_reached": self.checkpoint_reached,
            "session_id": self.session_id,
            "iteration": self.iteration,
            "elevated": self.elevated,
            "keep_records": self.keep_records,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> TaskStatusRecord:
        """Rebuild a record from its stored JSON value."""

        return cls(
            task_id=str(payload["task_id"]),
            agent_id=str(payload["agent_id"]),
            prompt=str(payload.get("prompt", "")),
            started_at=_parse_datetime(payload["started_at"]),
            updated_at=_parse_datetime(payload["updated_at"]),
            status=TaskStatus(payload.get("status", TaskStatus.PENDING.value)),
            completed_at=_parse_optional_datetime(payload.get("completed_at")),
            estimated_completion=_parse_optional_datetime(payload.get("estimated_completion")),
            working_directory=payload.get("working_directory"),
            progress=str(payload.get("progress", "")),
            progress_percentage=int(payload.get("progress_percentage", 0)),
            steps_completed=int(payload.get("steps_completed", 0)),
            total_steps=int(payload.get("total_steps", 1)),
            current_step=str(payload.get("current_step", "")),
            step_details=payload.get("step_details"),
            task_type=TaskType(payload.get("task_type", TaskType.OTHER.value)),
            complexity_score=int(payload.get("complexity_score", 1)),
            result=payload.get("result"),
            errors=[TaskError.from_payload(item) for item in payload.get("errors", [])],
            warnings=[TaskWarning.from_payload(item) for item in payload.get("warnings", [])],
            execution_time_ms=payload.get("execution_time_ms"),
            memory_usage_mb=payload.get("memory_usage_mb"),
            cpu_usage_percent=payload.get("cpu_usage_percent"),
            files_created=list(payload.get("files_created", [])),
            files_modified=list(payload.get("files_modified", [])),
            commands_executed=list(payload.get("commands_executed", [])),
            urls_accessed=list(payload.get("urls_accessed", [])),
            should_archive=bool(payload.get("should_archive", False)),
            archive_priority=ArchivePriority(
                payload.get("archive_priority", ArchivePriority.LOW.value),
            ),
            archive_tags=list(payload.get("archive_tags", [])),
            checkpoint_reached=bool(payload.get("checkpoint_reached", False)),
            session_id=payload.get("session_id"),
            iteration=int(payload.get("iteration", 1)),
            elevated=bool(payload.get("elevated", False)),
            keep_records=int(payload.get("keep_records", 3)),
        )


@dataclass(slots=True)
class SubmitRequest:
    """Caller input for an asynchronous task."""

    prompt: str
    agent_id: str
    work_folder: str | None = None
    session_id: str | None = None
    interaction_mode: str = InteractionMode.AUTO.value
    checkpoint_pattern: str | None = None
    max_iterations: int | None = None
    keep_records: int | None = None
    elevate: bool = False
    callback_url: str | None = None


@dataclass(slots=True)
class NotificationEvent:
    """Ephemeral event handed to the notification router."""

    kind: NotificationKind
    task_id: str
    agent_id: str
    success: bool
    status: TaskStatus
    result: str
    timestamp: datetime
    error: str | None = None
    can_continue: bool = False
    session_id: str | None = None
    interaction_mode: InteractionMode = InteractionMode.AUTO
    iteration: int = 1
    callback_url: str | None = None


@dataclass(slots=True)
class TaskOutcome:
    """Typed result of one background task run."""

    task_id: str
    status: TaskStatus
    result: str | None
    error: str | None = None
    error_type: ErrorType | None = None
    checkpoint_reached: bool = False
    checkpoint_notified: bool = False
    session_id: str | None = None
    execution_time_ms: int | None = None
    notified: bool = False

    @property
    def success(self) -> bool:
        return self.status == TaskStatus.COMPLETED


def _iso_or_none(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_datetime(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _parse_optional_datetime(value: str | datetime | None) -> datetime | None:
    if value is None:
        return None
    return _parse_datetime(value)

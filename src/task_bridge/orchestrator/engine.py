"""Asynchronous task lifecycle: submit, run the assistant CLI, persist, notify."""

from __future__ import annotations

import logging
import re
import threading
import uuid
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from task_bridge.config import CliSettings, EngineSettings, Settings
from task_bridge.memory.client import MemoryApiClient
from task_bridge.memory.status_store import StatusStoreClient, clamp_keep_records
from task_bridge.notify.callback import CallbackNotifier
from task_bridge.notify.matrix import MatrixClient
from task_bridge.notify.room_mapping import RoomMappingClient
from task_bridge.notify.router import NotificationRouter
from task_bridge.orchestrator.backend.base import InvokeRequest, InvokeResult, ProcessInvoker
from task_bridge.orchestrator.backend.cli_backend import (
    CliProcessInvoker,
    build_cli_args,
    resolve_cli_executable,
)
from task_bridge.orchestrator.backend.output import parse_cli_output
from task_bridge.orchestrator.checkpoint import CheckpointMonitor, compile_checkpoint_pattern
from task_bridge.orchestrator.classifier import classify_prompt, estimate_completion
from task_bridge.orchestrator.errors import (
    ProcessError,
    StoreError,
    TaskBridgeError,
    ValidationError,
)
from task_bridge.orchestrator.failure_classifier import classify_process_failure
from task_bridge.orchestrator.models import (
    ArchivePriority,
    ErrorType,
    InteractionMode,
    NotificationEvent,
    NotificationKind,
    SubmitRequest,
    TaskError,
    TaskOutcome,
    TaskStatus,
    TaskStatusRecord,
    TaskWarning,
    WarningType,
    utc_now,
)
from task_bridge.orchestrator.registry import TaskRegistry
from task_bridge.orchestrator.sanitization import sanitize_preview
from task_bridge.orchestrator.stats import JobStatsTracker, StatusTracker

logger = logging.getLogger(__name__)

RESULT_PREVIEW_CHARS = 20_000
ERROR_DETAILS_CHARS = 2_000


def new_task_id() -> str:
    return f"task_{uuid.uuid4()}"


@dataclass(slots=True)
class TaskHandle:
    """Returned by ``submit``; the future resolves to the task outcome."""

    task_id: str
    future: Future[TaskOutcome]

    def wait(self, timeout: float | None = None) -> TaskOutcome:
        return self.future.result(timeout=timeout)


@dataclass(slots=True)
class _TaskContext:
    task_id: str
    request: SubmitRequest
    record: TaskStatusRecord
    interaction_mode: InteractionMode
    checkpoint_pattern: re.Pattern[str] | None
    iteration: int
    max_iterations: int
    work_dir: Path
    executable: str
    record_id: str | None = None


class TaskEngine:
    """Owns the worker pool, the registry sweeper and the per-session iteration map.

    ``submit`` validates synchronously, registers the task and schedules the
    background unit; everything after that resolves to a ``TaskOutcome`` on the
    returned future and is never raised to the caller.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        cli: CliSettings,
        engine: EngineSettings,
        registry: TaskRegistry,
        status_store: StatusStoreClient | None = None,
        router: NotificationRouter | None = None,
        stats: JobStatsTracker | None = None,
        invoker: ProcessInvoker | None = None,
        executable: str | None = None,
        id_factory: Callable[[], str] = new_task_id,
        home_dir: Path | None = None,
    ) -> None:
        self._cli = cli
        self._engine = engine
        self._registry = registry
        self._store = status_store
        self._router = router
        self._stats = stats or JobStatsTracker()
        self._invoker = invoker or CliProcessInvoker()
        self._executable = executable
        self._id_factory = id_factory
        self._home_dir = home_dir
        self._iterations: dict[str, int] = {}
        self._iterations_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=engine.max_workers,
            thread_name_prefix="task-bridge",
        )
        self._registry.start()

    @classmethod
    def from_settings(cls, settings: Settings) -> TaskEngine:
        """Wire the engine with HTTP-backed store and notification channels."""

        status_store = None
        if settings.memory.enabled:
            status_store = StatusStoreClient(
                MemoryApiClient(
                    settings.memory.base_url,
                    auth_token=settings.memory.auth_token,
                    bare_password=settings.memory.bare_password,
                    timeout_seconds=settings.memory.request_timeout_seconds,
                    max_retries=settings.memory.max_retries,
                    block_char_limit=settings.memory.record_char_limit,
                ),
                label_prefix=settings.memory.record_label_prefix,
            )

        matrix = None
        room_mapping = None
        if settings.notify.chat_room_enabled:
            matrix = MatrixClient(
                settings.notify.matrix_homeserver_url,
                settings.notify.matrix_access_token,
                timeout_seconds=settings.notify.request_timeout_seconds,
            )
            room_mapping = RoomMappingClient(
                settings.notify.room_mapping_url,
                timeout_seconds=settings.notify.request_timeout_seconds,
            )
        callback = None
        if settings.notify.callback_base_url:
            callback = CallbackNotifier(
                settings.notify.callback_base_url,
                auth_token=settings.memory.auth_token,
                bare_password=settings.memory.bare_password,
                timeout_seconds=settings.notify.request_timeout_seconds,
            )

        return cls(
            cli=settings.cli,
            engine=settings.engine,
            registry=TaskRegistry(
                ttl_seconds=settings.registry.ttl_seconds,
                sweep_interval_seconds=settings.registry.sweep_interval_seconds,
                prompt_excerpt_chars=settings.registry.prompt_excerpt_chars,
            ),
            status_store=status_store,
            router=NotificationRouter(matrix=matrix, room_mapping=room_mapping, callback=callback),
        )

    @property
    def registry(self) -> TaskRegistry:
        return self._registry

    @property
    def stats(self) -> StatusTracker:
        return self._stats

    # -- submission -----------------------------------------------------------

    def submit(self, request: SubmitRequest) -> TaskHandle:
        """Validate, register and schedule one task; return its id immediately."""

        context = self._prepare(request)
        self._registry.create(context.task_id, request.agent_id, context.record.prompt)
        self._stats.start_job(context.task_id, request.agent_id, session_id=request.session_id)
        try:
            future = self._executor.submit(self._run_task, context)
        except RuntimeError as error:
            self._registry.remove(context.task_id)
            self._stats.abort_job(context.task_id)
            raise TaskBridgeError(f"Task engine is shut down: {error}") from error

        logger.info(
            "Submitted task %s for agent %s (mode=%s, iteration=%d)",
            context.task_id,
            request.agent_id,
            context.interaction_mode.value,
            context.iteration,
        )
        return TaskHandle(task_id=context.task_id, future=future)

    def run_prompt(
        self,
        prompt: str,
        *,
        work_folder: str | None = None,
        session_id: str | None = None,
    ) -> str:
        """Run the CLI synchronously and return its result text.

        Raises ``ProcessError`` (or ``ProcessTimeoutError``) on failure.
        """

        prompt = self._validate_prompt(prompt)
        work_dir, _ = self._resolve_work_dir(work_folder)
        result = self._invoke(
            prompt,
            executable=self._resolve_executable(),
            work_dir=work_dir,
            session_id=session_id,
            on_stdout=None,
        )
        return sanitize_preview(parse_cli_output(result.stdout).result, max_chars=RESULT_PREVIEW_CHARS)

    def shutdown(self, *, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        self._registry.stop()
        if self._store is not None:
            self._store.close()
        if self._router is not None:
            self._router.close()

    def __enter__(self) -> TaskEngine:
        return self

    def __exit__(self, *_: object) -> None:
        self.shutdown(wait=True)

    def iteration_for(self, session_id: str) -> int:
        with self._iterations_lock:
            return self._iterations.get(session_id, 0)

    def _prepare(self, request: SubmitRequest) -> _TaskContext:
        prompt = self._validate_prompt(request.prompt)
        agent_id = (request.agent_id or "").strip()
        if not agent_id:
            raise ValidationError("agent_id is required.")
        request.agent_id = agent_id
        request.prompt = prompt

        try:
            mode = InteractionMode(request.interaction_mode or InteractionMode.AUTO.value)
        except ValueError as error:
            allowed = ", ".join(item.value for item in InteractionMode)
            raise ValidationError(
                f"Invalid interaction mode {request.interaction_mode!r}; expected one of: {allowed}.",
            ) from error

        pattern = None
        if request.checkpoint_pattern is not None:
            pattern = compile_checkpoint_pattern(request.checkpoint_pattern)

        max_iterations = request.max_iterations
        if max_iterations is None:
            max_iterations = self._engine.default_max_iterations
        if max_iterations < 1:
            raise ValidationError("max_iterations must be >= 1.")

        keep_records = request.keep_records
        if keep_records is None:
            keep_records = self._engine.default_keep_records
        keep_records = clamp_keep_records(keep_records)

        executable = self._resolve_executable()
        work_dir, warning = self._resolve_work_dir(request.work_folder)
        iteration = self._next_iteration(request.session_id)

        task_id = self._id_factory()
        started_at = utc_now()
        classification = classify_prompt(prompt)
        record = TaskStatusRecord(
            task_id=task_id,
            agent_id=agent_id,
            prompt=prompt,
            started_at=started_at,
            updated_at=started_at,
            estimated_completion=estimate_completion(prompt, started_at),
            working_directory=str(work_dir),
            task_type=classification.task_type,
            complexity_score=classification.complexity_score,
            should_archive=classification.should_archive,
            archive_priority=classification.archive_priority,
            archive_tags=list(classification.archive_tags),
            session_id=request.session_id,
            iteration=iteration,
            elevated=request.elevate,
            keep_records=keep_records,
        )
        if request.elevate:
            record.should_archive = True
            record.archive_priority = ArchivePriority.HIGH
        if warning is not None:
            record.warnings.append(warning)

        return _TaskContext(
            task_id=task_id,
            request=request,
            record=record,
            interaction_mode=mode,
            checkpoint_pattern=pattern if mode == InteractionMode.CHECKPOINT else None,
            iteration=iteration,
            max_iterations=max_iterations,
            work_dir=work_dir,
            executable=executable,
        )

    def _resolve_executable(self) -> str:
        if self._executable:
            return self._executable
        return resolve_cli_executable(
            self._cli.cli_name,
            local_install_path=self._cli.local_install_path,
            fallback_name=self._cli.fallback_name,
        )

    def _validate_prompt(self, prompt: str | None) -> str:
        text = (prompt or "").strip()
        if not text:
            raise ValidationError("prompt is required.")
        if len(text) > self._engine.max_prompt_length:
            raise ValidationError(
                f"prompt exceeds {self._engine.max_prompt_length} characters.",
            )
        return text

    def _resolve_work_dir(self, work_folder: str | None) -> tuple[Path, TaskWarning | None]:
        home = self._home_dir or Path.home()
        if not work_folder:
            return home, None
        candidate = Path(work_folder).expanduser().resolve()
        if candidate.is_dir():
            return candidate, None
        logger.warning("Work folder %s does not exist, using %s", candidate, home)
        return home, TaskWarning(
            timestamp=utc_now(),
            warning_type=WarningType.RESOURCE,
            message=f"Work folder {candidate} does not exist; ran in {home}",
            severity="medium",
        )

    def _next_iteration(self, session_id: str | None) -> int:
        if not session_id:
            return 1
        with self._iterations_lock:
            iteration = self._iterations.get(session_id, 0) + 1
            self._iterations[session_id] = iteration
            return iteration

    def _remember_session(self, session_id: str) -> None:
        with self._iterations_lock:
            self._iterations.setdefault(session_id, 1)

    # -- background unit ------------------------------------------------------

    def _run_task(self, context: _TaskContext) -> TaskOutcome:
        try:
            outcome = self._execute(context)
        except Exception as error:
            logger.exception("Task %s crashed", context.task_id)
            outcome = TaskOutcome(
                task_id=context.task_id,
                status=TaskStatus.FAILED,
                result=None,
                error=f"Internal error: {error}",
                error_type=ErrorType.SYSTEM,
                checkpoint_reached=context.record.checkpoint_reached,
                session_id=context.record.session_id,
            )

        try:
            outcome.notified = self._notify(self._completion_event(context, outcome))
        finally:
            self._registry.remove(context.task_id)
            self._stats.finish_job(
                context.task_id,
                success=outcome.success,
                error=outcome.error,
                session_id=outcome.session_id,
            )
        logger.info("Task %s finished: %s", context.task_id, outcome.status.value)
        return outcome

    def _execute(self, context: _TaskContext) -> TaskOutcome:
        record = context.record
        self._create_record(context)

        record.status = TaskStatus.IN_PROGRESS
        record.progress = "Executing Claude Code"
        record.progress_percentage = 10
        record.current_step = "Starting Claude CLI"
        record.steps_completed = 0
        record.total_steps = 2
        self._persist(context)

        monitor = (
            CheckpointMonitor(context.checkpoint_pattern)
            if context.checkpoint_pattern is not None
            else None
        )
        error_type: ErrorType | None = None
        error_message: str | None = None
        try:
            invoke_result = self._invoke(
                record.prompt,
                executable=context.executable,
                work_dir=context.work_dir,
                session_id=context.request.session_id,
                on_stdout=monitor.feed if monitor is not None else None,
            )
        except ProcessError as error:
            classification = classify_process_failure(error)
            error_type = classification.error_type
            details = sanitize_preview(error.stderr, max_chars=ERROR_DETAILS_CHARS)
            error_message = f"{error}: {details}" if details else str(error)
            record.errors.append(
                TaskError(
                    timestamp=utc_now(),
                    error_type=classification.error_type,
                    message=str(error),
                    details=details or None,
                    recoverable=classification.recoverable,
                ),
            )
            partial = parse_cli_output(error.stdout)
            record.result = sanitize_preview(partial.result, max_chars=RESULT_PREVIEW_CHARS) or None
            record.session_id = partial.session_id or record.session_id
            logger.warning(
                "Task %s failed (%s): %s",
                context.task_id,
                classification.matched_rule,
                error_message,
            )
        else:
            parsed = parse_cli_output(invoke_result.stdout)
            record.result = sanitize_preview(parsed.result, max_chars=RESULT_PREVIEW_CHARS)
            record.session_id = parsed.session_id or record.session_id
            record.execution_time_ms = invoke_result.duration_ms

        if record.session_id and not context.request.session_id:
            self._remember_session(record.session_id)

        checkpoint_notified = False
        if monitor is not None and monitor.checkpoint_reached:
            checkpoint_notified = self._handle_checkpoint(context, monitor, success=error_type is None)

        self._complete_record(context, success=error_type is None)
        self._finalize_store(context)

        return TaskOutcome(
            task_id=context.task_id,
            status=record.status,
            result=record.result,
            error=error_message,
            error_type=error_type,
            checkpoint_reached=record.checkpoint_reached,
            checkpoint_notified=checkpoint_notified,
            session_id=record.session_id,
            execution_time_ms=record.execution_time_ms,
        )

    def _invoke(
        self,
        prompt: str,
        *,
        executable: str,
        work_dir: Path,
        session_id: str | None,
        on_stdout: Callable[[str], None] | None,
    ) -> InvokeResult:
        args = build_cli_args(
            prompt,
            skip_permissions=self._cli.skip_permissions,
            session_id=session_id,
            output_format=self._cli.output_format,
        )
        return self._invoker.invoke(
            InvokeRequest(
                executable=executable,
                args=args,
                cwd=work_dir,
                timeout_seconds=self._cli.execution_timeout_seconds,
                on_stdout=on_stdout,
            ),
        )

    def _handle_checkpoint(
        self,
        context: _TaskContext,
        monitor: CheckpointMonitor,
        *,
        success: bool,
    ) -> bool:
        record = context.record
        checkpoint = monitor.result()
        record.checkpoint_reached = True
        record.progress = "Checkpoint reached"
        record.progress_percentage = max(record.progress_percentage, 50)
        record.steps_completed = 1
        record.current_step = "Checkpoint"
        record.step_details = f"Checkpoint reached: {checkpoint.trigger_text}"
        self._persist(context)
        self._stats.record_checkpoint(context.task_id)
        logger.info("Task %s reached checkpoint: %s", context.task_id, checkpoint.trigger_text)

        event = NotificationEvent(
            kind=NotificationKind.CHECKPOINT,
            task_id=context.task_id,
            agent_id=record.agent_id,
            success=success,
            status=record.status,
            result=sanitize_preview(checkpoint.trigger_text or ""),
            timestamp=utc_now(),
            can_continue=context.iteration < context.max_iterations,
            session_id=record.session_id,
            interaction_mode=context.interaction_mode,
            iteration=context.iteration,
            callback_url=context.request.callback_url,
        )
        return self._notify(event)

    def _completion_event(self, context: _TaskContext, outcome: TaskOutcome) -> NotificationEvent:
        return NotificationEvent(
            kind=NotificationKind.COMPLETION,
            task_id=context.task_id,
            agent_id=context.record.agent_id,
            success=outcome.success,
            status=outcome.status,
            result=outcome.result or "",
            timestamp=utc_now(),
            error=outcome.error,
            session_id=outcome.session_id,
            interaction_mode=context.interaction_mode,
            iteration=context.iteration,
            callback_url=context.request.callback_url,
        )

    def _notify(self, event: NotificationEvent) -> bool:
        if self._router is None:
            logger.warning(
                "No notification router, %s event for %s dropped",
                event.kind.value,
                event.task_id,
            )
            return False
        try:
            return self._router.notify(event)
        except Exception:
            logger.exception("Notification for task %s raised", event.task_id)
            return False

    # -- status store steps ---------------------------------------------------

    def _create_record(self, context: _TaskContext) -> None:
        if self._store is None:
            return
        try:
            context.record_id = self._store.create_status_record(context.record)
        except StoreError as error:
            logger.warning("Status record for %s not created: %s", context.task_id, error)
            return
        try:
            self._store.attach_record_to_owner(context.record.agent_id, context.record_id)
        except StoreError as error:
            logger.warning("Status record for %s not attached: %s", context.task_id, error)

    def _persist(self, context: _TaskContext) -> None:
        context.record.updated_at = utc_now()
        if self._store is None or context.record_id is None:
            return
        try:
            self._store.update_status_record(context.record_id, context.record)
        except StoreError as error:
            logger.warning("Status update for %s failed: %s", context.task_id, error)

    def _complete_record(self, context: _TaskContext, *, success: bool) -> None:
        record = context.record
        now = utc_now()
        record.status = TaskStatus.COMPLETED if success else TaskStatus.FAILED
        record.completed_at = now
        record.progress = "Task completed successfully" if success else "Task failed"
        record.current_step = "Completed" if success else "Failed"
        if success:
            record.progress_percentage = 100
            record.steps_completed = record.total_steps
        if record.execution_time_ms is None:
            record.execution_time_ms = int((now - record.started_at).total_seconds() * 1000)
        self._persist(context)

    def _finalize_store(self, context: _TaskContext) -> None:
        record = context.record
        if self._store is None:
            return
        try:
            self._store.archive_if_needed(record)
        except Exception:
            logger.exception("Archival of task %s failed", context.task_id)

        # Delete before cleanup: the finishing record must not hold a retention slot.
        self._delete_record(context)

        if record.elevated:
            logger.info("Task %s is elevated, skipping retention cleanup", context.task_id)
            return
        try:
            self._store.cleanup_old_records(record.agent_id, record.keep_records)
        except Exception:
            logger.exception("Retention cleanup for %s failed", record.agent_id)

    def _delete_record(self, context: _TaskContext) -> None:
        if self._store is None or context.record_id is None:
            return
        try:
            self._store.delete_status_record(context.record_id)
        except StoreError as error:
            logger.warning("Status record for %s not deleted: %s", context.task_id, error)

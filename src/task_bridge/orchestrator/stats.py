"""In-process job statistics shared by concurrently running tasks."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol

from task_bridge.orchestrator.models import utc_now

MAX_COMPLETED_HISTORY = 100


class JobState(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"


@dataclass(slots=True)
class JobSnapshot:
    """One tracked job; copies are handed out, never the live object."""

    job_id: str
    agent_id: str
    started_at: datetime
    state: JobState = JobState.RUNNING
    ended_at: datetime | None = None
    duration_ms: int | None = None
    session_id: str | None = None
    checkpoint_reached: bool = False
    error: str | None = None

    def to_dict(self, *, now: datetime | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "job_id": self.job_id,
            "agent_id": self.agent_id,
            "state": self.state.value,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_ms": self.duration_ms,
            "session_id": self.session_id,
            "checkpoint_reached": self.checkpoint_reached,
            "error": self.error,
        }
        if now is not None and self.state == JobState.RUNNING:
            payload["running_ms"] = int((now - self.started_at).total_seconds() * 1000)
        return payload


@dataclass(slots=True)
class JobCounters:
    total_started: int = 0
    total_completed: int = 0
    total_failed: int = 0
    total_aborted: int = 0
    average_duration_ms: float = 0.0
    session_resume_count: int = 0
    checkpoint_hit_count: int = 0
    started_at: datetime = field(default_factory=utc_now)


class StatusTracker(Protocol):
    """Read side of job tracking exposed to status surfaces."""

    def get_active_jobs(self) -> list[dict[str, Any]]: ...

    def get_completed_jobs(self, limit: int = 10) -> list[dict[str, Any]]: ...

    def get_stats(self) -> dict[str, Any]: ...


class JobStatsTracker:
    """Mutex-guarded job counters and bounded completion history."""

    def __init__(self, *, max_history: int = MAX_COMPLETED_HISTORY) -> None:
        self._lock = threading.Lock()
        self._active: dict[str, JobSnapshot] = {}
        self._completed: deque[JobSnapshot] = deque(maxlen=max_history)
        self._counters = JobCounters()

    def start_job(self, job_id: str, agent_id: str, *, session_id: str | None = None) -> None:
        with self._lock:
            self._active[job_id] = JobSnapshot(
                job_id=job_id,
                agent_id=agent_id,
                started_at=utc_now(),
                session_id=session_id,
            )
            self._counters.total_started += 1
            if session_id:
                self._counters.session_resume_count += 1

    def record_checkpoint(self, job_id: str) -> None:
        with self._lock:
            job = self._active.get(job_id)
            if job is None or job.checkpoint_reached:
                return
            job.checkpoint_reached = True
            self._counters.checkpoint_hit_count += 1

    def finish_job(
        self,
        job_id: str,
        *,
        success: bool,
        error: str | None = None,
        session_id: str | None = None,
    ) -> None:
        with self._lock:
            job = self._active.pop(job_id, None)
            if job is None:
                return
            job.ended_at = utc_now()
            job.duration_ms = int((job.ended_at - job.started_at).total_seconds() * 1000)
            job.state = JobState.COMPLETED if success else JobState.FAILED
            job.error = error
            if session_id:
                job.session_id = session_id
            if success:
                self._counters.total_completed += 1
            else:
                self._counters.total_failed += 1
            self._update_average(job.duration_ms)
            self._completed.appendleft(job)

    def abort_job(self, job_id: str) -> None:
        with self._lock:
            job = self._active.pop(job_id, None)
            if job is None:
                return
            job.ended_at = utc_now()
            job.duration_ms = int((job.ended_at - job.started_at).total_seconds() * 1000)
            job.state = JobState.ABORTED
            self._counters.total_aborted += 1
            self._completed.appendleft(job)

    def get_active_jobs(self) -> list[dict[str, Any]]:
        now = utc_now()
        with self._lock:
            return [job.to_dict(now=now) for job in self._active.values()]

    def get_completed_jobs(self, limit: int = 10) -> list[dict[str, Any]]:
        with self._lock:
            return [job.to_dict() for job in list(self._completed)[:limit]]

    def get_job(self, job_id: str) -> dict[str, Any] | None:
        with self._lock:
            job = self._active.get(job_id)
            if job is None:
                job = next((item for item in self._completed if item.job_id == job_id), None)
            return job.to_dict() if job is not None else None

    def get_stats(self) -> dict[str, Any]:
        now = utc_now()
        with self._lock:
            counters = self._counters
            return {
                "total_jobs_started": counters.total_started,
                "total_jobs_completed": counters.total_completed,
                "total_jobs_failed": counters.total_failed,
                "total_jobs_aborted": counters.total_aborted,
                "average_job_duration_ms": counters.average_duration_ms,
                "session_resume_count": counters.session_resume_count,
                "checkpoint_hit_count": counters.checkpoint_hit_count,
                "uptime_seconds": (now - counters.started_at).total_seconds(),
                "active_job_count": len(self._active),
                "completed_job_count": len(self._completed),
            }

    def export_metrics(self) -> dict[str, int]:
        """Flat gauge/counter mapping for monitoring scrapers."""

        stats = self.get_stats()
        return {
            "task_bridge_active_jobs": stats["active_job_count"],
            "task_bridge_total_started": stats["total_jobs_started"],
            "task_bridge_total_completed": stats["total_jobs_completed"],
            "task_bridge_total_failed": stats["total_jobs_failed"],
            "task_bridge_total_aborted": stats["total_jobs_aborted"],
            "task_bridge_avg_duration_ms": round(stats["average_job_duration_ms"]),
            "task_bridge_checkpoint_hits": stats["checkpoint_hit_count"],
            "task_bridge_session_resumes": stats["session_resume_count"],
            "task_bridge_uptime_seconds": round(stats["uptime_seconds"]),
        }

    def _update_average(self, duration_ms: int) -> None:
        finished = self._counters.total_completed + self._counters.total_failed
        if finished > 0:
            previous = self._counters.average_duration_ms
            self._counters.average_duration_ms = previous + (duration_ms - previous) / finished

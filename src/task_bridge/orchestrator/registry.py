"""In-memory registry of live tasks with time-based eviction."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from task_bridge.orchestrator.models import TaskDescriptor, utc_now

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3_600
DEFAULT_SWEEP_INTERVAL_SECONDS = 300
DEFAULT_PROMPT_EXCERPT_CHARS = 200


class TaskRegistry:
    """Thread-safe map of task id to descriptor.

    A daemon sweeper thread evicts descriptors older than the TTL regardless of
    task outcome; it only runs between ``start()`` and ``stop()``.
    """

    def __init__(
        self,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        prompt_excerpt_chars: int = DEFAULT_PROMPT_EXCERPT_CHARS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._ttl = timedelta(seconds=ttl_seconds)
        self._sweep_interval = sweep_interval_seconds
        self._excerpt_chars = prompt_excerpt_chars
        self._clock = clock
        self._lock = threading.Lock()
        self._tasks: dict[str, TaskDescriptor] = {}
        self._sweep_stop = threading.Event()
        self._sweep_thread: threading.Thread | None = None

    def create(self, task_id: str, agent_id: str, prompt: str) -> TaskDescriptor:
        descriptor = TaskDescriptor(
            task_id=task_id,
            agent_id=agent_id,
            created_at=self._clock(),
            prompt_excerpt=prompt[: self._excerpt_chars],
        )
        with self._lock:
            self._tasks[task_id] = descriptor
        logger.info("Registered task %s for agent %s", task_id, agent_id)
        return descriptor

    def get(self, task_id: str) -> TaskDescriptor | None:
        with self._lock:
            return self._tasks.get(task_id)

    def has(self, task_id: str) -> bool:
        with self._lock:
            return task_id in self._tasks

    def remove(self, task_id: str) -> None:
        with self._lock:
            removed = self._tasks.pop(task_id, None)
        if removed is not None:
            logger.info("Deregistered task %s", task_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def sweep(self) -> list[str]:
        """Evict descriptors older than the TTL; return evicted ids."""

        cutoff = self._clock() - self._ttl
        with self._lock:
            expired = [
                task_id
                for task_id, descriptor in self._tasks.items()
                if descriptor.created_at < cutoff
            ]
            for task_id in expired:
                del self._tasks[task_id]
        for task_id in expired:
            logger.warning("Evicted stale task %s from registry", task_id)
        return expired

    def get_stats(self) -> dict[str, Any]:
        now = self._clock()
        with self._lock:
            snapshot = list(self._tasks.values())
        return {
            "active_tasks": len(snapshot),
            "tasks": [
                {
                    "task_id": descriptor.task_id,
                    "agent_id": descriptor.agent_id,
                    "age_seconds": round((now - descriptor.created_at).total_seconds()),
                }
                for descriptor in snapshot
            ],
        }

    # -- background sweeper ---------------------------------------------------

    def start(self) -> None:
        if self._sweep_thread is not None:
            return
        self._sweep_stop.clear()
        self._sweep_thread = threading.Thread(
            target=self._sweep_loop,
            daemon=True,
            name="task-registry-sweeper",
        )
        self._sweep_thread.start()

    def stop(self) -> None:
        if self._sweep_thread is None:
            return
        self._sweep_stop.set()
        self._sweep_thread.join(timeout=5)
        self._sweep_thread = None

    def _sweep_loop(self) -> None:
        while not self._sweep_stop.wait(timeout=self._sweep_interval):
            try:
                self.sweep()
            except Exception:
                logger.exception("Registry sweep failed")

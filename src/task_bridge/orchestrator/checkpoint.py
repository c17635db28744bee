"""Advisory checkpoint detection over streamed assistant output."""

from __future__ import annotations

import re
import threading
from collections.abc import Iterable
from dataclasses import dataclass

from task_bridge.orchestrator.errors import ValidationError


def compile_checkpoint_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a user-supplied checkpoint pattern (case-insensitive)."""

    if not pattern:
        raise ValidationError("Checkpoint pattern must be a non-empty regular expression.")
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as error:
        raise ValidationError(f"Invalid checkpoint pattern {pattern!r}: {error}") from error


@dataclass(slots=True)
class CheckpointResult:
    """Monitor verdict after the stream is drained."""

    checkpoint_reached: bool
    trigger_text: str | None
    text: str


class CheckpointMonitor:
    """Watches output chunks and records the first one matching the pattern.

    The monitor never stops the process it observes. ``feed`` is called from the
    invoker's reader thread while ``result`` may be read from another thread.
    """

    def __init__(self, pattern: re.Pattern[str]) -> None:
        self._pattern = pattern
        self._lock = threading.Lock()
        self._chunks: list[str] = []
        self._trigger_text: str | None = None

    @property
    def checkpoint_reached(self) -> bool:
        with self._lock:
            return self._trigger_text is not None

    def feed(self, chunk: str) -> None:
        with self._lock:
            self._chunks.append(chunk)
            if self._trigger_text is None and self._pattern.search(chunk) is not None:
                self._trigger_text = chunk.strip()

    def result(self) -> CheckpointResult:
        with self._lock:
            return CheckpointResult(
                checkpoint_reached=self._trigger_text is not None,
                trigger_text=self._trigger_text,
                text="".join(self._chunks),
            )


def monitor(chunks: Iterable[str], pattern: re.Pattern[str]) -> CheckpointResult:
    """Drain ``chunks`` through a fresh monitor."""

    watcher = CheckpointMonitor(pattern)
    for chunk in chunks:
        watcher.feed(chunk)
    return watcher.result()

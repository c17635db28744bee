"""In-process stand-ins for the engine's collaborators."""

from __future__ import annotations

import json
import threading
from typing import Any

import httpx

from task_bridge.orchestrator.backend.base import InvokeRequest, InvokeResult
from task_bridge.orchestrator.models import NotificationEvent


class RecordingRouter:
    """Router stand-in that keeps every event it is asked to deliver."""

    def __init__(self, *, delivered: bool = True, raises: bool = False) -> None:
        self.events: list[NotificationEvent] = []
        self._delivered = delivered
        self._raises = raises
        self._lock = threading.Lock()

    def notify(self, event: NotificationEvent) -> bool:
        with self._lock:
            self.events.append(event)
        if self._raises:
            raise RuntimeError("router exploded")
        return self._delivered

    def close(self) -> None:
        pass


class FakeInvoker:
    """In-process invoker: replays stdout lines or raises a prepared error."""

    def __init__(
        self,
        stdout_lines: list[str] | None = None,
        *,
        error: Exception | None = None,
        gate: threading.Event | None = None,
    ) -> None:
        self.stdout_lines = stdout_lines if stdout_lines is not None else ["done\n"]
        self.error = error
        self.gate = gate
        self.requests: list[InvokeRequest] = []
        self.started = threading.Event()

    def invoke(self, request: InvokeRequest) -> InvokeResult:
        self.requests.append(request)
        self.started.set()
        if self.gate is not None:
            self.gate.wait(timeout=10)
        for line in self.stdout_lines:
            if request.on_stdout is not None:
                request.on_stdout(line)
        if self.error is not None:
            raise self.error
        return InvokeResult(
            stdout="".join(self.stdout_lines),
            stderr="",
            exit_code=0,
            duration_ms=5,
        )


class FakeMemoryService:
    """Stateful agent-memory API served through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.blocks: dict[str, dict[str, Any]] = {}
        self.attached: dict[str, list[str]] = {}
        self.passages: list[dict[str, Any]] = []
        self.record_values: dict[str, list[dict[str, Any]]] = {}
        self.archival_reply: Any = None
        self.calls: list[tuple[str, str]] = []
        self.failures: set[tuple[str, str]] = set()
        self._counter = 0
        self._lock = threading.Lock()

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def fail(self, method: str, path_fragment: str) -> None:
        self.failures.add((method, path_fragment))

    def seed_block(
        self,
        agent_id: str,
        block_id: str,
        *,
        label: str,
        created_at: str,
        elevated: bool = False,
    ) -> None:
        self.blocks[block_id] = {
            "id": block_id,
            "label": label,
            "value": "{}",
            "metadata": {"created_at": created_at, "elevated": elevated},
        }
        self.attached.setdefault(agent_id, []).append(block_id)

    def calls_matching(self, method: str, fragment: str) -> list[str]:
        return [path for verb, path in self.calls if verb == method and fragment in path]

    def status_history(self, block_id: str) -> list[str]:
        return [value["status"] for value in self.record_values.get(block_id, [])]

    def handler(self, request: httpx.Request) -> httpx.Response:  # noqa: C901, PLR0911
        with self._lock:
            method = request.method
            path = request.url.path
            self.calls.append((method, path))
            for failing_method, fragment in self.failures:
                if method == failing_method and fragment in path:
                    return httpx.Response(500, json={"detail": "boom"})

            body = json.loads(request.content) if request.content else None
            parts = path.strip("/").split("/")

            if method == "POST" and path == "/v1/blocks/":
                self._counter += 1
                block = {"id": f"block-{self._counter}", **body}
                self.blocks[block["id"]] = block
                self._remember_value(block["id"], body)
                return httpx.Response(200, json=block)
            if parts[:2] == ["v1", "blocks"] and len(parts) == 3:
                block_id = parts[2]
                if block_id not in self.blocks:
                    return httpx.Response(404, json={"detail": "not found"})
                if method == "PATCH":
                    self.blocks[block_id].update(body)
                    self._remember_value(block_id, body)
                    return httpx.Response(200, json=self.blocks[block_id])
                if method == "DELETE":
                    del self.blocks[block_id]
                    return httpx.Response(200, json={})
            if parts[:2] == ["v1", "agents"] and len(parts) >= 4:
                agent_id = parts[2]
                owned = self.attached.setdefault(agent_id, [])
                if parts[3:] == ["core-memory", "blocks"] and method == "GET":
                    return httpx.Response(
                        200,
                        json=[self.blocks[item] for item in owned if item in self.blocks],
                    )
                if parts[3:6] == ["core-memory", "blocks", "attach"] and method == "PATCH":
                    owned.append(parts[6])
                    return httpx.Response(200, json={"id": agent_id})
                if parts[3:6] == ["core-memory", "blocks", "detach"] and method == "PATCH":
                    if parts[6] in owned:
                        owned.remove(parts[6])
                    return httpx.Response(200, json={"id": agent_id})
                if parts[3:] == ["archival-memory"] and method == "POST":
                    if self.archival_reply is not None:
                        return httpx.Response(200, json=self.archival_reply)
                    passage = {"id": f"passage-{len(self.passages) + 1}", **body}
                    self.passages.append(passage)
                    return httpx.Response(200, json=[passage])
            return httpx.Response(404, json={"detail": f"no route for {method} {path}"})

    def _remember_value(self, block_id: str, body: dict[str, Any]) -> None:
        if "value" in body:
            self.record_values.setdefault(block_id, []).append(json.loads(body["value"]))

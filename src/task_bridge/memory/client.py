"""Thin wrapper over the agent-memory REST endpoints used for status records."""

from __future__ import annotations

import json
from typing import Any

import httpx

from task_bridge.http import JsonApiClient

DEFAULT_BLOCK_CHAR_LIMIT = 5_000


class MemoryApiClient:
    """Block CRUD, agent attachment and archival passages over HTTP.

    Every method raises ``task_bridge.http.ApiError`` on transport or status failure.
    """

    def __init__(  # noqa: PLR0913
        self,
        base_url: str,
        *,
        auth_token: str = "",
        bare_password: str = "",
        timeout_seconds: float = 30.0,
        max_retries: int = 3,
        block_char_limit: int = DEFAULT_BLOCK_CHAR_LIMIT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers: dict[str, str] = {}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"
        if bare_password:
            headers["X-BARE-PASSWORD"] = bare_password
        self._block_char_limit = block_char_limit
        self._http = JsonApiClient(
            base_url,
            timeout_seconds=timeout_seconds,
            max_retries=max_retries,
            headers=headers,
            transport=transport,
        )

    def create_block(
        self,
        *,
        label: str,
        value: dict[str, Any],
        description: str,
        metadata: dict[str, Any],
    ) -> dict[str, Any]:
        serialized = _serialize_value(value)
        payload = {
            "value": serialized,
            "name": label,
            "label": label,
            "description": description,
            "metadata": metadata,
            "limit": max(self._block_char_limit, len(serialized)),
            "is_template": False,
            "preserve_on_migration": False,
            "read_only": False,
        }
        return self._http.request_json("POST", "/v1/blocks/", json=payload) or {}

    def update_block(
        self,
        block_id: str,
        *,
        value: dict[str, Any],
        description: str,
        metadata: dict[str, Any],
    ) -> dict[str, Any]:
        serialized = _serialize_value(value)
        payload = {
            "value": serialized,
            "description": description,
            "metadata": metadata,
            "limit": max(self._block_char_limit, len(serialized)),
        }
        return self._http.request_json("PATCH", f"/v1/blocks/{block_id}", json=payload) or {}

    def delete_block(self, block_id: str) -> None:
        self._http.request("DELETE", f"/v1/blocks/{block_id}")

    def attach_block(self, agent_id: str, block_id: str) -> None:
        self._http.request(
            "PATCH",
            f"/v1/agents/{agent_id}/core-memory/blocks/attach/{block_id}",
        )

    def detach_block(self, agent_id: str, block_id: str) -> None:
        self._http.request(
            "PATCH",
            f"/v1/agents/{agent_id}/core-memory/blocks/detach/{block_id}",
        )

    def list_agent_blocks(self, agent_id: str) -> list[dict[str, Any]]:
        payload = self._http.request_json("GET", f"/v1/agents/{agent_id}/core-memory/blocks")
        if not isinstance(payload, list):
            return []
        return [item for item in payload if isinstance(item, dict)]

    def create_archival_passage(
        self,
        agent_id: str,
        *,
        text: str,
        metadata: dict[str, Any],
    ) -> dict[str, Any]:
        payload = self._http.request_json(
            "POST",
            f"/v1/agents/{agent_id}/archival-memory",
            json={"text": text, "metadata": metadata},
        )
        if isinstance(payload, list):
            payload = payload[0] if payload else None
        return payload if isinstance(payload, dict) else {}

    def close(self) -> None:
        self._http.close()


def _serialize_value(value: dict[str, Any]) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)

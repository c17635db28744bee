"""Agent to chat-room lookup against the room-mapping service."""

from __future__ import annotations

import logging
from urllib.parse import quote

import httpx

from task_bridge.http import ApiError, JsonApiClient
from task_bridge.orchestrator.errors import NotificationError

logger = logging.getLogger(__name__)


class RoomMappingClient:
    """Resolve the primary room of an agent; an unmapped agent yields ``None``."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._http = JsonApiClient(
            base_url,
            timeout_seconds=timeout_seconds,
            max_retries=0,
            transport=transport,
        )

    def get_primary_room(self, agent_id: str) -> str | None:
        try:
            payload = self._http.request_json(
                "GET",
                f"/api/agent-room-mapping/{quote(agent_id, safe='')}",
                allow_not_found=True,
            )
        except ApiError as error:
            raise NotificationError(f"Room mapping lookup failed for {agent_id}: {error}") from error

        if not isinstance(payload, dict) or not payload.get("success"):
            logger.info("No room mapping for agent %s", agent_id)
            return None
        data = payload.get("data")
        room_id = data.get("roomId") if isinstance(data, dict) else None
        if not isinstance(room_id, str) or not room_id:
            logger.info("No primary room for agent %s", agent_id)
            return None
        return room_id

    def close(self) -> None:
        self._http.close()

"""Minimal Matrix client-server API sender for room notifications."""

from __future__ import annotations

import logging
import uuid
from urllib.parse import quote

import httpx

from task_bridge.http import ApiError, JsonApiClient
from task_bridge.orchestrator.errors import NotificationError

logger = logging.getLogger(__name__)

_API_PREFIX = "/_matrix/client/v3"


class MatrixClient:
    """Join rooms and post ``m.text`` messages with an HTML body."""

    def __init__(
        self,
        homeserver_url: str,
        access_token: str,
        *,
        timeout_seconds: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._http = JsonApiClient(
            homeserver_url,
            timeout_seconds=timeout_seconds,
            max_retries=0,
            headers={"Authorization": f"Bearer {access_token}"},
            transport=transport,
        )

    def joined_rooms(self) -> list[str]:
        payload = self._http.request_json("GET", f"{_API_PREFIX}/joined_rooms")
        rooms = payload.get("joined_rooms") if isinstance(payload, dict) else None
        return [room for room in rooms or [] if isinstance(room, str)]

    def ensure_joined(self, room_id: str) -> None:
        if room_id in self.joined_rooms():
            return
        self._http.request("POST", f"{_API_PREFIX}/join/{quote(room_id, safe='')}", json={})
        logger.info("Joined Matrix room %s", room_id)

    def send_message(self, room_id: str, *, plain: str, html: str) -> str | None:
        """Post one formatted message; return the event id."""

        content = {
            "msgtype": "m.text",
            "body": plain,
            "format": "org.matrix.custom.html",
            "formatted_body": html,
        }
        try:
            self.ensure_joined(room_id)
            payload = self._http.request_json(
                "PUT",
                f"{_API_PREFIX}/rooms/{quote(room_id, safe='')}/send/m.room.message/"
                f"{uuid.uuid4().hex}",
                json=content,
            )
        except ApiError as error:
            raise NotificationError(f"Matrix send to {room_id} failed: {error}") from error
        event_id = payload.get("event_id") if isinstance(payload, dict) else None
        return event_id if isinstance(event_id, str) else None

    def close(self) -> None:
        self._http.close()

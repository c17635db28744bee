"""Fallback delivery by HTTP POST to the agent's message endpoint."""

from __future__ import annotations

import logging
from urllib.parse import quote

import httpx

from task_bridge.http import ApiError, JsonApiClient
from task_bridge.notify.render import render_callback_text
from task_bridge.orchestrator.errors import NotificationError
from task_bridge.orchestrator.models import NotificationEvent

logger = logging.getLogger(__name__)


class CallbackNotifier:
    """POST a role/content message; any 2xx counts as delivered.

    Events carrying ``callback_url`` go there; others go to the agent's async
    message endpoint under ``base_url``.
    """

    def __init__(  # noqa: PLR0913
        self,
        base_url: str,
        *,
        auth_token: str = "",
        bare_password: str = "",
        timeout_seconds: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers: dict[str, str] = {}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"
        if bare_password:
            headers["X-BARE-PASSWORD"] = bare_password
        self._http = JsonApiClient(
            base_url,
            timeout_seconds=timeout_seconds,
            max_retries=0,
            headers=headers,
            transport=transport,
        )

    def target_for(self, event: NotificationEvent) -> str:
        if event.callback_url:
            return event.callback_url
        return f"/v1/agents/{quote(event.agent_id, safe='')}/messages/async"

    def send(self, event: NotificationEvent) -> None:
        payload = {
            "messages": [{"role": "system", "content": render_callback_text(event)}],
            "agent_id": event.agent_id,
            "task_id": event.task_id,
            "success": event.success,
            "error": event.error,
            "timestamp": event.timestamp.isoformat(),
        }
        target = self.target_for(event)
        try:
            self._http.request("POST", target, json=payload)
        except ApiError as error:
            raise NotificationError(f"Callback to {target} failed: {error}") from error
        logger.info("Delivered %s callback for task %s", event.kind.value, event.task_id)

    def close(self) -> None:
        self._http.close()

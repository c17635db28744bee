"""Primary chat-room delivery with a single HTTP callback fallback."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from task_bridge.notify.callback import CallbackNotifier
from task_bridge.notify.matrix import MatrixClient
from task_bridge.notify.render import render_html, render_plain
from task_bridge.notify.room_mapping import RoomMappingClient
from task_bridge.orchestrator.errors import NotificationError
from task_bridge.orchestrator.models import NotificationEvent

logger = logging.getLogger(__name__)


class DeliveryChannel(str, Enum):
    CHAT_ROOM = "chat_room"
    CALLBACK = "callback"


@dataclass(slots=True)
class DeliveryReport:
    """Outcome of one attempt sequence."""

    delivered: bool
    channel: DeliveryChannel | None
    primary_error: str | None = None
    fallback_error: str | None = None


class NotificationRouter:
    """Deliver one event: chat room first, callback once if that is unavailable.

    Never raises and never retries; both channels failing is logged and reported
    as undelivered.
    """

    def __init__(
        self,
        *,
        matrix: MatrixClient | None = None,
        room_mapping: RoomMappingClient | None = None,
        callback: CallbackNotifier | None = None,
    ) -> None:
        self._matrix = matrix
        self._room_mapping = room_mapping
        self._callback = callback

    def notify(self, event: NotificationEvent) -> bool:
        return self.deliver(event).delivered

    def deliver(self, event: NotificationEvent) -> DeliveryReport:
        primary_error = self._try_chat_room(event)
        if primary_error is None:
            return DeliveryReport(delivered=True, channel=DeliveryChannel.CHAT_ROOM)

        logger.info(
            "Chat-room delivery unavailable for task %s (%s), using callback",
            event.task_id,
            primary_error,
        )
        if self._callback is None:
            logger.warning(
                "No callback channel configured, %s notification for %s dropped",
                event.kind.value,
                event.task_id,
            )
            return DeliveryReport(
                delivered=False,
                channel=None,
                primary_error=primary_error,
                fallback_error="callback not configured",
            )
        try:
            self._callback.send(event)
        except NotificationError as error:
            logger.warning("Callback delivery for task %s failed: %s", event.task_id, error)
            return DeliveryReport(
                delivered=False,
                channel=None,
                primary_error=primary_error,
                fallback_error=str(error),
            )
        return DeliveryReport(
            delivered=True,
            channel=DeliveryChannel.CALLBACK,
            primary_error=primary_error,
        )

    def close(self) -> None:
        for channel in (self._matrix, self._room_mapping, self._callback):
            if channel is not None:
                channel.close()

    def _try_chat_room(self, event: NotificationEvent) -> str | None:
        """Return ``None`` on delivery, else why the chat room was skipped."""

        if self._matrix is None or self._room_mapping is None:
            return "chat room not configured"
        try:
            room_id = self._room_mapping.get_primary_room(event.agent_id)
            if room_id is None:
                return f"no room mapped for agent {event.agent_id}"
            self._matrix.send_message(room_id, plain=render_plain(event), html=render_html(event))
        except NotificationError as error:
            logger.warning("Chat-room delivery for task %s failed: %s", event.task_id, error)
            return str(error)
        logger.info(
            "Delivered %s notification for task %s to room %s",
            event.kind.value,
            event.task_id,
            room_id,
        )
        return None

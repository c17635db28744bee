"""Notification delivery: chat room first, HTTP callback as fallback."""

from task_bridge.notify.callback import CallbackNotifier
from task_bridge.notify.matrix import MatrixClient
from task_bridge.notify.render import render_callback_text, render_html, render_plain
from task_bridge.notify.room_mapping import RoomMappingClient
from task_bridge.notify.router import DeliveryChannel, DeliveryReport, NotificationRouter

__all__ = [
    "CallbackNotifier",
    "DeliveryChannel",
    "DeliveryReport",
    "MatrixClient",
    "NotificationRouter",
    "RoomMappingClient",
    "render_callback_text",
    "render_html",
    "render_plain",
]

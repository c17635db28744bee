"""Channel-specific renderers for notification events."""

from __future__ import annotations

from html import escape

from task_bridge.orchestrator.models import NotificationEvent, NotificationKind

COMPLETION_TITLE = "Claude Code Async Job Complete"
CHECKPOINT_TITLE = "Claude Code Checkpoint Reached"
_UNKNOWN_ERROR = "Unknown error"


def _title(event: NotificationEvent) -> str:
    if event.kind == NotificationKind.CHECKPOINT:
        return CHECKPOINT_TITLE
    return COMPLETION_TITLE


def _status_label(event: NotificationEvent) -> str:
    return "Success" if event.success else "Failed"


def _continuation_lines(event: NotificationEvent) -> list[tuple[str, str]]:
    rows: list[tuple[str, str]] = []
    if event.kind == NotificationKind.CHECKPOINT:
        rows.append(("Iteration", str(event.iteration)))
        rows.append(("Can Continue", "yes" if event.can_continue else "no"))
    if event.session_id:
        rows.append(("Session ID", event.session_id))
    return rows


def render_plain(event: NotificationEvent) -> str:
    lines = [
        _title(event),
        "",
        f"Task ID: {event.task_id}",
        f"Agent ID: {event.agent_id}",
        f"Status: {_status_label(event)}",
        f"Time: {event.timestamp.isoformat()}",
    ]
    lines.extend(f"{label}: {value}" for label, value in _continuation_lines(event))
    lines.append("")
    if event.success:
        lines.append(f"Result:\n{event.result}")
    else:
        lines.append(f"Error: {event.error or _UNKNOWN_ERROR}")
    return "\n".join(lines)


def render_html(event: NotificationEvent) -> str:
    parts = [
        f"<h3>{escape(_title(event))}</h3>",
        f"<p><strong>Task ID:</strong> <code>{escape(event.task_id)}</code></p>",
        f"<p><strong>Agent ID:</strong> <code>{escape(event.agent_id)}</code></p>",
        f"<p><strong>Status:</strong> {_status_label(event)}</p>",
        f"<p><strong>Time:</strong> {escape(event.timestamp.isoformat())}</p>",
    ]
    parts.extend(
        f"<p><strong>{label}:</strong> {escape(value)}</p>"
        for label, value in _continuation_lines(event)
    )
    if event.success:
        parts.append(f"<h4>Result:</h4><pre><code>{escape(event.result)}</code></pre>")
    else:
        parts.append(f"<p><strong>Error:</strong> {escape(event.error or _UNKNOWN_ERROR)}</p>")
    return "".join(parts)


def render_callback_text(event: NotificationEvent) -> str:
    """Compact text for the agent message endpoint."""

    if event.kind == NotificationKind.CHECKPOINT:
        head = f"[Claude Code] Task {event.task_id} reached a checkpoint"
        tail = "continuation allowed" if event.can_continue else "iteration limit reached"
        body = f"{head} (iteration {event.iteration}, {tail})."
    elif event.success:
        body = f"[Claude Code] Task {event.task_id} completed successfully."
    else:
        body = f"[Claude Code] Task {event.task_id} failed."

    if event.session_id:
        body += f" Session: {event.session_id}."
    detail = event.result if event.success else (event.error or _UNKNOWN_ERROR)
    return f"{body}\n\n{detail}" if detail else body

"""Best-effort recovery of session id and result text from CLI stdout."""

from __future__ import annotations

import json
from dataclasses import dataclass


@dataclass(slots=True)
class ParsedOutput:
    """What could be recovered from one invocation's stdout."""

    result: str
    session_id: str | None = None


def parse_cli_output(stdout_text: str) -> ParsedOutput:
    """Pick the result text and session id out of plain or JSON stdout.

    JSON envelopes may come as one document or as one object per line; the last
    object carrying ``session_id`` wins, and a string ``result`` replaces the raw text.
    """

    text = stdout_text.strip()
    if not text:
        return ParsedOutput(result="")

    session_id: str | None = None
    result: str | None = None
    for payload in _iter_json_objects(text):
        raw_session = payload.get("session_id")
        if isinstance(raw_session, str) and raw_session:
            session_id = raw_session
        raw_result = payload.get("result")
        if isinstance(raw_result, str):
            result = raw_result

    return ParsedOutput(result=(result if result is not None else text).strip(), session_id=session_id)


def _iter_json_objects(text: str) -> list[dict[str, object]]:
    whole = _try_load_dict(text)
    if whole is not None:
        return [whole]
    objects: list[dict[str, object]] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped.startswith("{"):
            continue
        payload = _try_load_dict(stripped)
        if payload is not None:
            objects.append(payload)
    return objects


def _try_load_dict(raw: str) -> dict[str, object] | None:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None
    return parsed

"""Status record persistence in the external agent-memory service."""

from __future__ import annotations

import logging
from typing import Any

from task_bridge.config import MAX_KEEP_RECORDS, MIN_KEEP_RECORDS
from task_bridge.http import ApiError
from task_bridge.memory.archival import archival_metadata, format_record_for_archival
from task_bridge.memory.client import MemoryApiClient
from task_bridge.orchestrator.errors import StoreError
from task_bridge.orchestrator.models import TaskStatus, TaskStatusRecord, utc_now

logger = logging.getLogger(__name__)

DEFAULT_RECORD_LABEL_PREFIX = "claude_task_"


class StatusStoreClient:
    """Pass-through persistence for task status records.

    Record CRUD and attachment raise ``StoreError``; archival and retention cleanup
    are best-effort and only log their failures.
    """

    def __init__(
        self,
        api: MemoryApiClient,
        *,
        label_prefix: str = DEFAULT_RECORD_LABEL_PREFIX,
    ) -> None:
        self._api = api
        self._label_prefix = label_prefix

    def record_label(self, task_id: str) -> str:
        return f"{self._label_prefix}{task_id}"

    def create_status_record(self, record: TaskStatusRecord) -> str:
        label = self.record_label(record.task_id)
        try:
            block = self._api.create_block(
                label=label,
                value=record.to_payload(),
                description=_describe(record),
                metadata=_record_metadata(record),
            )
        except ApiError as error:
            raise StoreError(
                f"Failed to create status record for {record.task_id}: {error}",
                status_code=error.status_code,
            ) from error

        record_id = block.get("id")
        if not isinstance(record_id, str) or not record_id:
            raise StoreError(f"Status store returned no id for {record.task_id}")
        logger.info("Created status record %s for task %s", record_id, record.task_id)
        return record_id

    def update_status_record(self, record_id: str, record: TaskStatusRecord) -> None:
        try:
            self._api.update_block(
                record_id,
                value=record.to_payload(),
                description=_describe(record),
                metadata=_record_metadata(record),
            )
        except ApiError as error:
            raise StoreError(
                f"Failed to update status record {record_id}: {error}",
                status_code=error.status_code,
            ) from error
        logger.debug("Updated status record %s: %s", record_id, record.status.value)

    def delete_status_record(self, record_id: str) -> None:
        try:
            self._api.delete_block(record_id)
        except ApiError as error:
            raise StoreError(
                f"Failed to delete status record {record_id}: {error}",
                status_code=error.status_code,
            ) from error
        logger.debug("Deleted status record %s", record_id)

    def attach_record_to_owner(self, owner_id: str, record_id: str) -> None:
        try:
            self._api.attach_block(owner_id, record_id)
        except ApiError as error:
            raise StoreError(
                f"Failed to attach record {record_id} to {owner_id}: {error}",
                status_code=error.status_code,
            ) from error

    def detach_record_from_owner(self, owner_id: str, record_id: str) -> None:
        try:
            self._api.detach_block(owner_id, record_id)
        except ApiError as error:
            raise StoreError(
                f"Failed to detach record {record_id} from {owner_id}: {error}",
                status_code=error.status_code,
            ) from error

    def archive_if_needed(self, record: TaskStatusRecord) -> str | None:
        """Write a long-form archival entry when flagged; return its id if known."""

        if not record.should_archive:
            return None
        try:
            passage = self._api.create_archival_passage(
                record.agent_id,
                text=format_record_for_archival(record),
                metadata=archival_metadata(record),
            )
        except ApiError as error:
            logger.warning("Archival of task %s failed: %s", record.task_id, error)
            return None
        passage_id = passage.get("id")
        logger.info("Archived task %s as passage %s", record.task_id, passage_id)
        return passage_id if isinstance(passage_id, str) else None

    def cleanup_old_records(self, owner_id: str, keep_count: int) -> list[str]:
        """Detach non-elevated task records beyond the newest ``keep_count``."""

        keep_count = clamp_keep_records(keep_count)
        try:
            blocks = self._api.list_agent_blocks(owner_id)
        except ApiError as error:
            logger.warning("Listing records for %s failed: %s", owner_id, error)
            return []

        family = [
            block
            for block in blocks
            if str(block.get("label") or "").startswith(self._label_prefix)
            and block.get("id")
        ]
        candidates = [block for block in family if not _is_elevated(block)]
        candidates.sort(key=_created_at_key, reverse=True)

        detached: list[str] = []
        for block in candidates[keep_count:]:
            block_id = str(block["id"])
            try:
                self._api.detach_block(owner_id, block_id)
            except ApiError as error:
                logger.warning("Detaching record %s from %s failed: %s", block_id, owner_id, error)
                continue
            detached.append(block_id)

        elevated_count = len(family) - len(candidates)
        if detached or elevated_count:
            logger.info(
                "Retention for %s: detached %d record(s), kept %d elevated",
                owner_id,
                len(detached),
                elevated_count,
            )
        return detached

    def close(self) -> None:
        self._api.close()


def clamp_keep_records(value: int) -> int:
    return min(MAX_KEEP_RECORDS, max(MIN_KEEP_RECORDS, value))


def _describe(record: TaskStatusRecord) -> str:
    return f"Claude Code task {record.task_id} - {record.status.value} at {record.updated_at.isoformat()}"


def _record_metadata(record: TaskStatusRecord) -> dict[str, Any]:
    metadata: dict[str, Any] = {
        "task_id": record.task_id,
        "agent_id": record.agent_id,
        "status": record.status.value,
        "created_at": record.started_at.isoformat(),
        "updated_at": record.updated_at.isoformat(),
        "prompt": record.prompt,
        "elevated": record.elevated,
        "keep_records": record.keep_records,
    }
    if record.status.is_terminal:
        completed_at = record.completed_at or utc_now()
        metadata.update(
            {
                "completed": True,
                "success": record.status == TaskStatus.COMPLETED,
                "execution_time_ms": record.execution_time_ms,
                "completion_timestamp": completed_at.isoformat(),
            },
        )
    return metadata


def _is_elevated(block: dict[str, Any]) -> bool:
    metadata = block.get("metadata")
    return isinstance(metadata, dict) and bool(metadata.get("elevated"))


def _created_at_key(block: dict[str, Any]) -> str:
    metadata = block.get("metadata")
    if not isinstance(metadata, dict):
        return ""
    return str(metadata.get("created_at") or "")

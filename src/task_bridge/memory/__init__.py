"""Status record persistence in the external agent-memory service."""

from task_bridge.memory.archival import archival_metadata, archival_tags, format_record_for_archival
from task_bridge.memory.client import MemoryApiClient
from task_bridge.memory.status_store import StatusStoreClient, clamp_keep_records

__all__ = [
    "MemoryApiClient",
    "StatusStoreClient",
    "archival_metadata",
    "archival_tags",
    "clamp_keep_records",
    "format_record_for_archival",
]

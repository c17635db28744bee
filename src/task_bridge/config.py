"""Runtime configuration for the task bridge."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

_OUTPUT_FORMATS = {"text", "json"}
MIN_KEEP_RECORDS = 1
MAX_KEEP_RECORDS = 50


@dataclass(slots=True)
class CliSettings:
    """Assistant CLI resolution and invocation settings."""

    cli_name: str | None = None
    local_install_path: str = "~/.claude/local/claude"
    fallback_name: str = "claude"
    execution_timeout_seconds: float = 1_800
    skip_permissions: bool = True
    output_format: str = "text"


@dataclass(slots=True)
class EngineSettings:
    """Task engine scheduling and submission limits."""

    max_workers: int = 50
    max_prompt_length: int = 50_000
    default_keep_records: int = 3
    default_max_iterations: int = 3


@dataclass(slots=True)
class RegistrySettings:
    ttl_seconds: int = 3_600
    sweep_interval_seconds: int = 300
    prompt_excerpt_chars: int = 200


@dataclass(slots=True)
class MemorySettings:
    """Agent-memory service holding status records."""

    enabled: bool = True
    base_url: str = "http://localhost:8283"
    auth_token: str = ""
    bare_password: str = ""
    request_timeout_seconds: float = 30.0
    max_retries: int = 3
    record_label_prefix: str = "claude_task_"
    record_char_limit: int = 5_000


@dataclass(slots=True)
class NotifySettings:
    """Chat-room and callback notification channels."""

    matrix_homeserver_url: str = "https://matrix.org"
    matrix_access_token: str = ""
    room_mapping_url: str = ""
    callback_base_url: str = ""
    request_timeout_seconds: float = 10.0

    @property
    def chat_room_enabled(self) -> bool:
        return bool(self.matrix_access_token and self.room_mapping_url)


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    cli: CliSettings = field(default_factory=CliSettings)
    engine: EngineSettings = field(default_factory=EngineSettings)
    registry: RegistrySettings = field(default_factory=RegistrySettings)
    memory: MemorySettings = field(default_factory=MemorySettings)
    notify: NotifySettings = field(default_factory=NotifySettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        memory_base_url = os.getenv("TASK_BRIDGE_MEMORY_BASE_URL", "http://localhost:8283")
        return cls(
            cli=CliSettings(
                cli_name=os.getenv("TASK_BRIDGE_CLI_NAME") or None,
                local_install_path=os.getenv(
                    "TASK_BRIDGE_CLI_LOCAL_PATH",
                    "~/.claude/local/claude",
                ),
                execution_timeout_seconds=float(
                    os.getenv("TASK_BRIDGE_EXECUTION_TIMEOUT_SECONDS", "1800"),
                ),
                skip_permissions=_env_bool("TASK_BRIDGE_SKIP_PERMISSIONS", default=True),
                output_format=os.getenv("TASK_BRIDGE_OUTPUT_FORMAT", "text").strip().lower(),
            ),
            engine=EngineSettings(
                max_workers=int(os.getenv("TASK_BRIDGE_MAX_WORKERS", "50")),
                max_prompt_length=int(os.getenv("TASK_BRIDGE_MAX_PROMPT_LENGTH", "50000")),
                default_keep_records=int(os.getenv("TASK_BRIDGE_KEEP_RECORDS", "3")),
                default_max_iterations=int(os.getenv("TASK_BRIDGE_MAX_ITERATIONS", "3")),
            ),
            registry=RegistrySettings(
                ttl_seconds=int(os.getenv("TASK_BRIDGE_REGISTRY_TTL_SECONDS", "3600")),
                sweep_interval_seconds=int(
                    os.getenv("TASK_BRIDGE_REGISTRY_SWEEP_SECONDS", "300"),
                ),
            ),
            memory=MemorySettings(
                enabled=_env_bool("TASK_BRIDGE_MEMORY_ENABLED", default=True),
                base_url=memory_base_url,
                auth_token=os.getenv("TASK_BRIDGE_MEMORY_AUTH_TOKEN", ""),
                bare_password=os.getenv("TASK_BRIDGE_MEMORY_BARE_PASSWORD", ""),
                request_timeout_seconds=float(
                    os.getenv("TASK_BRIDGE_MEMORY_REQUEST_TIMEOUT_SECONDS", "30"),
                ),
                max_retries=int(os.getenv("TASK_BRIDGE_MEMORY_MAX_RETRIES", "3")),
                record_label_prefix=os.getenv("TASK_BRIDGE_MEMORY_RECORD_PREFIX", "claude_task_"),
                record_char_limit=int(os.getenv("TASK_BRIDGE_MEMORY_RECORD_CHAR_LIMIT", "5000")),
            ),
            notify=NotifySettings(
                matrix_homeserver_url=os.getenv(
                    "TASK_BRIDGE_MATRIX_HOMESERVER_URL",
                    "https://matrix.org",
                ),
                matrix_access_token=os.getenv("TASK_BRIDGE_MATRIX_ACCESS_TOKEN", ""),
                room_mapping_url=os.getenv("TASK_BRIDGE_ROOM_MAPPING_URL", ""),
                callback_base_url=os.getenv("TASK_BRIDGE_CALLBACK_BASE_URL", memory_base_url),
                request_timeout_seconds=float(
                    os.getenv("TASK_BRIDGE_NOTIFY_REQUEST_TIMEOUT_SECONDS", "10"),
                ),
            ),
        )

    def validate(self) -> None:  # noqa: C901
        """Raise configuration error for out-of-range or malformed values."""

        if self.cli.cli_name:
            name = self.cli.cli_name.strip()
            if not Path(name).is_absolute() and ("/" in name or "\\" in name):
                raise ValueError(
                    "TASK_BRIDGE_CLI_NAME must be an absolute path or a bare executable name.",
                )
        if self.cli.execution_timeout_seconds <= 0:
            raise ValueError("TASK_BRIDGE_EXECUTION_TIMEOUT_SECONDS must be > 0.")
        if self.cli.output_format not in _OUTPUT_FORMATS:
            raise ValueError(
                f"TASK_BRIDGE_OUTPUT_FORMAT must be one of {sorted(_OUTPUT_FORMATS)}, "
                f"got {self.cli.output_format!r}.",
            )
        if self.engine.max_workers <= 0:
            raise ValueError("TASK_BRIDGE_MAX_WORKERS must be a positive integer.")
        if self.engine.max_prompt_length <= 0:
            raise ValueError("TASK_BRIDGE_MAX_PROMPT_LENGTH must be a positive integer.")
        if not MIN_KEEP_RECORDS <= self.engine.default_keep_records <= MAX_KEEP_RECORDS:
            raise ValueError(
                f"TASK_BRIDGE_KEEP_RECORDS must be between {MIN_KEEP_RECORDS} "
                f"and {MAX_KEEP_RECORDS}.",
            )
        if self.engine.default_max_iterations < 1:
            raise ValueError("TASK_BRIDGE_MAX_ITERATIONS must be >= 1.")
        if self.registry.ttl_seconds <= 0:
            raise ValueError("TASK_BRIDGE_REGISTRY_TTL_SECONDS must be > 0.")
        if self.registry.sweep_interval_seconds <= 0:
            raise ValueError("TASK_BRIDGE_REGISTRY_SWEEP_SECONDS must be > 0.")
        if self.memory.enabled:
            _validate_http_url("TASK_BRIDGE_MEMORY_BASE_URL", self.memory.base_url)
        if self.memory.max_retries < 0:
            raise ValueError("TASK_BRIDGE_MEMORY_MAX_RETRIES must be >= 0.")
        if self.notify.chat_room_enabled:
            _validate_http_url(
                "TASK_BRIDGE_MATRIX_HOMESERVER_URL",
                self.notify.matrix_homeserver_url,
            )
            _validate_http_url("TASK_BRIDGE_ROOM_MAPPING_URL", self.notify.room_mapping_url)
        if self.notify.callback_base_url:
            _validate_http_url("TASK_BRIDGE_CALLBACK_BASE_URL", self.notify.callback_base_url)


def _validate_http_url(name: str, value: str) -> None:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(
            f"Invalid {name}: {value!r}. Expected an absolute URL with http:// or https:// scheme.",
        )


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")

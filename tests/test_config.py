from __future__ import annotations

import allure
import pytest

from task_bridge.config import Settings

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Environment Settings"),
]


def test_defaults(clean_env: pytest.MonkeyPatch) -> None:
    settings = Settings.from_env()
    settings.validate()

    assert settings.cli.cli_name is None
    assert settings.cli.execution_timeout_seconds == 1800
    assert settings.cli.skip_permissions is True
    assert settings.engine.max_workers == 50
    assert settings.engine.default_keep_records == 3
    assert settings.registry.ttl_seconds == 3600
    assert settings.memory.enabled is True
    assert settings.memory.base_url == "http://localhost:8283"
    assert settings.notify.callback_base_url == "http://localhost:8283"
    assert settings.notify.matrix_homeserver_url == "https://matrix.org"
    assert settings.notify.chat_room_enabled is False


def test_env_overrides(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("TASK_BRIDGE_CLI_NAME", "/usr/local/bin/claude")
    clean_env.setenv("TASK_BRIDGE_EXECUTION_TIMEOUT_SECONDS", "90")
    clean_env.setenv("TASK_BRIDGE_SKIP_PERMISSIONS", "off")
    clean_env.setenv("TASK_BRIDGE_OUTPUT_FORMAT", "JSON")
    clean_env.setenv("TASK_BRIDGE_MEMORY_ENABLED", "no")
    clean_env.setenv("TASK_BRIDGE_MATRIX_ACCESS_TOKEN", "token")
    clean_env.setenv("TASK_BRIDGE_ROOM_MAPPING_URL", "http://mapping.test")
    clean_env.setenv("TASK_BRIDGE_CALLBACK_BASE_URL", "")

    settings = Settings.from_env()
    settings.validate()

    assert settings.cli.cli_name == "/usr/local/bin/claude"
    assert settings.cli.execution_timeout_seconds == 90
    assert settings.cli.skip_permissions is False
    assert settings.cli.output_format == "json"
    assert settings.memory.enabled is False
    assert settings.notify.chat_room_enabled is True
    assert settings.notify.callback_base_url == ""


def test_invalid_boolean_is_rejected(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("TASK_BRIDGE_SKIP_PERMISSIONS", "maybe")

    with pytest.raises(ValueError, match="TASK_BRIDGE_SKIP_PERMISSIONS"):
        Settings.from_env()


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("TASK_BRIDGE_CLI_NAME", "bin/claude"),
        ("TASK_BRIDGE_EXECUTION_TIMEOUT_SECONDS", "0"),
        ("TASK_BRIDGE_OUTPUT_FORMAT", "xml"),
        ("TASK_BRIDGE_MAX_WORKERS", "0"),
        ("TASK_BRIDGE_KEEP_RECORDS", "51"),
        ("TASK_BRIDGE_MAX_ITERATIONS", "0"),
        ("TASK_BRIDGE_MEMORY_BASE_URL", "localhost:8283"),
        ("TASK_BRIDGE_CALLBACK_BASE_URL", "ftp://callback.test"),
    ],
)
def test_validate_names_offending_variable(
    clean_env: pytest.MonkeyPatch,
    name: str,
    value: str,
) -> None:
    clean_env.setenv(name, value)

    with pytest.raises(ValueError, match=name):
        Settings.from_env().validate()


def test_chat_room_urls_checked_only_when_enabled(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("TASK_BRIDGE_ROOM_MAPPING_URL", "not a url")
    Settings.from_env().validate()

    clean_env.setenv("TASK_BRIDGE_MATRIX_ACCESS_TOKEN", "token")
    with pytest.raises(ValueError, match="TASK_BRIDGE_ROOM_MAPPING_URL"):
        Settings.from_env().validate()

"""Shared test fixtures."""

from __future__ import annotations

import os
import stat
import sys
from pathlib import Path

import pytest
from fakes import FakeMemoryService

from task_bridge.orchestrator.backend import echo_agent


@pytest.fixture()
def fake_cli(tmp_path: Path) -> Path:
    """Executable shim that runs the echo agent in place of the assistant CLI."""

    shim = tmp_path / "bin" / "fake-claude"
    shim.parent.mkdir()
    shim.write_text(
        f'#!/bin/sh\nexec "{sys.executable}" "{echo_agent.__file__}" "$@"\n',
        encoding="utf-8",
    )
    shim.chmod(shim.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return shim


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Drop every TASK_BRIDGE_* variable inherited from the host."""

    for name in list(os.environ):
        if name.startswith("TASK_BRIDGE_"):
            monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture()
def memory_service() -> FakeMemoryService:
    return FakeMemoryService()

"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from snapkeeper.core.state import SnapshotState
from tests.helpers.snapshots import RecordingPatcher


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's or CI runner's settings out of the tests."""
    monkeypatch.delenv("CI", raising=False)
    monkeypatch.delenv("SNAPKEEPER_UPDATE_MODE", raising=False)


@pytest.fixture
def snapshot_path(tmp_path: Path) -> Path:
    return tmp_path / "__snapshots__" / "test_module.ambr"


@pytest.fixture
def patcher() -> RecordingPatcher:
    return RecordingPatcher()


@pytest.fixture
def make_state(snapshot_path: Path, patcher: RecordingPatcher):
    """Factory for SnapshotState over the shared companion path."""

    def _make(update_mode: str = "new") -> SnapshotState:
        return SnapshotState(snapshot_path, update_mode, patcher=patcher)

    return _make

"""CLI entrypoint smoke tests."""

from __future__ import annotations

from pathlib import Path
import subprocess
import sys

from snapkeeper import __version__

REPO_ROOT = Path(__file__).resolve().parents[2]


def _run_cli(*args: str) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        [sys.executable, "-m", "snapkeeper.cli", *args],
        capture_output=True,
        text=True,
        check=False,
        cwd=REPO_ROOT,
    )


def test_cli_entrypoint_help() -> None:
    result = _run_cli("--help")

    assert result.returncode == 0
    assert "usage: snapkeeper" in result.stdout.lower()


def test_cli_entrypoint_version() -> None:
    result = _run_cli("--version")

    assert result.returncode == 0
    assert result.stdout.strip() == f"snapkeeper {__version__}"

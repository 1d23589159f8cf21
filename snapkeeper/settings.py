"""Snapshot settings and update mode selection."""

from __future__ import annotations

from dataclasses import dataclass
import json
import os
from pathlib import Path
from typing import Optional


UPDATE_MODES = ("new", "all", "none")

_DEFAULT_UPDATE_MODE = "new"
_DEFAULT_SNAPSHOT_DIR = "__snapshots__"
_DEFAULT_SNAPSHOT_EXTENSION = ".ambr"
_TRUTHY = {"1", "true", "yes"}


@dataclass(frozen=True)
class Settings:
    update_mode: str = _DEFAULT_UPDATE_MODE
    snapshot_dir: str = _DEFAULT_SNAPSHOT_DIR
    snapshot_extension: str = _DEFAULT_SNAPSHOT_EXTENSION
    serialize_inline: bool = True

    def snapshot_path_for(self, test_path: Path) -> Path:
        """Companion file for a test module: ``<dir>/__snapshots__/<stem>.ambr``."""
        return test_path.parent / self.snapshot_dir / f"{test_path.stem}{self.snapshot_extension}"


def validate_update_mode(mode: str) -> str:
    if mode not in UPDATE_MODES:
        raise ValueError(f"Unsupported snapshot update mode: {mode}")
    return mode


def load_settings(path: Optional[Path]) -> Settings:
    """Load settings from JSON config file, with environment variable overrides.

    Priority order:
    1. Environment variables (for appropriate settings)
    2. JSON config file
    3. Defaults

    Args:
        path: Path to JSON config file, or None to use defaults only

    Returns:
        Settings object with resolved values
    """
    json_settings = {}
    if path and path.exists():
        json_settings = json.loads(path.read_text())

    update_mode = os.getenv("SNAPKEEPER_UPDATE_MODE") or json_settings.get("update_mode", _DEFAULT_UPDATE_MODE)
    validate_update_mode(update_mode)

    snapshot_dir = json_settings.get("snapshot_dir", _DEFAULT_SNAPSHOT_DIR)
    extension = json_settings.get("snapshot_extension", _DEFAULT_SNAPSHOT_EXTENSION)
    if not extension.startswith("."):
        raise ValueError(f"Snapshot extension must start with '.': {extension}")
    serialize_inline = json_settings.get("serialize_inline", True)
    if not isinstance(serialize_inline, bool):
        raise ValueError("serialize_inline must be a boolean")

    return Settings(
        update_mode=update_mode,
        snapshot_dir=snapshot_dir,
        snapshot_extension=extension,
        serialize_inline=serialize_inline,
    )


def default_config_path() -> Path:
    return Path.cwd() / "snapkeeper.json"


def is_ci(environ: Optional[dict[str, str]] = None) -> bool:
    environ = os.environ if environ is None else environ
    return environ.get("CI", "").lower() in _TRUTHY


def resolve_update_mode(
    *,
    cli_mode: Optional[str],
    env_mode: Optional[str],
    config_mode: str,
    ci: bool = False,
) -> str:
    """Pick the run's update mode: CLI flag, then environment, then config.

    On CI a plain ``new`` run must not write snapshots, so it becomes ``none``.
    """
    if cli_mode:
        mode = cli_mode
    elif env_mode:
        mode = env_mode
    else:
        mode = config_mode
    validate_update_mode(mode)
    if ci and mode == "new" and not cli_mode:
        return "none"
    return mode

"""Companion snapshot files: load, save and cleanup.

File layout, one block per key::

    # serializer version: 1
    # name: test_addition 1
      '''
      3
      '''
    # ---

Value lines are indented two spaces. Backslashes are doubled and carriage
returns are written as ``\\r``. A line starting with ``'''`` gets a leading
backslash, so a value can never close its own block.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
import re
from typing import Any

from snapkeeper.core.serializer import serialize
from snapkeeper.errors import SnapshotFileError
from snapkeeper.settings import Settings

logger = logging.getLogger(__name__)

SERIALIZER_VERSION = 1

_HEADER_PREFIX = "# serializer version: "
_NAME_PREFIX = "# name: "
_VALUE_INDENT = "  "
_VALUE_FENCE = "  '''"
_END_MARKER = "# ---"
_ESCAPED_CHAR = re.compile(r"\\(.)")
_CONTROL_ESCAPES = {"n": "\n", "r": "\r"}
_DIGITS = re.compile(r"(\d+)")


def natural_sort_key(key: str) -> list[Any]:
    """Sort key that orders ``"t 2"`` before ``"t 10"``."""
    return [int(part) if index % 2 else part for index, part in enumerate(_DIGITS.split(key))]


def _escape_line(line: str) -> str:
    line = line.replace("\\", "\\\\").replace("\r", "\\r")
    if line.startswith("'''"):
        line = "\\" + line
    return line


def _unescape_char(match: re.Match[str]) -> str:
    return _CONTROL_ESCAPES.get(match.group(1), match.group(1))


def _unescape(text: str) -> str:
    return _ESCAPED_CHAR.sub(_unescape_char, text)


def _escape_name(key: str) -> str:
    return key.replace("\\", "\\\\").replace("\n", "\\n").replace("\r", "\\r")


def _unescape_name(text: str) -> str:
    return _ESCAPED_CHAR.sub(_unescape_char, text)


def render_snapshot_file(data: dict[str, Any]) -> str:
    """Render snapshot data as companion-file text with natural key order."""
    lines = [f"{_HEADER_PREFIX}{SERIALIZER_VERSION}"]
    for key in sorted(data, key=natural_sort_key):
        value = data[key]
        text = value if isinstance(value, str) else serialize(value)
        lines.append(f"{_NAME_PREFIX}{_escape_name(key)}")
        lines.append(_VALUE_FENCE)
        for line in text.split("\n"):
            lines.append(f"{_VALUE_INDENT}{_escape_line(line)}" if line else "")
        lines.append(_VALUE_FENCE)
        lines.append(_END_MARKER)
    return "\n".join(lines) + "\n"


def parse_snapshot_file(text: str, path: Path) -> tuple[dict[str, str], int | None]:
    """Parse companion-file text into ``(data, serializer_version)``.

    Raises:
        SnapshotFileError: the body is not a sequence of well-formed blocks.
    """
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    version: int | None = None
    index = 0
    if lines and lines[0].startswith(_HEADER_PREFIX):
        raw_version = lines[0][len(_HEADER_PREFIX):].strip()
        version = int(raw_version) if raw_version.isdigit() else None
        index = 1

    data: dict[str, str] = {}
    while index < len(lines):
        line = lines[index]
        if not line.startswith(_NAME_PREFIX):
            raise SnapshotFileError(f"Malformed snapshot file {path}: unexpected line {index + 1}")
        key = _unescape_name(line[len(_NAME_PREFIX):])
        if index + 1 >= len(lines) or lines[index + 1] != _VALUE_FENCE:
            raise SnapshotFileError(f"Malformed snapshot file {path}: missing value for {key!r}")
        index += 2
        body: list[str] = []
        while index < len(lines) and lines[index] != _VALUE_FENCE:
            raw = lines[index]
            if raw and not raw.startswith(_VALUE_INDENT):
                raise SnapshotFileError(f"Malformed snapshot file {path}: bad indentation on line {index + 1}")
            body.append(_unescape(raw[len(_VALUE_INDENT):]))
            index += 1
        if index + 1 >= len(lines) or lines[index + 1] != _END_MARKER:
            raise SnapshotFileError(f"Malformed snapshot file {path}: unterminated value for {key!r}")
        data[key] = "\n".join(body)
        index += 2
    return data, version


def load_snapshot_data(path: Path, update_mode: str) -> tuple[dict[str, str], bool]:
    """Load a companion file, returning ``(data, dirty)``.

    A missing file yields empty data. An outdated or unknown serializer version
    is an error under ``none``; other modes mark the data dirty so it gets
    rewritten. A malformed file is discarded only under ``all``.
    """
    if not path.exists():
        return {}, False

    text = path.read_text(encoding="utf-8")
    try:
        data, version = parse_snapshot_file(text, path)
    except SnapshotFileError:
        if update_mode != "all":
            raise
        logger.warning("Discarding malformed snapshot file %s", path)
        return {}, True

    if version == SERIALIZER_VERSION:
        logger.debug("Loaded %d snapshots from %s", len(data), path)
        return data, False
    if update_mode == "none":
        raise SnapshotFileError(
            f"Snapshot file {path} has serializer version {version}, expected {SERIALIZER_VERSION}. "
            "Re-run with --snapshot-update to rewrite it."
        )
    logger.debug("Snapshot file %s has outdated version %s; marking dirty", path, version)
    return data, True


def write_text_atomic(path: Path, text: str) -> None:
    """Replace ``path`` with ``text`` so readers never see a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    temp = path.with_name(path.name + ".tmp")
    try:
        temp.write_text(text, encoding="utf-8", newline="")
        os.replace(str(temp), str(path))
    except OSError:
        if temp.exists():
            temp.unlink()
        raise


def save_snapshot_file(data: dict[str, Any], path: Path) -> None:
    write_text_atomic(path, render_snapshot_file(data))
    logger.debug("Saved %d snapshots to %s", len(data), path)


def delete_snapshot_file(path: Path) -> bool:
    if not path.exists():
        return False
    path.unlink()
    logger.debug("Deleted snapshot file %s", path)
    return True


def find_obsolete_snapshot_files(root: Path, settings: Settings) -> list[Path]:
    """Companion files under ``root`` whose test module no longer exists."""
    obsolete: list[Path] = []
    pattern = f"*{settings.snapshot_extension}"
    for snapshot_path in sorted(root.rglob(pattern)):
        if snapshot_path.parent.name != settings.snapshot_dir:
            continue
        test_path = snapshot_path.parent.parent / f"{snapshot_path.stem}.py"
        if not test_path.exists():
            obsolete.append(snapshot_path)
    return obsolete

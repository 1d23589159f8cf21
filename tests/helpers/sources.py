"""Helpers for writing test modules and locating call sites in them."""

from __future__ import annotations

import dis
import inspect
from pathlib import Path
import textwrap

from snapkeeper.core.frames import Frame


def write_source(path: Path, source: str, *, newline: str = "\n") -> Path:
    """Write dedented ``source`` to ``path`` with the given line endings."""
    text = textwrap.dedent(source).lstrip("\n")
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        handle.write(text.replace("\n", newline))
    return path


def read_source(path: Path) -> str:
    with path.open(encoding="utf-8", newline="") as handle:
        return handle.read()


def frame_at(path: Path, needle: str, occurrence: int = 1) -> Frame:
    """Frame for the ``occurrence``-th match of ``needle`` in ``path``.

    The column is a UTF-8 byte offset, the unit the interpreter reports.
    """
    seen = 0
    for lineno, line in enumerate(read_source(path).split("\n"), start=1):
        start = 0
        while True:
            index = line.find(needle, start)
            if index < 0:
                break
            seen += 1
            if seen == occurrence:
                column = len(line[:index].encode("utf-8"))
                return Frame(file=str(path), line=lineno, column=column)
            start = index + 1
    raise AssertionError(f"{needle!r} occurrence {occurrence} not found in {path}")


def fake_stack(*frames: Frame) -> list[inspect.FrameInfo]:
    """Stack entries carrying only what frame resolution reads."""
    return [
        inspect.FrameInfo(
            None,
            frame.file,
            frame.line,
            "test_function",
            None,
            None,
            positions=dis.Positions(frame.line, frame.line, frame.column, frame.column + 1),
        )
        for frame in frames
    ]

"""Resolve the source position of an assertion from the call stack."""

from __future__ import annotations

from dataclasses import dataclass
import inspect
import os
from pathlib import Path
from typing import Optional, Sequence

from snapkeeper.errors import FrameResolutionError

_PACKAGE_DIR = Path(__file__).resolve().parent.parent


@dataclass(frozen=True)
class Frame:
    """A call site: absolute file path, 1-based line, 0-based UTF-8 byte column."""

    file: str
    line: int
    column: int


def capture_stack() -> list[inspect.FrameInfo]:
    """Capture the current stack without reading any source lines."""
    return inspect.stack(context=0)


def _is_internal(filename: str) -> bool:
    if filename.startswith("<"):
        return True
    return Path(filename).resolve().is_relative_to(_PACKAGE_DIR)


def resolve_frame(stack: Optional[Sequence[inspect.FrameInfo]] = None) -> Frame:
    """Return the innermost frame that does not belong to snapkeeper itself.

    Raises:
        FrameResolutionError: no such frame, or the interpreter reported no
            column information for it.
    """
    if stack is None:
        stack = capture_stack()
    for info in stack:
        if _is_internal(info.filename):
            continue
        positions = info.positions
        if positions is None or positions.lineno is None or positions.col_offset is None:
            break
        return Frame(
            file=os.path.abspath(info.filename),
            line=positions.lineno,
            column=positions.col_offset,
        )
    raise FrameResolutionError("Couldn't infer stack frame for inline snapshot.")

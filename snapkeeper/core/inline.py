"""Write inline snapshots back into test source files.

Patching runs as a three-phase pipeline per file:

1. index the pending records by call position (one record per call);
2. walk the parsed module and turn every bound call into a ``SpanEdit``;
3. validate the edits do not overlap and splice them in a single pass.
"""

from __future__ import annotations

import ast
from collections import defaultdict
from dataclasses import dataclass
import logging
from pathlib import Path
import re
from typing import Any, Iterable, Sequence

from snapkeeper.core.frames import Frame
from snapkeeper.core.serializer import indent_snapshot, to_literal, to_template
from snapkeeper.errors import InlineSnapshotError
from snapkeeper.infrastructure.snapshot_store import write_text_atomic

logger = logging.getLogger(__name__)

DEFAULT_MATCHER_NAMES = (
    "to_match_inline_snapshot",
    "to_throw_error_matching_inline_snapshot",
)

_PARSE_OPTIONS_BY_SUFFIX: dict[str, dict[str, Any]] = {
    ".pyi": {"type_comments": True},
}
_LEADING_WHITESPACE = re.compile(r"[ \t]*")

Position = tuple[int, int]


@dataclass(frozen=True)
class InlineSnapshot:
    """A pending inline snapshot: where to write it and what to write."""

    frame: Frame
    snapshot: Any
    serialized: bool = True


@dataclass(frozen=True)
class SpanEdit:
    """Replace ``source[start:end]`` with ``text`` (``start == end`` inserts)."""

    start: int
    end: int
    text: str


def group_snapshots_by_file(snapshots: Iterable[InlineSnapshot]) -> dict[str, list[InlineSnapshot]]:
    grouped: dict[str, list[InlineSnapshot]] = defaultdict(list)
    for snapshot in snapshots:
        grouped[snapshot.frame.file].append(snapshot)
    return dict(grouped)


def index_by_position(snapshots: Iterable[InlineSnapshot]) -> dict[Position, InlineSnapshot]:
    """Index one file's records by call position.

    Raises:
        InlineSnapshotError: two records target the same call.
    """
    index: dict[Position, InlineSnapshot] = {}
    for snapshot in snapshots:
        position = (snapshot.frame.line, snapshot.frame.column)
        if position in index:
            raise InlineSnapshotError("Multiple inline snapshots for the same call are not supported.")
        index[position] = snapshot
    return index


def parse_options_for(path: Path) -> dict[str, Any]:
    return dict(_PARSE_OPTIONS_BY_SUFFIX.get(path.suffix, {}))


class SourceOffsets:
    """Map ``ast`` positions (1-based line, UTF-8 byte column) to text offsets."""

    def __init__(self, source: str) -> None:
        self.lines = source.split("\n")
        self._starts: list[int] = []
        offset = 0
        for line in self.lines:
            self._starts.append(offset)
            offset += len(line) + 1

    def offset(self, lineno: int, col_offset: int) -> int:
        line = self.lines[lineno - 1]
        prefix = line.encode("utf-8")[:col_offset].decode("utf-8")
        return self._starts[lineno - 1] + len(prefix)

    def indentation(self, lineno: int) -> str:
        match = _LEADING_WHITESPACE.match(self.lines[lineno - 1])
        return match.group(0) if match else ""


def call_positions(node: ast.Call) -> tuple[Position, ...]:
    """Positions CPython may report for a method call.

    The call's own start, or the start of the method name when that sits on
    a later line than the start of the call.
    """
    func = node.func
    assert isinstance(func, ast.Attribute)
    positions: list[Position] = [(node.lineno, node.col_offset)]
    if func.end_lineno is not None and func.end_col_offset is not None:
        name_start = (func.end_lineno, func.end_col_offset - len(func.attr.encode("utf-8")))
        if name_start not in positions:
            positions.append(name_start)
    return tuple(positions)


def apply_edits(source: str, edits: Sequence[SpanEdit]) -> str:
    """Splice non-overlapping edits into ``source`` in one pass."""
    ordered = sorted(edits, key=lambda edit: (edit.start, edit.end))
    pieces: list[str] = []
    cursor = 0
    for edit in ordered:
        if edit.start < cursor or edit.end < edit.start:
            raise InlineSnapshotError("Inline snapshot edits overlap.")
        pieces.append(source[cursor:edit.start])
        pieces.append(edit.text)
        cursor = edit.end
    pieces.append(source[cursor:])
    return "".join(pieces)


class InlinePatcher:
    """Rewrite ``expect(...).to_match_inline_snapshot(...)`` call sites."""

    def __init__(
        self,
        matcher_names: Sequence[str] = DEFAULT_MATCHER_NAMES,
        indent_unit: str = "    ",
    ) -> None:
        self.matcher_names = frozenset(matcher_names)
        self.indent_unit = indent_unit

    def apply(self, snapshots: Sequence[InlineSnapshot]) -> list[Path]:
        """Patch every pending snapshot into its file; return the files written."""
        indexes = {
            file: index_by_position(group)
            for file, group in group_snapshots_by_file(snapshots).items()
        }
        written: list[Path] = []
        for file, index in indexes.items():
            path = Path(file)
            if self.patch_file(path, index):
                written.append(path)
        return written

    def patch_file(self, path: Path, index: dict[Position, InlineSnapshot]) -> bool:
        with path.open(encoding="utf-8", newline="") as handle:
            source = handle.read()
        tree = ast.parse(source, filename=str(path), **parse_options_for(path))
        edits = self.collect_edits(source, tree, index)
        patched = apply_edits(source, edits)
        if patched == source:
            logger.debug("Inline snapshots in %s already up to date", path)
            return False
        write_text_atomic(path, patched)
        logger.debug("Wrote %d inline snapshots to %s", len(edits), path)
        return True

    def collect_edits(
        self,
        source: str,
        tree: ast.AST,
        index: dict[Position, InlineSnapshot],
    ) -> list[SpanEdit]:
        """Bind indexed records to call nodes and build their edits.

        Raises:
            InlineSnapshotError: a call matches more than one record, or a
                record matches no call at all.
        """
        offsets = SourceOffsets(source)
        bound: set[Position] = set()
        edits: list[SpanEdit] = []
        for node in ast.walk(tree):
            if not isinstance(node, ast.Call) or not isinstance(node.func, ast.Attribute):
                continue
            if node.func.attr not in self.matcher_names:
                continue
            matches = [position for position in call_positions(node) if position in index]
            if not matches:
                continue
            if len(matches) > 1 or matches[0] in bound:
                raise InlineSnapshotError("Multiple inline snapshots for the same call are not supported.")
            bound.add(matches[0])
            edits.append(self._edit_for_call(node, index[matches[0]], offsets))

        if len(bound) != len(index):
            raise InlineSnapshotError("Couldn't locate all inline snapshots.")
        return edits

    def render(self, snapshot: InlineSnapshot, indentation: str) -> str:
        if snapshot.serialized:
            return to_template(indent_snapshot(snapshot.snapshot, indentation, self.indent_unit))
        return to_literal(snapshot.snapshot)

    def _edit_for_call(self, node: ast.Call, snapshot: InlineSnapshot, offsets: SourceOffsets) -> SpanEdit:
        if node.end_lineno is None or node.end_col_offset is None:
            raise InlineSnapshotError("No snapshot insert location found.")
        literal = self.render(snapshot, offsets.indentation(node.lineno))

        if node.args:
            target = node.args[0]
            if isinstance(target, ast.Starred) or target.end_lineno is None or target.end_col_offset is None:
                raise InlineSnapshotError("No snapshot insert location found.")
            return SpanEdit(
                start=offsets.offset(target.lineno, target.col_offset),
                end=offsets.offset(target.end_lineno, target.end_col_offset),
                text=literal,
            )

        if node.keywords:
            first = min(node.keywords, key=lambda keyword: (keyword.lineno, keyword.col_offset))
            start = offsets.offset(first.lineno, first.col_offset)
            return SpanEdit(start=start, end=start, text=f"{literal}, ")

        closing = offsets.offset(node.end_lineno, node.end_col_offset) - 1
        if offsets.lines[node.end_lineno - 1].encode("utf-8")[node.end_col_offset - 1:node.end_col_offset] != b")":
            raise InlineSnapshotError("No snapshot insert location found.")
        return SpanEdit(start=closing, end=closing, text=literal)

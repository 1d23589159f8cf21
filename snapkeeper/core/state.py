"""Per-module snapshot state: matching, write decisions and bookkeeping."""

from __future__ import annotations

from dataclasses import dataclass
import inspect
import logging
from pathlib import Path
import re
from typing import Any, Optional, Sequence

from snapkeeper.core.frames import resolve_frame
from snapkeeper.core.inline import InlinePatcher, InlineSnapshot
from snapkeeper.core.serializer import (
    add_extra_line_breaks,
    remove_extra_line_breaks,
    serialize,
)
from snapkeeper.core.values import UNDEFINED, compare
from snapkeeper.errors import ValidationError
from snapkeeper.infrastructure.snapshot_store import (
    delete_snapshot_file,
    load_snapshot_data,
    natural_sort_key,
    save_snapshot_file,
)
from snapkeeper.settings import UPDATE_MODES

logger = logging.getLogger(__name__)

_KEY_SUFFIX = re.compile(r" \d+$")


def snapshot_key(test_name: str, count: int) -> str:
    return f"{test_name} {count}"


def key_to_test_name(key: str) -> str:
    if not _KEY_SUFFIX.search(key):
        raise ValueError("Snapshot keys must end with a number.")
    return _KEY_SUFFIX.sub("", key)


@dataclass(frozen=True)
class MatchResult:
    """Outcome of one snapshot assertion."""

    passed: bool
    key: str
    actual: Any
    expected: Any
    actual_serialized: str
    expected_serialized: str
    has_snapshot: bool
    count: int


@dataclass(frozen=True)
class SaveStatus:
    saved: bool = False
    deleted: bool = False


class SnapshotState:
    """Snapshot bookkeeping for one test module run.

    Loads the companion file once, records every assertion, and flushes
    external and inline snapshots once in :meth:`save`. Not reentrant: calls
    must not interleave.
    """

    def __init__(
        self,
        snapshot_path: Path,
        update_mode: str,
        *,
        patcher: Optional[InlinePatcher] = None,
    ) -> None:
        if update_mode not in UPDATE_MODES:
            raise ValidationError(f"Unsupported snapshot update mode: {update_mode}")
        self.snapshot_path = snapshot_path
        self.update_mode = update_mode
        data, dirty = load_snapshot_data(snapshot_path, update_mode)
        self._initial_data: dict[str, Any] = dict(data)
        self._snapshot_data: dict[str, Any] = dict(data)
        self._dirty = dirty
        self._flushed = False
        self._patcher = patcher or InlinePatcher()
        self._inline_snapshots: list[InlineSnapshot] = []
        self._unchecked_keys: set[str] = set(data)
        self._counters: dict[str, int] = {}
        self.added = 0
        self.matched = 0
        self.unmatched = 0
        self.updated = 0

    @property
    def snapshot_data(self) -> dict[str, Any]:
        return dict(self._snapshot_data)

    @property
    def inline_snapshots(self) -> tuple[InlineSnapshot, ...]:
        return tuple(self._inline_snapshots)

    def _next_count(self, test_name: str) -> int:
        count = self._counters.get(test_name, 0) + 1
        self._counters[test_name] = count
        self._flushed = False
        return count

    def mark_snapshots_as_checked_for_test(self, test_name: str) -> None:
        """Keep a skipped or deselected test's snapshots from looking obsolete.

        Hinted keys (``"test_a: hint 1"``) belong to ``test_a`` too.
        """
        hinted_prefix = f"{test_name}: "
        for key in list(self._unchecked_keys):
            if not _KEY_SUFFIX.search(key):
                continue
            name = key_to_test_name(key)
            if name == test_name or name.startswith(hinted_prefix):
                self._unchecked_keys.discard(key)

    def _add_snapshot(
        self,
        key: str,
        value: Any,
        *,
        is_inline: bool,
        serialized: bool,
        stack: Optional[Sequence[inspect.FrameInfo]],
    ) -> None:
        self._dirty = True
        if is_inline:
            frame = resolve_frame(stack)
            self._inline_snapshots.append(InlineSnapshot(frame=frame, snapshot=value, serialized=serialized))
        else:
            self._snapshot_data[key] = value

    def clear(self) -> None:
        """Reset data, queue, counters and totals without reloading from disk."""
        self._snapshot_data = dict(self._initial_data)
        self._inline_snapshots = []
        self._counters = {}
        self._flushed = False
        self.added = 0
        self.matched = 0
        self.unmatched = 0
        self.updated = 0

    def save(self) -> SaveStatus:
        """Flush external and inline snapshots.

        When nothing was written, a companion file left without snapshots is
        removed under ``all`` and reported otherwise.
        """
        has_external = bool(self._snapshot_data)
        has_inline = bool(self._inline_snapshots)
        pending = self._dirty or (bool(self._unchecked_keys) and not self._flushed)
        saved = False
        deleted = False

        if pending and (has_external or has_inline):
            if has_external:
                save_snapshot_file(self._snapshot_data, self.snapshot_path)
            if has_inline:
                self._patcher.apply(self._inline_snapshots)
                self._inline_snapshots = []
            saved = True
            self._dirty = False
            self._flushed = True
        elif not has_external and self.snapshot_path.exists():
            if self.update_mode == "all":
                deleted = delete_snapshot_file(self.snapshot_path)
            else:
                logger.warning("Snapshot file %s has no snapshots left; re-run with --snapshot-update to remove it", self.snapshot_path)

        return SaveStatus(saved=saved, deleted=deleted)

    def get_unchecked_count(self) -> int:
        return len(self._unchecked_keys)

    def get_unchecked_keys(self) -> list[str]:
        return sorted(self._unchecked_keys, key=natural_sort_key)

    def remove_unchecked_keys(self) -> None:
        """Drop snapshots no assertion touched this run (``all`` only)."""
        if self.update_mode == "all" and self._unchecked_keys:
            self._dirty = True
            for key in self._unchecked_keys:
                self._snapshot_data.pop(key, None)
            logger.debug("Removed %d obsolete snapshots from %s", len(self._unchecked_keys), self.snapshot_path)
            self._unchecked_keys.clear()

    def compare(self, received: Any, expected: Any) -> bool:
        return compare(received, expected)

    def match(
        self,
        test_name: str,
        received: Any,
        key: Optional[str] = None,
        serialized: bool = True,
        inline_snapshot: Any = UNDEFINED,
        is_inline: bool = False,
        has_inline_snapshot: bool = False,
        stack: Optional[Sequence[inspect.FrameInfo]] = None,
    ) -> MatchResult:
        """Match ``received`` against its snapshot and decide whether to write it."""
        count = self._next_count(test_name)
        if not key:
            key = snapshot_key(test_name, count)

        # An inline assertion leaves a leftover external snapshot unchecked so
        # that a full update can prune it.
        if not (is_inline and key in self._snapshot_data):
            self._unchecked_keys.discard(key)

        received_serialized = add_extra_line_breaks(serialize(received))
        value = received_serialized if serialized else received
        expected = inline_snapshot if is_inline else self._snapshot_data.get(key, UNDEFINED)
        if serialized and isinstance(expected, str):
            expected_serialized = expected
        else:
            expected_serialized = add_extra_line_breaks(serialize(expected))
        passed = expected == value if serialized else compare(received, expected)
        has_snapshot = has_inline_snapshot if is_inline else key in self._snapshot_data
        snapshot_is_persisted = is_inline or self.snapshot_path.exists()

        if serialized:
            default_actual: Any = ""
            default_expected: Any = ""
        else:
            default_actual = received if has_snapshot else UNDEFINED
            default_expected = expected if has_snapshot else UNDEFINED

        if passed and not is_inline:
            # Store the freshly generated text so a rewrite keeps canonical escaping.
            self._snapshot_data[key] = value

        should_write = (has_snapshot and self.update_mode == "all") or (
            (not has_snapshot or not snapshot_is_persisted) and self.update_mode in ("new", "all")
        )
        if should_write:
            if self.update_mode == "all":
                if not passed:
                    if has_snapshot:
                        self.updated += 1
                    else:
                        self.added += 1
                    self._add_snapshot(key, value, is_inline=is_inline, serialized=serialized, stack=stack)
                else:
                    self.matched += 1
            else:
                self._add_snapshot(key, value, is_inline=is_inline, serialized=serialized, stack=stack)
                self.added += 1
            return MatchResult(
                passed=True,
                key=key,
                actual=default_actual,
                expected=default_expected,
                actual_serialized="",
                expected_serialized="",
                has_snapshot=has_snapshot,
                count=count,
            )

        if not passed:
            self.unmatched += 1
            if not has_snapshot:
                expected_value: Any = UNDEFINED
            elif serialized and isinstance(expected, str):
                expected_value = remove_extra_line_breaks(expected)
            else:
                expected_value = expected
            return MatchResult(
                passed=False,
                key=key,
                actual=remove_extra_line_breaks(value) if serialized else received,
                expected=expected_value,
                actual_serialized=remove_extra_line_breaks(received_serialized),
                expected_serialized=remove_extra_line_breaks(expected_serialized) if has_snapshot else "",
                has_snapshot=has_snapshot,
                count=count,
            )

        self.matched += 1
        return MatchResult(
            passed=True,
            key=key,
            actual=default_actual,
            expected=default_expected,
            actual_serialized="",
            expected_serialized="",
            has_snapshot=has_snapshot,
            count=count,
        )

    def fail(self, test_name: str, key: Optional[str] = None) -> str:
        """Record an assertion that produced no value; return its key."""
        count = self._next_count(test_name)
        if not key:
            key = snapshot_key(test_name, count)
        self._unchecked_keys.discard(key)
        self.unmatched += 1
        return key

"""Test-run bookkeeping across modules: one SnapshotState per test module."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Optional

from snapkeeper.core.inline import InlinePatcher
from snapkeeper.core.state import SnapshotState
from snapkeeper.settings import Settings

logger = logging.getLogger(__name__)


def node_test_name(nodeid: str) -> str:
    """Test name used in snapshot keys: the node id without its file part."""
    parts = nodeid.split("::")
    return "::".join(parts[1:]) if len(parts) > 1 else nodeid


@dataclass
class RunSummary:
    """Totals reported at the end of a run."""

    added: int = 0
    matched: int = 0
    unmatched: int = 0
    updated: int = 0
    files_saved: list[Path] = field(default_factory=list)
    files_deleted: list[Path] = field(default_factory=list)
    obsolete: dict[Path, list[str]] = field(default_factory=dict)

    def record(self, state: SnapshotState) -> None:
        self.added += state.added
        self.matched += state.matched
        self.unmatched += state.unmatched
        self.updated += state.updated

    @property
    def obsolete_count(self) -> int:
        return sum(len(keys) for keys in self.obsolete.values())

    def summary_lines(self) -> list[str]:
        lines: list[str] = []
        counts = [
            (self.added, "written"),
            (self.updated, "updated"),
            (self.matched, "passed"),
            (self.unmatched, "failed"),
        ]
        parts = [f"{count} snapshot{'s' if count != 1 else ''} {label}" for count, label in counts if count]
        if parts:
            lines.append(", ".join(parts) + ".")
        for path in self.files_deleted:
            lines.append(f"Removed snapshot file {path}.")
        if self.obsolete:
            lines.append(
                f"{self.obsolete_count} snapshot{'s' if self.obsolete_count != 1 else ''} obsolete. "
                "Re-run with --snapshot-update to remove them."
            )
            for path, keys in self.obsolete.items():
                lines.append(f"  {path}")
                lines.extend(f"    - {key}" for key in keys)
        return lines


class SnapshotSession:
    """Creates, finishes and summarizes per-module snapshot states."""

    def __init__(
        self,
        settings: Settings,
        update_mode: str,
        *,
        partial_run: bool = False,
        patcher: Optional[InlinePatcher] = None,
    ) -> None:
        self.settings = settings
        self.update_mode = update_mode
        self.partial_run = partial_run
        self.patcher = patcher or InlinePatcher()
        self.summary = RunSummary()
        self._states: dict[Path, SnapshotState] = {}
        self._checked: dict[Path, set[str]] = defaultdict(set)

    def _new_state(self, test_path: Path) -> SnapshotState:
        return SnapshotState(
            self.settings.snapshot_path_for(test_path),
            self.update_mode,
            patcher=self.patcher,
        )

    def state_for(self, test_path: Path) -> SnapshotState:
        state = self._states.get(test_path)
        if state is None:
            state = self._new_state(test_path)
            self._states[test_path] = state
        return state

    def mark_checked(self, test_path: Path, test_name: str) -> None:
        """Remember a skipped, failed or deselected test until its module finishes."""
        self._checked[test_path].add(test_name)

    def finish_module(self, test_path: Path, *, complete: bool = True) -> None:
        """Prune or report obsolete snapshots, then save the module's state.

        Modules that never used a snapshot are still checked when a companion
        file exists, so a file whose tests were all removed is reported.
        """
        state = self._states.pop(test_path, None)
        if state is None:
            if not self.settings.snapshot_path_for(test_path).exists():
                self._checked.pop(test_path, None)
                return
            state = self._new_state(test_path)

        for test_name in self._checked.pop(test_path, ()):
            state.mark_snapshots_as_checked_for_test(test_name)

        if complete and not self.partial_run:
            obsolete = state.get_unchecked_keys()
            if self.update_mode == "all":
                state.remove_unchecked_keys()
            elif obsolete:
                self.summary.obsolete[state.snapshot_path] = obsolete
                logger.warning("%d obsolete snapshots in %s", len(obsolete), state.snapshot_path)

        status = state.save()
        self.summary.record(state)
        if status.saved:
            self.summary.files_saved.append(state.snapshot_path)
        if status.deleted:
            self.summary.files_deleted.append(state.snapshot_path)

    def finish_all(self) -> None:
        """Save states left open by an interrupted run without pruning."""
        for test_path in list(self._states):
            self.finish_module(test_path, complete=False)

"""List command - print the snapshot keys stored in a companion file."""

from __future__ import annotations

from argparse import Namespace
from pathlib import Path

from snapkeeper.commands.output import emit_output
from snapkeeper.errors import ValidationError
from snapkeeper.infrastructure.snapshot_store import load_snapshot_data, natural_sort_key


def run_list(args: Namespace, *, output_sink=print) -> int:
    """List keys of a companion snapshot file in natural order."""
    snapshot_path = Path(args.snapshot_file)
    if not snapshot_path.is_file():
        raise ValidationError(f"Snapshot file does not exist: {snapshot_path}")
    data, dirty = load_snapshot_data(snapshot_path, "none")
    keys = sorted(data, key=natural_sort_key)
    emit_output(
        command="list",
        payload={"snapshot_file": str(snapshot_path), "keys": keys, "outdated": dirty},
        json_output=getattr(args, "json", False),
        output_sink=output_sink,
        human_lines=[*keys, f"list: {len(keys)} snapshots in {snapshot_path}"],
    )
    return 0

"""Clean command - find and remove companion files of deleted test modules."""

from __future__ import annotations

from argparse import Namespace
from pathlib import Path

from snapkeeper.commands.output import emit_output
from snapkeeper.errors import ValidationError
from snapkeeper.infrastructure.snapshot_store import delete_snapshot_file, find_obsolete_snapshot_files
from snapkeeper.settings import Settings


def run_clean(args: Namespace, *, settings: Settings, output_sink=print) -> int:
    """Report obsolete companion files; delete them only with ``--update``.

    Returns 1 when obsolete files remain so CI can flag them.
    """
    root = Path(args.root)
    if not root.is_dir():
        raise ValidationError(f"Root directory does not exist: {root}")
    obsolete = find_obsolete_snapshot_files(root, settings)
    removed: list[Path] = []
    if args.update:
        removed = [path for path in obsolete if delete_snapshot_file(path)]

    human_lines = [f"{'removed' if args.update else 'obsolete'}: {path}" for path in obsolete]
    human_lines.append(f"clean: obsolete={len(obsolete)} removed={len(removed)}")
    emit_output(
        command="clean",
        payload={
            "root": str(root),
            "obsolete": [str(path) for path in obsolete],
            "removed": [str(path) for path in removed],
        },
        json_output=getattr(args, "json", False),
        output_sink=output_sink,
        human_lines=human_lines,
        status="obsolete" if obsolete and not args.update else "ok",
    )
    return 1 if obsolete and not args.update else 0

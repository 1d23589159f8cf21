"""Command-line interface for snapkeeper."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv

from snapkeeper import __version__


def _load_dotenv_files() -> None:
    """Load ``.env`` from the working directory without overriding real env vars."""
    load_dotenv(Path.cwd() / ".env", override=False)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="snapkeeper",
        description="Inspect and maintain snapshot files",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"snapkeeper {__version__}",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a snapkeeper JSON settings file",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    list_parser = subparsers.add_parser(
        "list",
        help="List the snapshot keys stored in a companion file",
    )
    list_parser.add_argument(
        "snapshot_file",
        type=Path,
        help="Companion snapshot file to read",
    )
    list_parser.add_argument(
        "--json",
        action="store_true",
        help="Emit machine-readable JSON output",
    )

    clean_parser = subparsers.add_parser(
        "clean",
        help="Find companion files whose test module no longer exists",
    )
    clean_parser.add_argument(
        "root",
        type=Path,
        help="Directory to search for snapshot files",
    )
    clean_parser.add_argument(
        "--update",
        action="store_true",
        help="Delete the obsolete files instead of only reporting them",
    )
    clean_parser.add_argument(
        "--json",
        action="store_true",
        help="Emit machine-readable JSON output",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    _load_dotenv_files()
    try:
        if args.command == "list":
            from .commands.show import run_list
            return run_list(args)
        elif args.command == "clean":
            from .commands.clean import run_clean
            from .settings import default_config_path, load_settings
            settings = load_settings(args.config or default_config_path())
            return run_clean(args, settings=settings)
        else:
            parser.print_help()
            return 1
    except Exception as exc:  # pragma: no cover - exercised in CLI tests
        from .errors import exit_code_for_exception

        print(str(exc), file=sys.stderr)
        return exit_code_for_exception(exc)


if __name__ == "__main__":
    sys.exit(main())

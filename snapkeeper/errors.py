"""Error taxonomy and exit code mapping for snapshot runs and the CLI."""

from __future__ import annotations


class SnapkeeperError(Exception):
    """Base error for deterministic CLI exit codes."""

    exit_code: int = 1


class ValidationError(SnapkeeperError):
    """Invalid user input or command usage."""

    exit_code = 2


class FrameResolutionError(SnapkeeperError):
    """The call site of an inline snapshot could not be inferred."""

    exit_code = 1


class InlineSnapshotError(SnapkeeperError):
    """Inline snapshots could not be written back into a source file."""

    exit_code = 1


class SnapshotFileError(SnapkeeperError):
    """A companion snapshot file is malformed or has an unknown version."""

    exit_code = 3


class SnapshotMismatchError(AssertionError):
    """A received value does not match its stored snapshot.

    Raised as a regular test failure; never aborts the run.
    """

    def __init__(self, message: str, *, key: str, expected: str, received: str) -> None:
        super().__init__(message)
        self.key = key
        self.expected = expected
        self.received = received


def exit_code_for_exception(exc: BaseException) -> int:
    """Resolve a deterministic exit code for an exception."""
    if isinstance(exc, SnapkeeperError):
        return exc.exit_code
    if isinstance(exc, OSError):
        return SnapshotFileError.exit_code
    return SnapkeeperError.exit_code

"""Snapshot testing for pytest with external and inline snapshots."""

from __future__ import annotations

__version__ = "0.1.0"

from .core.state import MatchResult, SaveStatus, SnapshotState
from .core.values import UNDEFINED, AnyFunction
from .expect import Assertion, Expect

__all__ = [
    "__version__",
    "Assertion",
    "AnyFunction",
    "Expect",
    "MatchResult",
    "SaveStatus",
    "SnapshotState",
    "UNDEFINED",
]

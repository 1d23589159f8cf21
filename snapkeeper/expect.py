"""Assertion API used from tests: ``expect(value).to_match_snapshot()``."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any, Callable, Optional

from snapkeeper.core.serializer import strip_added_indentation
from snapkeeper.core.state import MatchResult, SnapshotState
from snapkeeper.core.values import UNDEFINED, AnyFunction
from snapkeeper.errors import SnapshotMismatchError

_MISSING = object()

_NOT_WRITTEN = (
    "New snapshot was not written. The update flag must be explicitly passed "
    "to write a new snapshot.\n\n"
    "This is likely because this test is run in a continuous integration (CI) "
    "environment in which snapshots are not written by default."
)


def _format_mismatch(result: MatchResult, test_name: str) -> str:
    if not result.has_snapshot:
        return f"Snapshot `{result.key}` is missing.\n\n{_NOT_WRITTEN}\n\nReceived:\n{result.actual_serialized}"
    return (
        f"Snapshot `{result.key}` mismatched in {test_name}.\n\n"
        f"- Snapshot\n{result.expected_serialized}\n\n"
        f"+ Received\n{result.actual_serialized}"
    )


class Expect:
    """Assertion factory bound to one test and its module's snapshot state."""

    undefined = UNDEFINED

    def __init__(self, state: SnapshotState, test_name: str, *, serialize_inline: bool = True) -> None:
        self.state = state
        self.test_name = test_name
        self.serialize_inline = serialize_inline

    def __call__(self, received: Any) -> Assertion:
        if isinstance(received, Iterator):
            # Iterators are consumed by serialization; keep one materialized copy.
            received = list(received)
        return Assertion(self, received)

    @staticmethod
    def any_function() -> AnyFunction:
        return AnyFunction()


class Assertion:
    """Snapshot matchers for one received value."""

    def __init__(self, expect: Expect, received: Any) -> None:
        self._expect = expect
        self.received = received

    def _test_name(self, hint: Optional[str]) -> str:
        if hint:
            return f"{self._expect.test_name}: {hint}"
        return self._expect.test_name

    def _report(self, result: MatchResult, test_name: str) -> None:
        if result.passed:
            return
        raise SnapshotMismatchError(
            _format_mismatch(result, test_name),
            key=result.key,
            expected=result.expected_serialized,
            received=result.actual_serialized,
        )

    def _match_external(self, received: Any, hint: Optional[str]) -> None:
        test_name = self._test_name(hint)
        result = self._expect.state.match(test_name=test_name, received=received, serialized=True)
        self._report(result, test_name)

    def _match_inline(self, received: Any, snapshot: Any, hint: Optional[str]) -> None:
        test_name = self._test_name(hint)
        has_snapshot = snapshot is not _MISSING
        serialized = self._expect.serialize_inline
        if not has_snapshot:
            inline_snapshot: Any = UNDEFINED
        elif serialized and isinstance(snapshot, str):
            inline_snapshot = strip_added_indentation(snapshot)
        else:
            inline_snapshot = snapshot
        result = self._expect.state.match(
            test_name=test_name,
            received=received,
            serialized=serialized,
            inline_snapshot=inline_snapshot,
            is_inline=True,
            has_inline_snapshot=has_snapshot,
        )
        self._report(result, test_name)

    def to_match_snapshot(self, hint: Optional[str] = None) -> None:
        self._match_external(self.received, hint)

    def to_match_inline_snapshot(self, snapshot: Any = _MISSING, *, hint: Optional[str] = None) -> None:
        self._match_inline(self.received, snapshot, hint)

    def _raised_error(self, hint: Optional[str]) -> str:
        func: Callable[[], Any] = self.received
        if not callable(func):
            raise TypeError("expect(...) must receive a callable for error snapshots")
        try:
            func()
        except Exception as error:
            return f"{type(error).__name__}: {error}"
        key = self._expect.state.fail(self._test_name(hint))
        raise AssertionError(f"Received function did not raise (snapshot `{key}`)")

    def to_throw_error_matching_snapshot(self, hint: Optional[str] = None) -> None:
        self._match_external(self._raised_error(hint), hint)

    def to_throw_error_matching_inline_snapshot(self, snapshot: Any = _MISSING) -> None:
        self._match_inline(self._raised_error(None), snapshot, None)

"""Integration fixtures: run the plugin in an isolated pytest session."""

from __future__ import annotations

import sys

import pytest

PLUGIN_ARGS = ("-p", "snapkeeper.plugin", "-p", "no:cacheprovider")


@pytest.fixture
def run_snapshots(pytester: pytest.Pytester, monkeypatch: pytest.MonkeyPatch):
    """Run pytest in ``pytester.path`` with only the snapkeeper plugin loaded.

    Bytecode caching is off so a rewritten test module is always re-read.
    """
    monkeypatch.setenv("PYTEST_DISABLE_PLUGIN_AUTOLOAD", "1")
    monkeypatch.setattr(sys, "dont_write_bytecode", True)

    def _run(*args: str) -> pytest.RunResult:
        return pytester.runpytest(*PLUGIN_ARGS, *args)

    return _run

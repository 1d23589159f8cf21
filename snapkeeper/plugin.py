"""pytest plugin: command-line options, the ``expect`` fixture and run summary."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import pytest

from snapkeeper.core.state import SnapshotState
from snapkeeper.expect import Expect
from snapkeeper.session import SnapshotSession, node_test_name
from snapkeeper.settings import is_ci, load_settings, resolve_update_mode

_SESSION_KEY = pytest.StashKey[SnapshotSession]()


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("snapkeeper", "snapshot testing")
    group.addoption(
        "--snapshot-update",
        action="store_true",
        default=False,
        help="Write new snapshots, overwrite mismatches and remove obsolete ones",
    )
    group.addoption(
        "--snapshot-ci",
        action="store_true",
        default=False,
        help="Never write snapshots; missing snapshots fail",
    )
    group.addoption(
        "--snapshot-config",
        default=None,
        help="Path to a snapkeeper JSON settings file",
    )
    parser.addini(
        "snapshot_update_mode",
        "Default snapshot update mode: new, all or none",
        default="",
    )


def _cli_mode(config: pytest.Config) -> Optional[str]:
    update = config.getoption("snapshot_update")
    ci = config.getoption("snapshot_ci")
    if update and ci:
        raise pytest.UsageError("--snapshot-update and --snapshot-ci are mutually exclusive")
    if update:
        return "all"
    if ci:
        return "none"
    return None


def pytest_configure(config: pytest.Config) -> None:
    raw_path = config.getoption("snapshot_config")
    config_path = Path(raw_path) if raw_path else config.rootpath / "snapkeeper.json"
    try:
        settings = load_settings(config_path)
        update_mode = resolve_update_mode(
            cli_mode=_cli_mode(config),
            env_mode=os.getenv("SNAPKEEPER_UPDATE_MODE"),
            config_mode=config.getini("snapshot_update_mode") or settings.update_mode,
            ci=is_ci(),
        )
    except ValueError as exc:
        raise pytest.UsageError(str(exc)) from exc
    partial_run = any("::" in str(arg) for arg in config.args)
    config.stash[_SESSION_KEY] = SnapshotSession(settings, update_mode, partial_run=partial_run)


def _session(config: pytest.Config) -> SnapshotSession:
    return config.stash[_SESSION_KEY]


@pytest.fixture
def snapshot_state(request: pytest.FixtureRequest) -> SnapshotState:
    """Snapshot state of the requesting test's module."""
    return _session(request.config).state_for(Path(request.node.path))


@pytest.fixture
def expect(request: pytest.FixtureRequest, snapshot_state: SnapshotState) -> Expect:
    """``expect(value).to_match_snapshot()`` bound to the current test."""
    session = _session(request.config)
    return Expect(
        snapshot_state,
        node_test_name(request.node.nodeid),
        serialize_inline=session.settings.serialize_inline,
    )


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo[None]):
    outcome = yield
    report = outcome.get_result()
    if report.skipped or report.failed:
        _session(item.config).mark_checked(Path(item.path), node_test_name(item.nodeid))


def pytest_deselected(items: list[pytest.Item]) -> None:
    for item in items:
        _session(item.config).mark_checked(Path(item.path), node_test_name(item.nodeid))


@pytest.hookimpl(trylast=True)
def pytest_runtest_teardown(item: pytest.Item, nextitem: Optional[pytest.Item]) -> None:
    if nextitem is None or nextitem.path != item.path:
        _session(item.config).finish_module(Path(item.path))


def pytest_sessionfinish(session: pytest.Session, exitstatus: int) -> None:
    _session(session.config).finish_all()


def pytest_terminal_summary(terminalreporter, exitstatus: int, config: pytest.Config) -> None:
    summary = _session(config).summary
    lines = summary.summary_lines()
    if not lines:
        return
    terminalreporter.section("snapshot summary")
    for line in lines:
        terminalreporter.write_line(line, yellow=bool(summary.obsolete) and "obsolete" in line)

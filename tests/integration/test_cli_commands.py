"""CLI command behavior: list and clean."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from snapkeeper.cli import main
from tests.helpers.snapshots import write_snapshot_file


@pytest.fixture(autouse=True)
def _work_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)


def _tree(root: Path) -> tuple[Path, Path]:
    (root / "test_kept.py").write_text("", encoding="utf-8")
    kept = write_snapshot_file(root / "__snapshots__" / "test_kept.ambr", {"t 10": "1", "t 2": "1"})
    gone = write_snapshot_file(root / "__snapshots__" / "test_gone.ambr", {"t 1": "1"})
    return kept, gone


def test_list_prints_keys_in_natural_order(tmp_path: Path, capsys) -> None:
    kept, _ = _tree(tmp_path)

    assert main(["list", str(kept)]) == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines == ["t 2", "t 10", f"list: 2 snapshots in {kept}"]


def test_list_json_envelope(tmp_path: Path, capsys) -> None:
    kept, _ = _tree(tmp_path)

    assert main(["list", str(kept), "--json"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload == {
        "schema_version": "v1",
        "command": "list",
        "status": "ok",
        "data": {"snapshot_file": str(kept), "keys": ["t 2", "t 10"], "outdated": False},
    }


def test_list_missing_file_is_a_validation_error(tmp_path: Path, capsys) -> None:
    assert main(["list", str(tmp_path / "missing.ambr")]) == 2
    assert "does not exist" in capsys.readouterr().err


def test_list_malformed_file_exits_with_file_error(tmp_path: Path, capsys) -> None:
    path = tmp_path / "bad.ambr"
    path.write_text("garbage\n", encoding="utf-8")

    assert main(["list", str(path)]) == 3
    assert "Malformed snapshot file" in capsys.readouterr().err


def test_clean_reports_without_deleting(tmp_path: Path, capsys) -> None:
    kept, gone = _tree(tmp_path)

    assert main(["clean", str(tmp_path)]) == 1

    out = capsys.readouterr().out
    assert f"obsolete: {gone}" in out
    assert "clean: obsolete=1 removed=0" in out
    assert gone.exists()
    assert kept.exists()


def test_clean_update_deletes_obsolete_files(tmp_path: Path, capsys) -> None:
    kept, gone = _tree(tmp_path)

    assert main(["clean", str(tmp_path), "--update", "--json"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["status"] == "ok"
    assert payload["data"]["removed"] == [str(gone)]
    assert not gone.exists()
    assert kept.exists()


def test_clean_uses_configured_snapshot_location(tmp_path: Path, capsys) -> None:
    config = tmp_path / "snapkeeper.json"
    config.write_text(json.dumps({"snapshot_dir": "snaps", "snapshot_extension": ".snap"}))
    stale = write_snapshot_file(tmp_path / "snaps" / "test_gone.snap", {"t 1": "1"})

    assert main(["--config", str(config), "clean", str(tmp_path), "--json"]) == 1

    payload = json.loads(capsys.readouterr().out)
    assert payload["status"] == "obsolete"
    assert payload["data"]["obsolete"] == [str(stale)]


def test_clean_reads_dotenv(tmp_path: Path, capsys, monkeypatch) -> None:
    # Recorded first so the value loaded from .env is undone afterwards.
    monkeypatch.setenv("SNAPKEEPER_UPDATE_MODE", "new")
    monkeypatch.delenv("SNAPKEEPER_UPDATE_MODE")
    (tmp_path / ".env").write_text("SNAPKEEPER_UPDATE_MODE=sometimes\n", encoding="utf-8")

    assert main(["clean", str(tmp_path)]) == 1
    assert "Unsupported snapshot update mode: sometimes" in capsys.readouterr().err


def test_clean_missing_root_is_a_validation_error(tmp_path: Path, capsys) -> None:
    assert main(["clean", str(tmp_path / "nowhere")]) == 2


def test_no_command_prints_help(capsys) -> None:
    assert main([]) == 1
    assert "usage: snapkeeper" in capsys.readouterr().out

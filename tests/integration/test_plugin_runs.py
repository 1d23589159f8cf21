"""End-to-end runs of the pytest plugin."""

from __future__ import annotations

import pytest

from tests.helpers.snapshots import write_snapshot_file


def _companion(pytester: pytest.Pytester, module: str = "test_math"):
    return pytester.path / "__snapshots__" / f"{module}.ambr"


def test_external_snapshot_is_written_then_matched(pytester: pytest.Pytester, run_snapshots) -> None:
    pytester.makepyfile(
        test_math="""
        def test_sum(expect):
            expect(1 + 2).to_match_snapshot()
        """
    )

    first = run_snapshots()

    first.assert_outcomes(passed=1)
    first.stdout.fnmatch_lines(["*snapshot summary*", "1 snapshot written."])
    assert _companion(pytester).read_text(encoding="utf-8") == (
        "# serializer version: 1\n"
        "# name: test_sum 1\n"
        "  '''\n"
        "  3\n"
        "  '''\n"
        "# ---\n"
    )

    second = run_snapshots("--snapshot-ci")

    second.assert_outcomes(passed=1)
    second.stdout.fnmatch_lines(["1 snapshot passed."])


def test_mismatch_fails_until_updated(pytester: pytest.Pytester, run_snapshots) -> None:
    write_snapshot_file(_companion(pytester), {"test_sum 1": "3"})
    pytester.makepyfile(
        test_math="""
        def test_sum(expect):
            expect(10 + 20).to_match_snapshot()
        """
    )

    failed = run_snapshots()

    failed.assert_outcomes(failed=1)
    failed.stdout.fnmatch_lines(["*Snapshot `test_sum 1` mismatched*"])

    updated = run_snapshots("--snapshot-update")

    updated.assert_outcomes(passed=1)
    updated.stdout.fnmatch_lines(["1 snapshot updated."])
    assert "  30\n" in _companion(pytester).read_text(encoding="utf-8")


def test_missing_snapshot_fails_on_ci(pytester: pytest.Pytester, run_snapshots, monkeypatch) -> None:
    monkeypatch.setenv("CI", "true")
    pytester.makepyfile(
        test_math="""
        def test_sum(expect):
            expect(3).to_match_snapshot()
        """
    )

    result = run_snapshots()

    result.assert_outcomes(failed=1)
    result.stdout.fnmatch_lines(["*New snapshot was not written*"])
    assert not _companion(pytester).exists()


def test_inline_snapshot_is_written_into_the_test(pytester: pytest.Pytester, run_snapshots) -> None:
    test_file = pytester.makepyfile(
        test_inline="""
        def test_list(expect):
            expect([1, 2]).to_match_inline_snapshot()
        """
    )

    first = run_snapshots()

    first.assert_outcomes(passed=1)
    assert (
        '    expect([1, 2]).to_match_inline_snapshot("""\n'
        "        list [\n"
        "          1,\n"
        "          2,\n"
        "        ]\n"
        '    """)'
    ) in test_file.read_text(encoding="utf-8")
    assert not _companion(pytester, "test_inline").exists()

    second = run_snapshots("--snapshot-ci")

    second.assert_outcomes(passed=1)


def test_error_inline_snapshot_is_written(pytester: pytest.Pytester, run_snapshots) -> None:
    test_file = pytester.makepyfile(
        test_parse_errors="""
        def parse(text):
            raise ValueError(f"cannot parse {text!r}")

        def test_parse(expect):
            expect(lambda: parse("x")).to_throw_error_matching_inline_snapshot()
        """
    )

    run_snapshots().assert_outcomes(passed=1)

    assert (
        "to_throw_error_matching_inline_snapshot(\"\\\"ValueError: cannot parse 'x'\\\"\")"
        in test_file.read_text(encoding="utf-8")
    )
    run_snapshots("--snapshot-ci").assert_outcomes(passed=1)


def test_obsolete_snapshots_are_reported_then_pruned(pytester: pytest.Pytester, run_snapshots) -> None:
    write_snapshot_file(_companion(pytester), {"test_gone 1": "1", "test_sum 1": "3"})
    pytester.makepyfile(
        test_math="""
        def test_sum(expect):
            expect(3).to_match_snapshot()
        """
    )

    reported = run_snapshots()

    reported.assert_outcomes(passed=1)
    reported.stdout.fnmatch_lines(["1 snapshot obsolete. Re-run with --snapshot-update to remove them.", "*- test_gone 1"])

    run_snapshots("--snapshot-update").assert_outcomes(passed=1)

    assert "test_gone 1" not in _companion(pytester).read_text(encoding="utf-8")


def test_skipped_and_deselected_tests_keep_snapshots(pytester: pytest.Pytester, run_snapshots) -> None:
    write_snapshot_file(
        _companion(pytester),
        {"test_other 1": "2", "test_skipped 1": "1", "test_sum 1": "3"},
    )
    pytester.makepyfile(
        test_math="""
        import pytest

        @pytest.mark.skip(reason="not today")
        def test_skipped(expect):
            expect(1).to_match_snapshot()

        def test_sum(expect):
            expect(3).to_match_snapshot()

        def test_other(expect):
            expect(2).to_match_snapshot()
        """
    )

    result = run_snapshots("--snapshot-update", "-k", "not test_other")

    result.assert_outcomes(passed=1, skipped=1)
    text = _companion(pytester).read_text(encoding="utf-8")
    assert "# name: test_other 1\n" in text
    assert "# name: test_skipped 1\n" in text


def test_companion_of_a_module_without_snapshots_is_removed(pytester: pytest.Pytester, run_snapshots) -> None:
    write_snapshot_file(_companion(pytester, "test_old"), {"test_removed 1": "1"})
    pytester.makepyfile(
        test_old="""
        def test_nothing():
            pass
        """
    )

    result = run_snapshots("--snapshot-update")

    result.assert_outcomes(passed=1)
    result.stdout.fnmatch_lines(["Removed snapshot file *test_old.ambr."])
    assert not _companion(pytester, "test_old").exists()


def test_conflicting_flags_are_a_usage_error(pytester: pytest.Pytester, run_snapshots) -> None:
    pytester.makepyfile(test_math="def test_nothing():\n    pass\n")

    result = run_snapshots("--snapshot-update", "--snapshot-ci")

    assert result.ret == pytest.ExitCode.USAGE_ERROR
    result.stderr.fnmatch_lines(["*mutually exclusive*"])


def test_config_file_changes_snapshot_location(pytester: pytest.Pytester, run_snapshots) -> None:
    pytester.makefile(".json", snapkeeper='{"snapshot_dir": "snaps", "snapshot_extension": ".snap"}')
    pytester.makepyfile(
        test_math="""
        def test_sum(expect):
            expect(3).to_match_snapshot()
        """
    )

    run_snapshots().assert_outcomes(passed=1)

    assert (pytester.path / "snaps" / "test_math.snap").exists()

"""
Tests for result aggregation.
"""

from pathlib import Path

import pytest

from plugsync.core.results import (
    Result,
    ResultCollisionError,
    SyncResults,
    merge_results,
    record_failures,
)


class TestMergeResults:
    """Test merging of per-stage result maps."""

    def test_disjoint_maps_merge(self):
        merged = merge_results(
            {"a": Result(status="installed")},
            {"b": Result(status="updated")},
            {},
        )
        assert set(merged) == {"a", "b"}
        assert merged["b"].status == "updated"

    def test_merge_returns_new_dict(self):
        first = {"a": Result(status="installed")}
        merged = merge_results(first)
        merged["z"] = Result()
        assert "z" not in first

    def test_collision_raises(self):
        """A name present in two maps is a programming error."""
        with pytest.raises(ResultCollisionError) as exc_info:
            merge_results(
                {"a": Result(status="installed"), "b": Result()},
                {"a": Result(status="updated")},
            )
        assert exc_info.value.names == ["a"]
        assert "a" in str(exc_info.value)


class TestResult:
    def test_ok(self):
        assert Result(status="installed").ok
        assert not Result(err=["nope"], status="failed").ok


class TestRecordFailures:
    def test_only_fills_missing_entries(self):
        results = {"a": Result(err=["own error"], status="failed")}
        record_failures(results, {"a": ["Unexpected error: x"], "b": ["Unexpected error: y"]})

        assert results["a"].err == ["own error"]
        assert results["b"].err == ["Unexpected error: y"]
        assert results["b"].status == "failed"


class TestSyncResults:
    """Test the per-batch report."""

    def test_report_keys_removals_by_path(self):
        results = SyncResults()
        results.removals.append(Path("/pack/opt/old"))
        results.installs["new"] = Result(status="installed")

        report = results.report()

        assert report["/pack/opt/old"].status == "removed"
        assert report["new"].status == "installed"

    def test_report_detects_install_update_collision(self):
        results = SyncResults()
        results.installs["x"] = Result(status="installed")
        results.updates["x"] = Result(status="up to date")

        with pytest.raises(ResultCollisionError):
            results.report()

    def test_succeeded_excludes_failures_and_locked(self):
        results = SyncResults()
        results.installs["a"] = Result(status="installed")
        results.installs["b"] = Result(err=["clone failed"], status="failed")
        results.updates["c"] = Result(status="locked")
        results.updates["d"] = Result(status="up to date")

        assert results.succeeded() == ["a", "d"]

    def test_report_folds_in_moves(self):
        """Later stages own the name; a superseded failed move keeps its own key."""
        results = SyncResults()
        results.moves["a"] = Result(status="moved", from_path=Path("/p/opt/a"), to_path=Path("/p/start/a"))
        results.moves["b"] = Result(err=["Failed to move"], status="failed")
        results.moves["c"] = Result(status="moved")
        results.updates["a"] = Result(status="up to date")
        results.installs["b"] = Result(status="installed")

        report = results.report()

        assert report["a"].status == "up to date"
        assert report["b"].status == "installed"
        assert report["move:b"].status == "failed"
        assert report["move:b"].err == ["Failed to move"]
        assert report["c"].status == "moved"
        assert "move:a" not in report

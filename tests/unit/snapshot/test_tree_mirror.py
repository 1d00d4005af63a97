"""
Unit tests for the tree mirror.

Tests:
- Destination ends up identical to source (copies, deletions, empty dirs)
- Second run performs no operations
- Unchanged files are not rewritten
- Per-file failures are reported without rollback
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from solution_release.core.exceptions import SnapshotIOError
from solution_release.snapshot import mirror as mirror_module
from solution_release.snapshot.content_snapshot import build_snapshot
from solution_release.snapshot.mirror import TreeMirror
from solution_release.snapshot.noise import NoiseFilter


@pytest.fixture
def trees(tree_factory):
    source = tree_factory("source", {
        "keep.txt": "same",
        "edit.txt": "new content",
        "Other/Solution.xml": "<Version>1.0.1</Version>",
        "fresh/added.txt": "added",
    })
    dest = tree_factory("dest", {
        "keep.txt": "same",
        "edit.txt": "old content",
        "Other/Solution.xml": "<Version>1.0.0</Version>",
        "stale/old.txt": "remove me",
        "stale/deeper/older.txt": "remove me too",
    })
    return source, dest


@pytest.mark.unit
class TestTreeMirror:
    """Tests for TreeMirror.mirror."""

    def test_destination_matches_source(self, trees):
        source, dest = trees

        report = TreeMirror().mirror(source, dest)

        assert report.ok
        assert build_snapshot(dest) == build_snapshot(source)
        assert sorted(report.copied) == ["Other/Solution.xml", "edit.txt", "fresh/added.txt"]
        assert sorted(report.deleted) == ["stale/deeper/older.txt", "stale/old.txt"]
        assert report.unchanged == 1

    def test_empty_directories_are_removed(self, trees):
        source, dest = trees

        report = TreeMirror().mirror(source, dest)

        assert not (dest / "stale").exists()
        assert set(report.removed_dirs) == {"stale", "stale/deeper"}

    def test_second_run_performs_no_operations(self, trees):
        source, dest = trees
        mirror = TreeMirror()

        mirror.mirror(source, dest)
        after_first = build_snapshot(dest)
        second = mirror.mirror(source, dest)

        assert second.operations == 0
        assert second.copied == [] and second.deleted == [] and second.removed_dirs == []
        assert build_snapshot(dest) == after_first == build_snapshot(source)

    def test_unchanged_files_are_not_rewritten(self, trees):
        source, dest = trees
        keep = dest / "keep.txt"
        os.utime(keep, (1_000_000, 1_000_000))

        TreeMirror().mirror(source, dest)

        assert keep.stat().st_mtime == 1_000_000

    def test_missing_destination_is_created(self, tree_factory, tmp_path):
        source = tree_factory("source", {"a/b.txt": "x"})
        dest = tmp_path / "new-dest"

        report = TreeMirror().mirror(source, dest)

        assert report.copied == ["a/b.txt"]
        assert (dest / "a" / "b.txt").read_text() == "x"

    def test_missing_source_raises(self, tmp_path):
        with pytest.raises(SnapshotIOError):
            TreeMirror().mirror(tmp_path / "nope", tmp_path / "dest")

    def test_file_replaces_directory_of_same_name(self, tree_factory):
        source = tree_factory("source", {"node": "now a file"})
        dest = tree_factory("dest", {"node/child.txt": "was a dir"})

        report = TreeMirror().mirror(source, dest)

        assert report.ok
        assert (dest / "node").is_file()
        assert (dest / "node").read_text() == "now a file"

    def test_preserved_paths_are_left_alone(self, tree_factory):
        source = tree_factory("source", {"a.txt": "1"})
        dest = tree_factory("dest", {"a.txt": "1", ".git/HEAD": "ref: refs/heads/main"})
        preserve = NoiseFilter.from_config({"patterns": [r"^\.git(/|$)"]})

        report = TreeMirror(preserve=preserve).mirror(source, dest)

        assert report.operations == 0
        assert (dest / ".git" / "HEAD").exists()

    def test_no_temp_files_left_behind(self, trees):
        source, dest = trees
        TreeMirror().mirror(source, dest)
        assert not [p for p in dest.rglob("*.tmp")]


@pytest.mark.unit
class TestPartialFailure:
    """Per-file failures are collected, applied changes are kept."""

    def test_locked_file_is_reported_and_others_applied(self, trees):
        source, dest = trees
        real_copy = mirror_module.copy_file_atomic

        def copy_or_fail(src: Path, dst: Path) -> None:
            if dst.name == "edit.txt":
                raise PermissionError("file is locked")
            real_copy(src, dst)

        with patch.object(mirror_module, "copy_file_atomic", side_effect=copy_or_fail):
            report = TreeMirror().mirror(source, dest)

        assert not report.ok
        assert list(report.failed) == ["edit.txt"]
        assert "locked" in report.failed["edit.txt"]
        assert "fresh/added.txt" in report.copied
        assert (dest / "fresh" / "added.txt").exists()
        assert (dest / "edit.txt").read_text() == "old content"
        assert "edit.txt" not in report.applied_paths()

    def test_rerun_after_failure_finishes_the_job(self, trees):
        source, dest = trees
        with patch.object(mirror_module, "copy_file_atomic", side_effect=PermissionError("locked")):
            TreeMirror().mirror(source, dest)

        report = TreeMirror().mirror(source, dest)

        assert report.ok
        assert build_snapshot(dest) == build_snapshot(source)


@pytest.mark.unit
def test_plan_does_not_touch_destination(trees):
    source, dest = trees
    before = build_snapshot(dest)

    plan = TreeMirror().plan(source, dest)

    assert plan.added == {"fresh/added.txt"}
    assert plan.removed == {"stale/old.txt", "stale/deeper/older.txt"}
    assert plan.changed == {"edit.txt", "Other/Solution.xml"}
    assert build_snapshot(dest) == before

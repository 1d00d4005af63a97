"""
Unit tests for the release runner.

Tests:
- No-op when only noise differs
- Bump-and-sync writes the bumped version into the working tree
- Forced bump with no content change
- Invalid manifest version fails without touching the working tree
- Temporary workspace removed on every path
- Commit hand-off carries the mirrored paths and tag
"""

import logging
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from solution_release.collaborators.export_tool import ExportTool
from solution_release.collaborators.git_handoff import CommitRequest
from solution_release.config.config_loader import RunConfig
from solution_release.core.exceptions import CollaboratorError, InvalidVersionError
from solution_release.runner.release_runner import (
    ReleaseRunner,
    ReleaseWorkspace,
    RunState,
)
from solution_release.snapshot.noise import NoiseFilter
from solution_release.versioning.decision import ReleaseDecision
from solution_release.versioning.manifest import read_manifest_version
from solution_release.versioning.version import BumpKind

from conftest import FakeProcessRunner, write_tree


def _arg_after(argv: List[str], flag: str) -> Path:
    return Path(argv[argv.index(flag) + 1])


class FakeExport:
    """Handler for FakeProcessRunner that plays the export tool."""

    def __init__(self, files: Dict[str, str], fail_on: Optional[str] = None):
        self.files = files
        self.fail_on = fail_on

    def __call__(self, argv: List[str]) -> int:
        step = argv[2]
        if step == self.fail_on:
            return 1
        if step == "export":
            archive = _arg_after(argv, "--path")
            archive.write_bytes(b"PK")
        elif step == "unpack":
            write_tree(_arg_after(argv, "--folder"), self.files)
        return 0


class RecordingCommitter:
    def __init__(self):
        self.requests: List[CommitRequest] = []

    def commit(self, request: CommitRequest) -> str:
        self.requests.append(request)
        return "abc123"


@pytest.fixture
def make_run(tmp_path, solution_xml):
    """Build a runner whose working tree holds version 1.0.0."""
    working = write_tree(tmp_path / "repo" / "solutions" / "Contoso", {
        "Other/Solution.xml": solution_xml("1.0.0"),
        "Entities/account.xml": "<entity>v1</entity>",
        "CanvasApps/app.msapp": "zip-1",
    })
    temp_root = tmp_path / "tmp"

    def _make(exported: Dict[str, str], committer=None, fail_on=None, **overrides):
        config = RunConfig(
            solution_name="Contoso",
            managed=False,
            working_dir=working,
            repo_dir=tmp_path / "repo",
            temp_root=temp_root,
            manifest_filename="Solution.xml",
            noise_filter=NoiseFilter.default(),
            preserve_filter=NoiseFilter.from_config({"patterns": [r"^\.git(/|$)"]}),
        )
        config = replace(config, **overrides)
        runner = FakeProcessRunner(FakeExport(exported, fail_on=fail_on), stderr="boom")
        tool = ExportTool(runner=runner)
        return ReleaseRunner(config, export_tool=tool, committer=committer), working, temp_root

    return _make


def _export(solution_xml, version="1.0.0", account="<entity>v1</entity>", msapp="zip-1"):
    return {
        "Other/Solution.xml": solution_xml(version),
        "Entities/account.xml": account,
        "CanvasApps/app.msapp": msapp,
    }


@pytest.mark.unit
class TestReleaseRunner:
    """Tests for ReleaseRunner.run."""

    def test_noise_only_change_is_noop(self, make_run, solution_xml):
        runner, working, temp_root = make_run(_export(solution_xml, msapp="zip-2"))
        before = (working / "CanvasApps" / "app.msapp").read_text()

        result = runner.run()

        assert result.decision == ReleaseDecision.NOOP
        assert result.mirror is None
        assert result.release_version is None
        assert not result.changed
        assert (working / "CanvasApps" / "app.msapp").read_text() == before
        assert list(temp_root.iterdir()) == []

    def test_change_bumps_patch_and_syncs(self, make_run, solution_xml):
        runner, working, temp_root = make_run(_export(solution_xml, account="<entity>v2</entity>"))

        result = runner.run()

        assert result.decision == ReleaseDecision.BUMP_AND_SYNC
        assert result.bump_kind == BumpKind.PATCH
        assert result.exported_version == "1.0.0"
        assert result.release_version == "1.0.1"
        assert read_manifest_version(working) == "1.0.1"
        assert (working / "Entities" / "account.xml").read_text() == "<entity>v2</entity>"
        assert result.changed and result.ok
        assert list(temp_root.iterdir()) == []

    def test_requested_minor_with_no_change_is_bump_only(self, make_run, solution_xml):
        runner, working, _ = make_run(_export(solution_xml), requested_bump=BumpKind.MINOR)

        result = runner.run()

        assert result.decision == ReleaseDecision.BUMP_ONLY
        assert result.release_version == "1.1.0"
        assert read_manifest_version(working) == "1.1.0"
        assert "Other/Solution.xml" in result.mirror.copied

    def test_four_segment_patch_bumps_revision(self, make_run, solution_xml):
        runner, working, _ = make_run(_export(solution_xml, version="2.0.1.9", account="x"))

        result = runner.run()

        assert result.release_version == "2.0.1.10"
        assert read_manifest_version(working) == "2.0.1.10"

    def test_prerelease_label_applied(self, make_run, solution_xml):
        runner, working, _ = make_run(
            _export(solution_xml, account="x"), requested_bump=BumpKind.MINOR, prerelease="rc1",
        )

        result = runner.run()

        assert result.release_version == "1.1.0-rc1"
        assert read_manifest_version(working) == "1.1.0-rc1"

    def test_invalid_version_fails_without_touching_tree(self, make_run, solution_xml):
        runner, working, temp_root = make_run(_export(solution_xml, version="1.0", account="x"))

        with pytest.raises(InvalidVersionError):
            runner.run()

        assert read_manifest_version(working) == "1.0.0"
        assert (working / "Entities" / "account.xml").read_text() == "<entity>v1</entity>"
        assert list(temp_root.iterdir()) == []

    @pytest.mark.parametrize("step", ["export", "unpack"])
    def test_tool_failure_raises_and_cleans_up(self, make_run, solution_xml, step):
        runner, working, temp_root = make_run(_export(solution_xml, account="x"), fail_on=step)

        with pytest.raises(CollaboratorError) as exc_info:
            runner.run()

        assert exc_info.value.exit_code == 1
        assert "boom" in exc_info.value.stderr
        assert read_manifest_version(working) == "1.0.0"
        assert list(temp_root.iterdir()) == []

    def test_dry_run_reports_without_writing(self, make_run, solution_xml):
        runner, working, temp_root = make_run(_export(solution_xml, account="x"), dry_run=True)

        result = runner.run()

        assert result.decision == ReleaseDecision.BUMP_AND_SYNC
        assert result.release_version == "1.0.1"
        assert result.mirror is None
        assert result.commit_request is None
        assert read_manifest_version(working) == "1.0.0"
        assert list(temp_root.iterdir()) == []

    def test_preserved_git_directory_does_not_count_as_change(self, make_run, solution_xml):
        runner, working, _ = make_run(_export(solution_xml))
        write_tree(working / ".git", {"HEAD": "ref: refs/heads/main", "objects/ab/cdef": "blob"})

        result = runner.run()

        assert result.decision == ReleaseDecision.NOOP
        assert result.diff.is_empty()
        assert (working / ".git" / "HEAD").read_text() == "ref: refs/heads/main"

    def test_preserved_git_directory_survives_release(self, make_run, solution_xml):
        runner, working, _ = make_run(_export(solution_xml, account="x"))
        write_tree(working / ".git", {"HEAD": "ref: refs/heads/main"})

        result = runner.run()

        assert result.decision == ReleaseDecision.BUMP_AND_SYNC
        assert ".git/HEAD" not in result.diff.paths()
        assert ".git/HEAD" not in result.mirror.applied_paths()
        assert (working / ".git" / "HEAD").exists()

    def test_second_run_is_noop(self, make_run, solution_xml):
        exported = _export(solution_xml, account="x")
        first, _, _ = make_run(exported)
        first.run()

        # The export tool hands back what is now committed, version included.
        exported["Other/Solution.xml"] = solution_xml("1.0.1")
        second, _, _ = make_run(exported)
        result = second.run()

        assert result.decision == ReleaseDecision.NOOP


@pytest.mark.unit
class TestRunStates:
    """State sequences recorded on the result."""

    def test_noop_sequence(self, make_run, solution_xml):
        runner, _, _ = make_run(_export(solution_xml))
        states = runner.run().states
        assert states == [
            RunState.EXPORTING, RunState.UNPACKING, RunState.SNAPSHOT_OLD,
            RunState.SNAPSHOT_NEW, RunState.DIFFING, RunState.DECIDING,
            RunState.CLEANUP, RunState.DONE,
        ]

    def test_release_sequence(self, make_run, solution_xml):
        runner, _, _ = make_run(_export(solution_xml, account="x"))
        states = runner.run().states
        assert states[-6:] == [
            RunState.DECIDING, RunState.BUMPING, RunState.MIRRORING,
            RunState.CLEANUP, RunState.SIGNAL_COMMIT, RunState.DONE,
        ]

    def test_failure_ends_in_failed(self, make_run, solution_xml, caplog):
        runner, _, _ = make_run(_export(solution_xml), fail_on="export")

        with caplog.at_level(logging.INFO, logger="solution_release.runner.release_runner"):
            with pytest.raises(CollaboratorError):
                runner.run()

        transitions = [r.getMessage() for r in caplog.records if r.getMessage().startswith("State -> ")]
        assert transitions == ["State -> exporting", "State -> cleanup", "State -> failed"]


@pytest.mark.unit
class TestCommitHandoff:
    """Tests for the commit request built after mirroring."""

    def test_committer_receives_mirrored_paths_and_tag(self, make_run, solution_xml):
        committer = RecordingCommitter()
        runner, working, _ = make_run(_export(solution_xml, account="x"), committer=committer)

        result = runner.run()

        assert len(committer.requests) == 1
        request = committer.requests[0]
        assert request.working_dir == working
        assert set(request.paths) == {"Other/Solution.xml", "Entities/account.xml"}
        assert request.tag == "v1.0.1"
        assert request.message == "Release Contoso 1.0.1"
        assert result.commit_sha == "abc123"
        assert result.tag == "v1.0.1"

    def test_noop_never_commits(self, make_run, solution_xml):
        committer = RecordingCommitter()
        runner, _, _ = make_run(_export(solution_xml), committer=committer)

        result = runner.run()

        assert committer.requests == []
        assert result.commit_request is None

    def test_commit_disabled_only_prepares_request(self, make_run, solution_xml):
        committer = RecordingCommitter()
        runner, _, _ = make_run(
            _export(solution_xml, account="x"), committer=committer, commit_enabled=False,
        )

        result = runner.run()

        assert committer.requests == []
        assert result.commit_request is not None
        assert result.commit_sha is None

    def test_tag_disabled(self, make_run, solution_xml):
        runner, _, _ = make_run(_export(solution_xml, account="x"), tag_enabled=False)
        assert runner.run().commit_request.tag is None


@pytest.mark.unit
class TestReleaseWorkspace:
    """Tests for ReleaseWorkspace."""

    def test_removed_on_exception(self, tmp_path):
        with pytest.raises(RuntimeError):
            with ReleaseWorkspace("Contoso", tmp_path) as ws:
                ws.archive_path.write_bytes(b"PK")
                write_tree(ws.unpack_dir, {"a.txt": "1"})
                raise RuntimeError("boom")
        assert list(tmp_path.iterdir()) == []

    def test_paths_live_under_root(self, tmp_path):
        with ReleaseWorkspace("Contoso", tmp_path) as ws:
            assert ws.archive_path.parent == ws.root
            assert ws.archive_path.name == "Contoso.zip"
            assert ws.unpack_dir.parent == ws.root
            assert ws.root.name.startswith("release-Contoso-")

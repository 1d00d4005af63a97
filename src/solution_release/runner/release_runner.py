"""
Release runner.

Sequences one release run:

    EXPORTING -> UNPACKING -> SNAPSHOT_OLD -> SNAPSHOT_NEW -> DIFFING
    -> DECIDING -> [NOOP: CLEANUP -> DONE]
                 | [BUMPING -> MIRRORING -> CLEANUP -> SIGNAL_COMMIT -> DONE]

The export archive and unpack directory live in a ReleaseWorkspace whose
exit always removes them, whatever state the run failed in. Cleanup errors
are logged and never replace the error that ended the run.

Runs are single-writer: two runs against the same working tree will race.
"""

import logging
import shutil
import tempfile
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..collaborators.export_tool import ExportTool
from ..collaborators.git_handoff import CommitRequest, GitCommitter, tag_for_version
from ..config.config_loader import RunConfig
from ..core.exceptions import ReleaseError
from ..core.logging import RunContext
from ..snapshot.content_snapshot import build_snapshot
from ..snapshot.differ import DiffResult, diff_snapshots
from ..snapshot.mirror import MirrorReport, TreeMirror
from ..versioning.decision import ReleaseDecision, decide_release
from ..versioning.manifest import VersionManifest
from ..versioning.version import BumpKind, bump_version, format_version, parse_version

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    """States of a release run, in order."""
    EXPORTING = "exporting"
    UNPACKING = "unpacking"
    SNAPSHOT_OLD = "snapshot_old"
    SNAPSHOT_NEW = "snapshot_new"
    DIFFING = "diffing"
    DECIDING = "deciding"
    BUMPING = "bumping"
    MIRRORING = "mirroring"
    CLEANUP = "cleanup"
    SIGNAL_COMMIT = "signal_commit"
    DONE = "done"
    FAILED = "failed"


class ReleaseWorkspace:
    """
    Temporary export archive and unpack directory for one run.

    Use as a context manager; both are removed on exit regardless of how
    the block ends.
    """

    def __init__(self, solution_name: str, temp_root: Optional[Path] = None):
        self.solution_name = solution_name
        self.temp_root = Path(temp_root) if temp_root else None
        self.root: Optional[Path] = None

    @property
    def archive_path(self) -> Path:
        return self.root / f"{self.solution_name}.zip"

    @property
    def unpack_dir(self) -> Path:
        return self.root / "unpacked"

    def __enter__(self) -> "ReleaseWorkspace":
        if self.temp_root is not None:
            self.temp_root.mkdir(parents=True, exist_ok=True)
        self.root = Path(tempfile.mkdtemp(prefix=f"release-{self.solution_name}-", dir=self.temp_root))
        logger.debug("Created workspace %s", self.root)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.cleanup()
        return False

    def cleanup(self) -> None:
        """Remove the archive and unpack directory; log, never raise."""
        if self.root is None:
            return
        try:
            self.archive_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove export archive %s: %s", self.archive_path, e)
        try:
            shutil.rmtree(self.root)
            logger.debug("Removed workspace %s", self.root)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove workspace %s: %s", self.root, e)


@dataclass
class ReleaseResult:
    """Outcome of a release run, for the CLI and the commit hand-off."""
    solution: str
    run_id: str
    dry_run: bool = False
    decision: Optional[ReleaseDecision] = None
    bump_kind: BumpKind = BumpKind.NONE
    exported_version: Optional[str] = None
    release_version: Optional[str] = None
    diff: Optional[DiffResult] = None
    mirror: Optional[MirrorReport] = None
    commit_request: Optional[CommitRequest] = None
    commit_sha: Optional[str] = None
    states: List[RunState] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        """True when the working tree was updated."""
        return self.mirror is not None and self.mirror.operations > 0

    @property
    def tag(self) -> Optional[str]:
        return self.commit_request.tag if self.commit_request else None

    @property
    def ok(self) -> bool:
        return self.mirror is None or self.mirror.ok

    def to_dict(self) -> Dict[str, Any]:
        return {
            "solution": self.solution,
            "run_id": self.run_id,
            "dry_run": self.dry_run,
            "decision": self.decision.value if self.decision else None,
            "bump_kind": self.bump_kind.value,
            "exported_version": self.exported_version,
            "release_version": self.release_version,
            "diff": self.diff.to_dict() if self.diff else None,
            "mirror": self.mirror.to_dict() if self.mirror else None,
            "commit": self.commit_request.to_dict() if self.commit_request else None,
            "commit_sha": self.commit_sha,
            "states": [s.value for s in self.states],
        }

    def summary(self) -> str:
        lines = [
            f"Release {self.solution} (run {self.run_id})",
            f"  Dry run: {self.dry_run}",
            f"  Decision: {self.decision.value if self.decision else '-'}",
            f"  Bump: {self.bump_kind.value}",
            f"  Diff: {self.diff.summary() if self.diff else '-'}",
            f"  Version: {self.exported_version or '-'} -> {self.release_version or '-'}",
        ]
        if self.mirror is not None:
            lines.append(
                f"  Mirror: {len(self.mirror.copied)} copied, {len(self.mirror.deleted)} deleted, "
                f"{len(self.mirror.failed)} failed"
            )
        if self.commit_request is not None:
            lines.append(f"  Commit: {len(self.commit_request.paths)} path(s), tag {self.tag or '-'}")
        if self.commit_sha:
            lines.append(f"  Commit SHA: {self.commit_sha}")
        return "\n".join(lines)


class ReleaseRunner:
    """
    Runs one release for a RunConfig.

    Args:
        config: Frozen run configuration
        export_tool: Export/unpack collaborator (built from config if None)
        committer: Git collaborator; when None the commit request is only
            returned in the result
    """

    def __init__(
        self,
        config: RunConfig,
        export_tool: Optional[ExportTool] = None,
        committer: Optional[GitCommitter] = None,
    ):
        self.config = config
        self.export_tool = export_tool or ExportTool(
            executable=config.export_executable,
            export_command=config.export_command,
            unpack_command=config.unpack_command,
        )
        self.committer = committer
        self._context: Optional[RunContext] = None

    def _transition(self, result: ReleaseResult, state: RunState) -> None:
        result.states.append(state)
        if self._context is not None:
            self._context.set("state", state.value)
        logger.info("State -> %s", state.value)

    def run(self) -> ReleaseResult:
        """
        Execute the run.

        Raises:
            ReleaseError: Any fatal error; temporary files are already
                removed when it propagates
        """
        cfg = self.config
        result = ReleaseResult(
            solution=cfg.solution_name,
            run_id=uuid.uuid4().hex[:8],
            dry_run=cfg.dry_run,
        )

        with RunContext(run_id=result.run_id, solution=cfg.solution_name) as ctx:
            self._context = ctx
            try:
                with ReleaseWorkspace(cfg.solution_name, cfg.temp_root) as workspace:
                    try:
                        self._execute(workspace, result)
                    finally:
                        self._transition(result, RunState.CLEANUP)

                if result.mirror is not None:
                    self._transition(result, RunState.SIGNAL_COMMIT)
                    self._signal_commit(result)

                self._transition(result, RunState.DONE)
            except ReleaseError as e:
                self._transition(result, RunState.FAILED)
                logger.error("Release failed: %s", e)
                raise
            finally:
                self._context = None

        return result

    def _execute(self, workspace: ReleaseWorkspace, result: ReleaseResult) -> None:
        cfg = self.config

        self._transition(result, RunState.EXPORTING)
        self.export_tool.export(cfg.solution_name, cfg.managed, workspace.archive_path)

        self._transition(result, RunState.UNPACKING)
        self.export_tool.unpack(workspace.archive_path, workspace.unpack_dir, cfg.managed)

        # The mirror never touches preserved paths, so they stay out of the diff
        compare_filter = cfg.noise_filter.merged(cfg.preserve_filter)

        self._transition(result, RunState.SNAPSHOT_OLD)
        old = build_snapshot(cfg.working_dir, compare_filter, workers=cfg.hash_workers)

        self._transition(result, RunState.SNAPSHOT_NEW)
        new = build_snapshot(workspace.unpack_dir, compare_filter, workers=cfg.hash_workers)

        self._transition(result, RunState.DIFFING)
        result.diff = diff_snapshots(old, new)
        logger.info("Diff: %s", result.diff.summary())
        for path in sorted(result.diff.paths()):
            logger.debug("  %s", path)

        self._transition(result, RunState.DECIDING)
        outcome = decide_release(result.diff, cfg.requested_bump)
        result.decision = outcome.decision
        result.bump_kind = outcome.bump_kind

        if not outcome.acts:
            logger.info("No release-worthy change; nothing to do")
            return

        manifest = VersionManifest.locate(workspace.unpack_dir, cfg.manifest_filename)
        version = parse_version(manifest.read_version_text())
        result.exported_version = format_version(version)
        version = bump_version(version, outcome.bump_kind, cfg.prerelease)
        result.release_version = format_version(version)

        if cfg.dry_run:
            logger.info(
                "Dry run: would release %s as %s",
                cfg.solution_name, result.release_version,
            )
            return

        self._transition(result, RunState.BUMPING)
        manifest.write_version_text(result.release_version)

        self._transition(result, RunState.MIRRORING)
        mirror = TreeMirror(preserve=cfg.preserve_filter, workers=cfg.hash_workers)
        result.mirror = mirror.mirror(workspace.unpack_dir, cfg.working_dir)
        if not result.mirror.ok:
            logger.error(
                "Mirror left %d path(s) unapplied; the working tree is partially updated",
                len(result.mirror.failed),
            )

    def _signal_commit(self, result: ReleaseResult) -> None:
        cfg = self.config
        message = cfg.commit_message.format(
            solution=cfg.solution_name,
            version=result.release_version,
            decision=result.decision.value,
        )
        result.commit_request = CommitRequest(
            working_dir=cfg.working_dir,
            paths=tuple(result.mirror.applied_paths()),
            message=message,
            tag=tag_for_version(result.release_version) if cfg.tag_enabled else None,
        )

        if self.committer is None or not cfg.commit_enabled:
            logger.info("Commit hand-off prepared for %d path(s)", len(result.commit_request.paths))
            return

        result.commit_sha = self.committer.commit(result.commit_request)

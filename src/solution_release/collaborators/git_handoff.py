"""
Version-control hand-off.

After the working tree matches the accepted snapshot, the changed paths, a
commit message and an optional tag are handed to git. Only staging,
committing, tagging and pushing are performed; history is never rewritten.
"""

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..core.exceptions import CollaboratorError

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE_TEMPLATE = "Release {solution} {version}"
STAGE_BATCH_SIZE = 100


def tag_for_version(version: str) -> str:
    return f"v{version}"


@dataclass(frozen=True)
class CommitRequest:
    """
    What the release run hands to version control.

    Attributes:
        working_dir: Working tree the paths are relative to
        paths: Working-tree paths written or deleted by the mirror
        message: Commit message
        tag: Tag name (``v<version>``) or None
    """
    working_dir: Path
    paths: Tuple[str, ...] = field(default_factory=tuple)
    message: str = ""
    tag: Optional[str] = None

    @property
    def empty(self) -> bool:
        return not self.paths

    def to_dict(self) -> Dict[str, Any]:
        return {
            "working_dir": str(self.working_dir),
            "paths": list(self.paths),
            "message": self.message,
            "tag": self.tag,
        }


class GitCommitter:
    """
    Stages, commits, tags and optionally pushes a CommitRequest.

    Args:
        repo_dir: Repository root (``git -C`` target)
        push: Push the commit and tag after committing
        remote: Remote name for pushes
        runner: subprocess.run-compatible callable (injectable for tests)
    """

    def __init__(
        self,
        repo_dir: Path,
        push: bool = False,
        remote: str = "origin",
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        self.repo_dir = Path(repo_dir)
        self.push = push
        self.remote = remote
        self.runner = runner

    def _git(self, *args: str) -> str:
        argv = ["git", "-C", str(self.repo_dir), *args]
        logger.debug("Running: %s", " ".join(argv))
        try:
            completed = self.runner(argv, capture_output=True, text=True, check=False)
        except OSError as e:
            raise CollaboratorError("git failed to start", command=argv, stderr=str(e)) from e
        if completed.returncode != 0:
            raise CollaboratorError(
                f"git {args[0]} failed",
                command=argv,
                exit_code=completed.returncode,
                stderr=(completed.stderr or "").strip(),
            )
        return (completed.stdout or "").strip()

    def _repo_relative(self, request: CommitRequest) -> List[str]:
        working_dir = Path(request.working_dir)
        try:
            base = working_dir.resolve().relative_to(self.repo_dir.resolve())
        except ValueError:
            raise CollaboratorError(
                f"Working directory {working_dir} is outside repository {self.repo_dir}"
            )
        return [(base / p).as_posix() for p in request.paths]

    def commit(self, request: CommitRequest) -> Optional[str]:
        """
        Commit the request's paths.

        Returns:
            The new commit SHA, or None when there was nothing to commit
        """
        if request.empty:
            logger.info("Nothing to commit")
            return None

        paths = self._repo_relative(request)
        for i in range(0, len(paths), STAGE_BATCH_SIZE):
            self._git("add", "-A", "--", *paths[i:i + STAGE_BATCH_SIZE])

        self._git("commit", "-m", request.message)
        sha = self._git("rev-parse", "HEAD")
        logger.info("Committed %d path(s) as %s", len(paths), sha[:12])

        if request.tag:
            self._git("tag", "-a", request.tag, "-m", request.message)
            logger.info("Tagged %s", request.tag)

        if self.push:
            self._git("push", self.remote, "HEAD")
            if request.tag:
                self._git("push", self.remote, request.tag)
            logger.info("Pushed to %s", self.remote)

        return sha

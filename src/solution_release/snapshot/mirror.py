"""
One-directional tree mirror.

Makes a destination tree's file set and contents identical to a source
tree, including deletions, while leaving files that already match alone.
"""

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from ..core.exceptions import SnapshotIOError
from .content_snapshot import HASH_CHUNK_SIZE, ContentSnapshot, build_snapshot
from .differ import DiffResult, diff_snapshots
from .noise import NoiseFilter

logger = logging.getLogger(__name__)


@dataclass
class MirrorReport:
    """Outcome of a mirror run, per path."""
    source: Path
    destination: Path
    copied: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    removed_dirs: List[str] = field(default_factory=list)
    unchanged: int = 0
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def operations(self) -> int:
        """Number of filesystem changes applied."""
        return len(self.copied) + len(self.deleted) + len(self.removed_dirs)

    @property
    def ok(self) -> bool:
        return not self.failed

    def applied_paths(self) -> List[str]:
        """Destination-relative file paths written or deleted."""
        return sorted(set(self.copied) | set(self.deleted))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": str(self.source),
            "destination": str(self.destination),
            "copied": sorted(self.copied),
            "deleted": sorted(self.deleted),
            "removed_dirs": sorted(self.removed_dirs),
            "unchanged": self.unchanged,
            "failed": dict(sorted(self.failed.items())),
        }

    def summary(self) -> str:
        lines = [
            f"Mirror {self.source} -> {self.destination}",
            f"  Copied: {len(self.copied)}",
            f"  Deleted: {len(self.deleted)}",
            f"  Removed dirs: {len(self.removed_dirs)}",
            f"  Unchanged: {self.unchanged}",
            f"  Failed: {len(self.failed)}",
        ]
        for path, error in sorted(self.failed.items()):
            lines.append(f"    - {path}: {error}")
        return "\n".join(lines)


def copy_file_atomic(src: Path, dst: Path) -> None:
    """Copy src over dst through a temp file in dst's directory and a rename."""
    dst.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=dst.parent, prefix=f".{dst.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f_out, open(src, "rb") as f_in:
            shutil.copyfileobj(f_in, f_out, HASH_CHUNK_SIZE)
        shutil.copystat(src, tmp_path)
        os.replace(tmp_path, dst)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


class TreeMirror:
    """
    Mirrors a source tree into a destination tree.

    Guarantees:
    - Files identical in both trees are never rewritten
    - Each copied file is replaced atomically (temp file + rename)
    - Running twice with unchanged inputs performs no operations

    Not guaranteed: run-level atomicity. A per-file failure (e.g. a locked
    destination file) is recorded in ``MirrorReport.failed`` and the mirror
    carries on; changes already applied are not rolled back. Callers must
    check ``report.ok`` and treat the destination as partially updated when
    it is False.

    Args:
        preserve: Destination paths matching this filter are never copied
            over or deleted (e.g. a nested ``.git`` directory)
        workers: Hashing threads used to snapshot both trees
    """

    def __init__(self, preserve: Optional[NoiseFilter] = None, workers: int = 1):
        self.preserve = preserve
        self.workers = workers

    def _snapshots(self, source: Path, destination: Path) -> Tuple[ContentSnapshot, ContentSnapshot]:
        if not source.is_dir():
            raise SnapshotIOError(str(source), FileNotFoundError(f"Mirror source not found: {source}"))
        src_snap = build_snapshot(source, self.preserve, workers=self.workers)
        dst_snap = build_snapshot(destination, self.preserve, workers=self.workers)
        return src_snap, dst_snap

    def plan(self, source: Path, destination: Path) -> DiffResult:
        """
        Compute the changes a mirror would make, without touching anything.

        ``added``/``changed`` paths would be copied, ``removed`` deleted.
        """
        src_snap, dst_snap = self._snapshots(Path(source), Path(destination))
        return diff_snapshots(dst_snap, src_snap)

    def mirror(self, source: Path, destination: Path) -> MirrorReport:
        """
        Make destination match source.

        Raises:
            SnapshotIOError: The source is missing or either tree cannot be
                snapshotted. Per-file copy/delete errors are reported, not
                raised.
        """
        source = Path(source)
        destination = Path(destination)
        src_snap, dst_snap = self._snapshots(source, destination)
        plan = diff_snapshots(dst_snap, src_snap)

        report = MirrorReport(source=source, destination=destination)
        report.unchanged = len(src_snap) - len(plan.added) - len(plan.changed)

        if plan.is_empty():
            logger.info("Mirror: %s already matches %s", destination, source)
            report.removed_dirs = self._prune_empty_dirs(source, destination, report)
            return report

        destination.mkdir(parents=True, exist_ok=True)

        # Deletions first so a file can replace a directory of the same name
        for rel in sorted(plan.removed):
            target = destination / rel
            try:
                target.unlink()
                report.deleted.append(rel)
                logger.debug("Deleted %s", rel)
            except OSError as e:
                report.failed[rel] = str(e)
                logger.error("Failed to delete %s: %s", rel, e)

        report.removed_dirs = self._prune_empty_dirs(source, destination, report)

        for rel in sorted(plan.added | plan.changed):
            try:
                copy_file_atomic(source / rel, destination / rel)
                report.copied.append(rel)
                logger.debug("Copied %s", rel)
            except OSError as e:
                report.failed[rel] = str(e)
                logger.error("Failed to copy %s: %s", rel, e)

        logger.info(
            "Mirror complete: %d copied, %d deleted, %d dir(s) removed, %d unchanged, %d failed",
            len(report.copied), len(report.deleted), len(report.removed_dirs),
            report.unchanged, len(report.failed),
        )
        return report

    def _prune_empty_dirs(self, source: Path, destination: Path, report: MirrorReport) -> List[str]:
        """Remove empty destination directories that do not exist in source."""
        removed: List[str] = []
        if not destination.is_dir():
            return removed

        source_dirs: Set[str] = set()
        if source.is_dir():
            source_dirs = {p.relative_to(source).as_posix() for p in source.rglob("*") if p.is_dir()}

        for dirpath, _dirnames, _filenames in os.walk(destination, topdown=False):
            current = Path(dirpath)
            if current == destination:
                continue
            rel = current.relative_to(destination).as_posix()
            if rel in source_dirs:
                continue
            if self.preserve is not None and self.preserve.is_noise(rel):
                continue
            try:
                if any(current.iterdir()):
                    continue
                current.rmdir()
                removed.append(rel)
                logger.debug("Removed empty directory %s", rel)
            except OSError as e:
                report.failed[rel] = str(e)
                logger.error("Failed to remove directory %s: %s", rel, e)
        return removed

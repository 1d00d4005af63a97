"""
Solution release snapshot engine.

Exports a named solution, compares it with the committed working tree by
content hash, decides whether the export is a real change, bumps the
solution version and mirrors the accepted snapshot into the working tree
ready for commit.
"""

from .core.exceptions import (
    ReleaseError,
    InvalidVersionError,
    ManifestNotFoundError,
    CollaboratorError,
    SnapshotIOError,
    ReleaseConfigError,
)
from .snapshot import NoiseFilter, NoiseRule, ContentSnapshot, build_snapshot, DiffResult, diff_snapshots, TreeMirror
from .versioning import BumpKind, Version, parse_version, format_version, bump_version, ReleaseDecision, decide_release
from .runner import ReleaseRunner, ReleaseResult

__version__ = "0.1.0"

__all__ = [
    "ReleaseError",
    "InvalidVersionError",
    "ManifestNotFoundError",
    "CollaboratorError",
    "SnapshotIOError",
    "ReleaseConfigError",
    "NoiseFilter",
    "NoiseRule",
    "ContentSnapshot",
    "build_snapshot",
    "DiffResult",
    "diff_snapshots",
    "TreeMirror",
    "BumpKind",
    "Version",
    "parse_version",
    "format_version",
    "bump_version",
    "ReleaseDecision",
    "decide_release",
    "ReleaseRunner",
    "ReleaseResult",
]

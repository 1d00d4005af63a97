"""
Snapshot module for exported solution trees.

This module provides:
- NoiseRule / NoiseFilter: paths excluded from comparison
- ContentSnapshot: content-addressed map of a directory tree
- DiffResult: added / removed / changed classification
- TreeMirror: one-directional sync of a source tree into a working tree
"""

from .noise import NoiseRule, NoiseFilter
from .content_snapshot import ContentSnapshot, build_snapshot, hash_file
from .differ import DiffResult, diff_snapshots
from .mirror import TreeMirror, MirrorReport

__all__ = [
    "NoiseRule",
    "NoiseFilter",
    "ContentSnapshot",
    "build_snapshot",
    "hash_file",
    "DiffResult",
    "diff_snapshots",
    "TreeMirror",
    "MirrorReport",
]

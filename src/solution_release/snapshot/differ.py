"""
Snapshot differ.

Classifies paths between an old and a new content snapshot.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Mapping


@dataclass(frozen=True)
class DiffResult:
    """
    Disjoint sets of relative paths.

    Attributes:
        added: In new, not in old
        removed: In old, not in new
        changed: In both, digests differ
    """
    added: FrozenSet[str] = field(default_factory=frozenset)
    removed: FrozenSet[str] = field(default_factory=frozenset)
    changed: FrozenSet[str] = field(default_factory=frozenset)

    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)

    def paths(self) -> FrozenSet[str]:
        return self.added | self.removed | self.changed

    def summary(self) -> str:
        return f"+{len(self.added)} -{len(self.removed)} ~{len(self.changed)}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "added": sorted(self.added),
            "removed": sorted(self.removed),
            "changed": sorted(self.changed),
        }


def diff_snapshots(old: Mapping[str, str], new: Mapping[str, str]) -> DiffResult:
    """Compare two snapshots by key membership and digest."""
    added = set()
    changed = set()
    for path, digest in new.items():
        old_digest = old.get(path)
        if old_digest is None:
            added.add(path)
        elif old_digest != digest:
            changed.add(path)

    removed = {path for path in old if path not in new}

    return DiffResult(
        added=frozenset(added),
        removed=frozenset(removed),
        changed=frozenset(changed),
    )

"""
Versioning: version model, manifest access and release decision.
"""

from .version import (
    BumpKind,
    Version,
    parse_version,
    format_version,
    bump_version,
    validate_label,
)
from .manifest import VersionManifest, read_manifest_version
from .decision import ReleaseDecision, DecisionOutcome, decide_release

__all__ = [
    "BumpKind",
    "Version",
    "parse_version",
    "format_version",
    "bump_version",
    "validate_label",
    "VersionManifest",
    "read_manifest_version",
    "ReleaseDecision",
    "DecisionOutcome",
    "decide_release",
]

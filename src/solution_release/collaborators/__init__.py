"""
External collaborators: the solution export CLI and git.
"""

from .export_tool import ExportTool
from .git_handoff import CommitRequest, GitCommitter, tag_for_version

__all__ = [
    "ExportTool",
    "CommitRequest",
    "GitCommitter",
    "tag_for_version",
]

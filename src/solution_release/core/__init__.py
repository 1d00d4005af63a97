"""
Core subpackage for the solution release engine.

Contains exceptions and logging utilities.
"""

from .exceptions import (
    ReleaseError,
    InvalidVersionError,
    ManifestNotFoundError,
    CollaboratorError,
    SnapshotIOError,
    ReleaseConfigError,
)
from .logging import configure_logging, RunContext

__all__ = [
    "ReleaseError",
    "InvalidVersionError",
    "ManifestNotFoundError",
    "CollaboratorError",
    "SnapshotIOError",
    "ReleaseConfigError",
    "configure_logging",
    "RunContext",
]

"""
Custom exceptions for the solution release engine.
"""

from typing import List, Optional


class ReleaseError(Exception):
    """Base exception for all release engine errors."""
    pass


class InvalidVersionError(ReleaseError):
    """
    Error parsing a version string.

    Raised when:
    - The version has fewer than 3 or more than 4 numeric segments
    - A segment is not a non-negative integer
    - The version text is empty
    - The prerelease label is empty or contains characters outside
      letters, digits, dots and hyphens
    """

    def __init__(self, text: str, reason: str):
        super().__init__(f"Invalid version {text!r}: {reason}")
        self.text = text
        self.reason = reason


class ManifestNotFoundError(ReleaseError):
    """
    Error locating the version element of an exported solution.

    Raised when:
    - No manifest file with the expected name exists under the tree
    - The manifest has no version element
    - The manifest has more than one version element
    """

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class CollaboratorError(ReleaseError):
    """
    Error from an external tool (export/unpack CLI or git).

    Carries the command line, exit code and the tail of stderr so the
    caller can report what the tool said.
    """

    def __init__(
        self,
        message: str,
        command: Optional[List[str]] = None,
        exit_code: Optional[int] = None,
        stderr: str = "",
    ):
        detail = message
        if exit_code is not None:
            detail += f" (exit code {exit_code})"
        if stderr:
            detail += f": {stderr}"
        super().__init__(detail)
        self.command = command or []
        self.exit_code = exit_code
        self.stderr = stderr


class SnapshotIOError(ReleaseError):
    """Unreadable or unwritable file while snapshotting or mirroring."""

    def __init__(self, path: str, cause: Optional[BaseException] = None):
        msg = f"I/O failure on {path}"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)
        self.path = path
        self.cause = cause


class ReleaseConfigError(ReleaseError):
    """
    Error in release configuration.

    Raised when:
    - Configuration file is missing or not a mapping
    - A noise pattern is not a valid regular expression
    - A bump kind or required value is invalid
    """
    pass

"""
Version manifest handling.

An unpacked solution carries its version in a single ``<Version>`` element
of its manifest (``Other/Solution.xml``). Only that element's text is read
or rewritten; every other byte of the file is preserved so the rewrite does
not show up as a spurious change.
"""

import logging
import re
from pathlib import Path
from typing import Optional

from ..core.exceptions import InvalidVersionError, ManifestNotFoundError, SnapshotIOError

logger = logging.getLogger(__name__)

DEFAULT_MANIFEST_FILENAME = "Solution.xml"

_VERSION_ELEMENT_RE = re.compile(rb"(<Version\s*>)([^<]*)(</Version\s*>)")


class VersionManifest:
    """
    A manifest file holding exactly one version element.

    Attributes:
        path: Location of the manifest file
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    @classmethod
    def locate(cls, tree_root: Path, filename: str = DEFAULT_MANIFEST_FILENAME) -> "VersionManifest":
        """
        Find the manifest by filename anywhere under a tree.

        The shallowest match wins; ties break on path order.

        Raises:
            ManifestNotFoundError: No file with that name exists
        """
        tree_root = Path(tree_root)
        candidates = sorted(
            (p for p in tree_root.rglob(filename) if p.is_file()),
            key=lambda p: (len(p.relative_to(tree_root).parts), p.as_posix()),
        )
        if not candidates:
            raise ManifestNotFoundError(
                f"No {filename} found under {tree_root}", path=str(tree_root)
            )
        if len(candidates) > 1:
            logger.warning(
                "Found %d %s files under %s; using %s",
                len(candidates), filename, tree_root, candidates[0],
            )
        logger.debug("Located version manifest: %s", candidates[0])
        return cls(candidates[0])

    def _read_bytes(self) -> bytes:
        try:
            return self.path.read_bytes()
        except FileNotFoundError as e:
            raise ManifestNotFoundError(f"Manifest not found: {self.path}", path=str(self.path)) from e
        except OSError as e:
            raise SnapshotIOError(str(self.path), e) from e

    def _find_element(self, data: bytes) -> "re.Match":
        matches = list(_VERSION_ELEMENT_RE.finditer(data))
        if not matches:
            raise ManifestNotFoundError(
                f"No <Version> element in {self.path}", path=str(self.path)
            )
        if len(matches) > 1:
            raise ManifestNotFoundError(
                f"Expected one <Version> element in {self.path}, found {len(matches)}",
                path=str(self.path),
            )
        return matches[0]

    def read_version_text(self) -> str:
        """Return the text of the version element, stripped."""
        match = self._find_element(self._read_bytes())
        try:
            return match.group(2).decode("utf-8").strip()
        except UnicodeDecodeError as e:
            raise InvalidVersionError(
                repr(match.group(2)), f"version text in {self.path} is not valid UTF-8"
            ) from e

    def write_version_text(self, text: str) -> None:
        """Replace the text of the version element, leaving the rest untouched."""
        data = self._read_bytes()
        match = self._find_element(data)
        updated = data[:match.start(2)] + text.encode("utf-8") + data[match.end(2):]
        try:
            self.path.write_bytes(updated)
        except OSError as e:
            raise SnapshotIOError(str(self.path), e) from e
        logger.info("Wrote version %s to %s", text, self.path)

    def __repr__(self) -> str:
        return f"VersionManifest({self.path})"


def read_manifest_version(tree_root: Path, filename: Optional[str] = None) -> str:
    """Shortcut: locate the manifest under a tree and read its version text."""
    return VersionManifest.locate(tree_root, filename or DEFAULT_MANIFEST_FILENAME).read_version_text()

"""
Structured version numbers.

Versions have 3 (major.minor.patch) or 4 (major.minor.build.revision)
non-negative integer segments and an optional prerelease label after a
``-``. The label is opaque: it is carried and replaced, never compared.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from ..core.exceptions import InvalidVersionError

SEGMENT_SEPARATOR = "."
PRERELEASE_SEPARATOR = "-"
MIN_SEGMENTS = 3
MAX_SEGMENTS = 4

_SEGMENT_RE = re.compile(r"[0-9]+")
_LABEL_RE = re.compile(r"[0-9A-Za-z][0-9A-Za-z.\-]*")


class BumpKind(str, Enum):
    """Which segment a bump increments."""
    NONE = "none"
    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"


@dataclass(frozen=True)
class Version:
    """
    A parsed version.

    Equality includes the label; ordering compares numeric segments only.

    Attributes:
        segments: 3 or 4 non-negative integers
        label: Prerelease label, empty when absent
    """
    segments: Tuple[int, ...]
    label: str = ""

    def __post_init__(self):
        segments = tuple(self.segments)
        if not MIN_SEGMENTS <= len(segments) <= MAX_SEGMENTS:
            raise InvalidVersionError(
                str(segments), f"expected {MIN_SEGMENTS} or {MAX_SEGMENTS} segments"
            )
        if any(isinstance(s, bool) or not isinstance(s, int) or s < 0 for s in segments):
            raise InvalidVersionError(str(segments), "segments must be non-negative integers")
        if self.label:
            validate_label(self.label)
        object.__setattr__(self, "segments", segments)

    @property
    def major(self) -> int:
        return self.segments[0]

    @property
    def minor(self) -> int:
        return self.segments[1]

    def __lt__(self, other: "Version") -> bool:
        return self.segments < other.segments

    def __le__(self, other: "Version") -> bool:
        return self.segments <= other.segments

    def __gt__(self, other: "Version") -> bool:
        return self.segments > other.segments

    def __ge__(self, other: "Version") -> bool:
        return self.segments >= other.segments

    def __str__(self) -> str:
        return format_version(self)


def validate_label(label: str) -> str:
    """
    Check a prerelease label.

    Labels start with a letter or digit and continue with letters, digits,
    dots and hyphens, so a formatted version always parses back to itself
    and can be written into XML text unescaped.

    Raises:
        InvalidVersionError: The label does not match
    """
    if not _LABEL_RE.fullmatch(label):
        raise InvalidVersionError(label, "prerelease label must match [0-9A-Za-z][0-9A-Za-z.-]*")
    return label


def parse_version(text: str) -> Version:
    """
    Parse a version string such as ``1.4.2``, ``2.0.1.9`` or ``1.0.0-beta``.

    Raises:
        InvalidVersionError: Fewer than 3 or more than 4 segments, a
            non-numeric segment, or an empty or malformed label after the
            separator
    """
    if text is None:
        raise InvalidVersionError("None", "version text is missing")
    raw = text
    text = text.strip()
    if not text:
        raise InvalidVersionError(raw, "version text is empty")

    numeric, sep, label = text.partition(PRERELEASE_SEPARATOR)
    if sep and not label:
        raise InvalidVersionError(raw, "empty prerelease label")
    if label and not _LABEL_RE.fullmatch(label):
        raise InvalidVersionError(raw, f"prerelease label {label!r} is not valid")

    parts = numeric.split(SEGMENT_SEPARATOR)
    if len(parts) < MIN_SEGMENTS:
        raise InvalidVersionError(raw, f"expected at least {MIN_SEGMENTS} numeric segments, got {len(parts)}")
    if len(parts) > MAX_SEGMENTS:
        raise InvalidVersionError(raw, f"expected at most {MAX_SEGMENTS} numeric segments, got {len(parts)}")

    for part in parts:
        if not _SEGMENT_RE.fullmatch(part):
            raise InvalidVersionError(raw, f"segment {part!r} is not a non-negative integer")

    return Version(tuple(int(p) for p in parts), label)


def format_version(version: Version) -> str:
    """Render a version; the label is appended only when non-empty."""
    text = SEGMENT_SEPARATOR.join(str(s) for s in version.segments)
    if version.label:
        text += PRERELEASE_SEPARATOR + version.label
    return text


def bump_version(version: Version, kind: BumpKind, prerelease: str = "") -> Version:
    """
    Advance a version.

    - MAJOR: first segment + 1, all lower segments reset to 0
    - MINOR: second segment + 1, all lower segments reset to 0
    - PATCH: last segment + 1 (patch for 3 segments, revision for 4)
    - NONE: numeric segments unchanged

    A non-empty ``prerelease`` always replaces the label. Without one, the
    label is cleared by any numeric bump and kept for NONE.
    """
    kind = BumpKind(kind)
    segments = list(version.segments)

    if kind == BumpKind.MAJOR:
        segments = [segments[0] + 1] + [0] * (len(segments) - 1)
    elif kind == BumpKind.MINOR:
        segments = [segments[0], segments[1] + 1] + [0] * (len(segments) - 2)
    elif kind == BumpKind.PATCH:
        segments[-1] += 1

    if prerelease:
        label = prerelease
    elif kind == BumpKind.NONE:
        label = version.label
    else:
        label = ""

    return Version(tuple(segments), label)

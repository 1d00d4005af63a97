"""
Noise rules for exported solution trees.

Some exported files change on every export without any real change behind
them (canvas app packages are re-zipped with fresh timestamps, for
example). Paths matching a noise rule are left out of content snapshots
entirely, so they can never show up as added, removed or changed.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Pattern, Tuple

from ..core.exceptions import ReleaseConfigError

logger = logging.getLogger(__name__)

SUFFIX = "suffix"
REGEX = "regex"

DEFAULT_NOISE_SUFFIXES = (".msapp",)


@dataclass(frozen=True)
class NoiseRule:
    """
    A single noise pattern tested against a forward-slash relative path.

    Attributes:
        kind: 'suffix' (case-insensitive path ending) or 'regex' (re.search)
        pattern: The suffix or regular expression text
    """
    kind: str
    pattern: str
    _compiled: Optional[Pattern] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        if self.kind == SUFFIX:
            suffix = self.pattern.lstrip("*")
            if not suffix:
                raise ReleaseConfigError(f"Empty noise suffix: {self.pattern!r}")
            object.__setattr__(self, "pattern", suffix.lower())
        elif self.kind == REGEX:
            try:
                object.__setattr__(self, "_compiled", re.compile(self.pattern))
            except re.error as e:
                raise ReleaseConfigError(f"Invalid noise pattern {self.pattern!r}: {e}") from e
        else:
            raise ReleaseConfigError(f"Unknown noise rule kind: {self.kind!r}")

    @classmethod
    def suffix(cls, pattern: str) -> "NoiseRule":
        return cls(SUFFIX, pattern)

    @classmethod
    def regex(cls, pattern: str) -> "NoiseRule":
        return cls(REGEX, pattern)

    def matches(self, rel_path: str) -> bool:
        if self.kind == SUFFIX:
            return rel_path.lower().endswith(self.pattern)
        return self._compiled.search(rel_path) is not None


class NoiseFilter:
    """
    A set of noise rules.

    A path is noise if any rule matches it. The same filter instance must
    be used for both sides of a comparison.
    """

    def __init__(self, rules: Iterable[NoiseRule] = ()):
        self.rules: Tuple[NoiseRule, ...] = tuple(rules)

    @classmethod
    def default(cls) -> "NoiseFilter":
        """Filter that excludes canvas app packages."""
        return cls(NoiseRule.suffix(s) for s in DEFAULT_NOISE_SUFFIXES)

    @classmethod
    def from_config(cls, data: Optional[Dict[str, Any]]) -> "NoiseFilter":
        """
        Build a filter from a config mapping.

        Expected shape::

            suffixes: ["*.msapp"]
            patterns: ["^Other/Customizations\\.xml$"]

        A missing section yields the default filter; an explicit empty
        mapping yields a filter with no rules.
        """
        if data is None:
            return cls.default()
        if not isinstance(data, dict):
            raise ReleaseConfigError("noise config must be a mapping")

        rules: List[NoiseRule] = []
        for suffix in data.get("suffixes") or []:
            rules.append(NoiseRule.suffix(str(suffix)))
        for pattern in data.get("patterns") or []:
            rules.append(NoiseRule.regex(str(pattern)))

        logger.debug("Loaded %d noise rule(s)", len(rules))
        return cls(rules)

    def merged(self, other: Optional["NoiseFilter"]) -> "NoiseFilter":
        """Filter matching anything either filter matches."""
        if other is None:
            return self
        return NoiseFilter(self.rules + other.rules)

    def is_noise(self, rel_path: str) -> bool:
        return any(rule.matches(rel_path) for rule in self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def __repr__(self) -> str:
        return f"NoiseFilter({list(self.rules)!r})"

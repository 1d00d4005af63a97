"""
Configuration loader for the release engine.

Settings come from (lowest to highest precedence): built-in defaults, an
optional YAML file, ``RELEASE_*`` environment variables, and command-line
overrides. The result is a frozen RunConfig passed to every component.
"""

import copy
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from ..core.exceptions import InvalidVersionError, ReleaseConfigError
from ..snapshot.noise import NoiseFilter
from ..versioning.manifest import DEFAULT_MANIFEST_FILENAME
from ..versioning.version import BumpKind, validate_label
from ..collaborators.git_handoff import DEFAULT_MESSAGE_TEMPLATE


logger = logging.getLogger(__name__)

ENV_OVERRIDES = {
    "RELEASE_WORKING_DIR": "paths.working_dir",
    "RELEASE_REPO_DIR": "paths.repo_dir",
    "RELEASE_TEMP_DIR": "paths.temp_dir",
    "RELEASE_PAC_PATH": "export.executable",
}


def _default_config() -> Dict[str, Any]:
    return {
        "solution": {
            "name": None,
            "managed": False,
        },
        "paths": {
            "working_dir": "solutions/{solution}",
            "repo_dir": ".",
            "temp_dir": None,
        },
        "export": {
            "executable": "pac",
            "export_command": None,
            "unpack_command": None,
        },
        "manifest": {
            "filename": DEFAULT_MANIFEST_FILENAME,
        },
        "noise": {
            "suffixes": ["*.msapp"],
            "patterns": [],
        },
        "mirror": {
            "preserve": [r"^\.git(/|$)"],
        },
        "snapshot": {
            "workers": 1,
        },
        "release": {
            "bump": "none",
            "prerelease": "",
        },
        "commit": {
            "enabled": True,
            "message": DEFAULT_MESSAGE_TEMPLATE,
            "tag": True,
            "push": False,
            "remote": "origin",
        },
    }


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


@dataclass(frozen=True)
class RunConfig:
    """
    Immutable settings for one release run.

    Built once by ReleaseConfig.to_run_config() and passed to the runner;
    nothing in a run reads global state.
    """
    solution_name: str
    managed: bool
    working_dir: Path
    repo_dir: Path
    temp_root: Optional[Path]
    manifest_filename: str
    noise_filter: NoiseFilter
    preserve_filter: NoiseFilter
    requested_bump: BumpKind = BumpKind.NONE
    prerelease: str = ""
    hash_workers: int = 1
    export_executable: str = "pac"
    export_command: Optional[Tuple[str, ...]] = None
    unpack_command: Optional[Tuple[str, ...]] = None
    commit_enabled: bool = True
    commit_message: str = DEFAULT_MESSAGE_TEMPLATE
    tag_enabled: bool = True
    push: bool = False
    remote: str = "origin"
    dry_run: bool = False


class ReleaseConfig:
    """
    Configuration for the release engine.

    Loads a YAML configuration file over built-in defaults.
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML config file (optional)
        """
        self.config_path = Path(config_path) if config_path else None
        self.config = _default_config()
        if self.config_path:
            _deep_merge(self.config, self._load_config())
        self._apply_env_overrides()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise ReleaseConfigError(f"Config file not found: {self.config_path}")

        logger.info("Loading config from: %s", self.config_path)

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ReleaseConfigError(f"Invalid YAML in {self.config_path}: {e}") from e

        if loaded is None:
            return {}
        if not isinstance(loaded, dict):
            raise ReleaseConfigError(f"Config file {self.config_path} must contain a mapping")
        return loaded

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides to loaded config."""
        for env_var, dotted in ENV_OVERRIDES.items():
            value = os.environ.get(env_var)
            if value:
                self.set(dotted, value)
                logger.debug("Config %s overridden by %s", dotted, env_var)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dotted key."""
        value: Any = self.config
        for k in key.split("."):
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
        return value if value is not None else default

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value by dotted key."""
        keys = key.split(".")
        section = self.config
        for k in keys[:-1]:
            section = section.setdefault(k, {})
        section[keys[-1]] = value

    def as_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self.config)

    def to_run_config(
        self,
        solution_name: Optional[str] = None,
        managed: Optional[bool] = None,
        working_dir: Optional[Path] = None,
        bump: Optional[str] = None,
        prerelease: Optional[str] = None,
        commit: Optional[bool] = None,
        tag: Optional[bool] = None,
        push: Optional[bool] = None,
        dry_run: bool = False,
    ) -> RunConfig:
        """
        Freeze the configuration for one run; non-None arguments win.

        Raises:
            ReleaseConfigError: Missing solution name, bad bump kind, bad
                prerelease label, noise pattern or worker count
        """
        name = solution_name or self.get("solution.name")
        if not name:
            raise ReleaseConfigError("A solution name is required (--solution or solution.name)")

        bump_text = (bump or self.get("release.bump", "none")).lower()
        try:
            requested = BumpKind(bump_text)
        except ValueError:
            choices = ", ".join(k.value for k in BumpKind)
            raise ReleaseConfigError(f"Unknown bump kind {bump_text!r} (expected one of: {choices})")

        workers = self.get("snapshot.workers", 1)
        if not isinstance(workers, int) or workers < 1:
            raise ReleaseConfigError(f"snapshot.workers must be a positive integer, got {workers!r}")

        label = str(self.get("release.prerelease", "") if prerelease is None else prerelease)
        if label:
            try:
                validate_label(label)
            except InvalidVersionError as e:
                raise ReleaseConfigError(f"Invalid prerelease label {label!r}: {e.reason}") from e

        wd_setting = working_dir or self.get("paths.working_dir")
        work_path = Path(str(wd_setting).format(solution=name))
        repo_dir = Path(self.get("paths.repo_dir", "."))
        if not work_path.is_absolute():
            work_path = repo_dir / work_path

        temp_dir = self.get("paths.temp_dir")
        export_command = self.get("export.export_command")
        unpack_command = self.get("export.unpack_command")

        return RunConfig(
            solution_name=name,
            managed=bool(self.get("solution.managed", False) if managed is None else managed),
            working_dir=work_path,
            repo_dir=repo_dir,
            temp_root=Path(temp_dir) if temp_dir else None,
            manifest_filename=self.get("manifest.filename", DEFAULT_MANIFEST_FILENAME),
            noise_filter=NoiseFilter.from_config(self.get("noise")),
            preserve_filter=NoiseFilter.from_config({"patterns": self.get("mirror.preserve", [])}),
            requested_bump=requested,
            prerelease=label,
            hash_workers=workers,
            export_executable=self.get("export.executable", "pac"),
            export_command=tuple(export_command) if export_command else None,
            unpack_command=tuple(unpack_command) if unpack_command else None,
            commit_enabled=bool(self.get("commit.enabled", True) if commit is None else commit),
            commit_message=self.get("commit.message", DEFAULT_MESSAGE_TEMPLATE),
            tag_enabled=bool(self.get("commit.tag", True) if tag is None else tag),
            push=bool(self.get("commit.push", False) if push is None else push),
            remote=self.get("commit.remote", "origin"),
            dry_run=dry_run,
        )

"""Configuration loading."""

from .config_loader import ReleaseConfig, RunConfig

__all__ = ["ReleaseConfig", "RunConfig"]

"""Release orchestration."""

from .release_runner import ReleaseRunner, ReleaseResult, ReleaseWorkspace, RunState

__all__ = ["ReleaseRunner", "ReleaseResult", "ReleaseWorkspace", "RunState"]

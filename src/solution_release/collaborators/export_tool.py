"""
Export/unpack collaborator.

Wraps the external CLI that exports a named solution to an archive and
unpacks that archive into a directory tree. Both calls block until the tool
exits; there is no internal timeout.
"""

import logging
import subprocess
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..core.exceptions import CollaboratorError

logger = logging.getLogger(__name__)

DEFAULT_EXECUTABLE = "pac"

DEFAULT_EXPORT_COMMAND = [
    "{executable}", "solution", "export",
    "--name", "{name}",
    "--path", "{archive}",
    "--managed", "{managed}",
    "--overwrite",
]

DEFAULT_UNPACK_COMMAND = [
    "{executable}", "solution", "unpack",
    "--zipfile", "{archive}",
    "--folder", "{folder}",
    "--packagetype", "{package_type}",
]

STDERR_TAIL_LINES = 20


def _tail(text: Optional[str], lines: int = STDERR_TAIL_LINES) -> str:
    if not text:
        return ""
    return "\n".join(text.strip().splitlines()[-lines:])


class ExportTool:
    """
    Runs the export and unpack commands.

    Command templates are argv lists; each element is formatted with
    ``executable``, ``name``, ``managed`` (true/false), ``package_type``
    (Managed/Unmanaged), ``archive`` and ``folder``.

    Args:
        executable: Program substituted for ``{executable}``
        export_command: Template for the export call
        unpack_command: Template for the unpack call
        runner: subprocess.run-compatible callable (injectable for tests)
    """

    def __init__(
        self,
        executable: str = DEFAULT_EXECUTABLE,
        export_command: Optional[Sequence[str]] = None,
        unpack_command: Optional[Sequence[str]] = None,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        self.executable = executable
        self.export_command = list(export_command or DEFAULT_EXPORT_COMMAND)
        self.unpack_command = list(unpack_command or DEFAULT_UNPACK_COMMAND)
        self.runner = runner

    def _render(self, template: Sequence[str], **values: str) -> List[str]:
        try:
            return [part.format(executable=self.executable, **values) for part in template]
        except (KeyError, IndexError) as e:
            raise CollaboratorError(f"Bad command template {list(template)!r}: unknown placeholder {e}")

    def _run(self, argv: List[str], what: str) -> None:
        logger.info("Running %s: %s", what, " ".join(argv))
        try:
            completed = self.runner(argv, capture_output=True, text=True, check=False)
        except FileNotFoundError as e:
            raise CollaboratorError(f"{what} failed: executable not found", command=argv, stderr=str(e)) from e
        except OSError as e:
            raise CollaboratorError(f"{what} failed to start", command=argv, stderr=str(e)) from e

        if completed.stdout:
            logger.debug("%s stdout:\n%s", what, completed.stdout.rstrip())

        if completed.returncode != 0:
            raise CollaboratorError(
                f"{what} failed",
                command=argv,
                exit_code=completed.returncode,
                stderr=_tail(completed.stderr) or _tail(completed.stdout),
            )

    def export(self, name: str, managed: bool, archive_path: Path) -> Path:
        """
        Export a solution to an archive.

        Raises:
            CollaboratorError: The tool exited non-zero or wrote no archive
        """
        archive_path = Path(archive_path)
        argv = self._render(
            self.export_command,
            name=name,
            managed=str(managed).lower(),
            package_type="Managed" if managed else "Unmanaged",
            archive=str(archive_path),
            folder="",
        )
        self._run(argv, "export")
        if not archive_path.is_file():
            raise CollaboratorError(f"export reported success but produced no archive at {archive_path}", command=argv)
        return archive_path

    def unpack(self, archive_path: Path, folder: Path, managed: bool = False) -> Path:
        """
        Unpack an exported archive into a folder.

        Raises:
            CollaboratorError: The tool exited non-zero
        """
        folder = Path(folder)
        argv = self._render(
            self.unpack_command,
            name="",
            managed=str(managed).lower(),
            package_type="Managed" if managed else "Unmanaged",
            archive=str(archive_path),
            folder=str(folder),
        )
        self._run(argv, "unpack")
        return folder

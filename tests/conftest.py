"""
Shared test fixtures and configuration for pytest.
"""

import subprocess
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


SOLUTION_XML = """<?xml version="1.0" encoding="utf-8"?>
<ImportExportXml version="9.2.24012.196" SolutionPackageVersion="9.2" languagecode="1033">
  <SolutionManifest>
    <UniqueName>Contoso</UniqueName>
    <Version>{version}</Version>
    <Managed>0</Managed>
  </SolutionManifest>
</ImportExportXml>
"""


def write_tree(root: Path, files: Dict[str, str]) -> Path:
    """Create files under root from a {relative_path: text} mapping."""
    root.mkdir(parents=True, exist_ok=True)
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


class FakeProcessRunner:
    """
    Stand-in for subprocess.run.

    Records every argv and delegates to an optional side-effect callable,
    which returns an exit code (default 0).
    """

    def __init__(self, handler: Optional[Callable[[List[str]], int]] = None, stderr: str = ""):
        self.handler = handler
        self.stderr = stderr
        self.calls: List[List[str]] = []

    def __call__(self, argv, capture_output=True, text=True, check=False):
        self.calls.append(list(argv))
        code = self.handler(list(argv)) if self.handler else 0
        return subprocess.CompletedProcess(argv, code or 0, stdout="", stderr=self.stderr if code else "")


# ============================================================================
# Pytest hooks
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def tree_factory(tmp_path: Path):
    """Fixture returning a helper that builds a named tree under tmp_path."""
    def _make(name: str, files: Dict[str, str]) -> Path:
        return write_tree(tmp_path / name, files)
    return _make


@pytest.fixture
def process_runner():
    """Fixture providing the FakeProcessRunner class."""
    return FakeProcessRunner


@pytest.fixture
def solution_xml():
    """Fixture rendering a minimal Solution.xml for a version string."""
    def _render(version: str) -> str:
        return SOLUTION_XML.format(version=version)
    return _render

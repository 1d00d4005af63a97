"""
Content-addressed snapshots of directory trees.

A snapshot maps each regular file's root-relative, forward-slash path to
the SHA-256 digest of its bytes. Comparing two snapshots is how the engine
decides whether an export really changed; timestamps and version-control
status are never consulted.
"""

import hashlib
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from ..core.exceptions import SnapshotIOError
from ..utils.retry import RetryConfig, retry_with_backoff
from .noise import NoiseFilter

logger = logging.getLogger(__name__)

HASH_CHUNK_SIZE = 1024 * 1024  # 1 MiB

# One retry for files still locked by the export tool.
DEFAULT_READ_RETRY = RetryConfig(max_attempts=2, initial_delay_ms=250.0)


class ContentSnapshot(Mapping[str, str]):
    """
    Immutable mapping of relative path -> content digest.

    Attributes:
        root: Directory the snapshot was built from
    """

    def __init__(self, entries: Mapping[str, str], root: Optional[Path] = None):
        self._entries = MappingProxyType(dict(entries))
        self.root = Path(root) if root is not None else None

    def __getitem__(self, key: str) -> str:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"ContentSnapshot(root={self.root}, files={len(self)})"


def hash_file(path: Path) -> str:
    """Stream a file through SHA-256 and return the hex digest."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        while True:
            chunk = f.read(HASH_CHUNK_SIZE)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()


def relative_key(path: Path, root: Path) -> str:
    """Root-relative path with forward slashes."""
    return path.relative_to(root).as_posix()


def discover_files(root: Path) -> List[Path]:
    """All regular files under root, sorted for stable logging."""
    return sorted(p for p in root.rglob("*") if p.is_file())


def _hash_with_retry(path: Path, rel: str, retry_config: RetryConfig) -> str:
    result = retry_with_backoff(
        lambda: hash_file(path),
        retry_config,
        retry_on=(OSError,),
        operation_name=f"hash {rel}",
    )
    if not result.success:
        raise SnapshotIOError(rel, result.error)
    return result.result


def build_snapshot(
    root: Path,
    noise_filter: Optional[NoiseFilter] = None,
    workers: int = 1,
    retry_config: Optional[RetryConfig] = None,
) -> ContentSnapshot:
    """
    Build a content snapshot of a directory tree.

    A root that does not exist yields an empty snapshot: that is the first
    run, before any working tree has been committed.

    Args:
        root: Directory to walk
        noise_filter: Paths matching this filter are omitted (None keeps all)
        workers: Hashing threads; 1 hashes sequentially
        retry_config: Retry policy for unreadable files

    Returns:
        ContentSnapshot of the tree

    Raises:
        SnapshotIOError: A file stayed unreadable after one retry
    """
    root = Path(root)
    retry_config = retry_config or DEFAULT_READ_RETRY

    if not root.exists():
        logger.info("Snapshot root %s does not exist; using empty snapshot", root)
        return ContentSnapshot({}, root)
    if not root.is_dir():
        raise SnapshotIOError(str(root), NotADirectoryError(str(root)))

    try:
        files = discover_files(root)
    except OSError as e:
        raise SnapshotIOError(str(root), e) from e

    tasks: List[Tuple[str, Path]] = []
    skipped = 0
    for path in files:
        rel = relative_key(path, root)
        if noise_filter is not None and noise_filter.is_noise(rel):
            logger.debug("Noise: %s", rel)
            skipped += 1
            continue
        tasks.append((rel, path))

    entries: Dict[str, str] = {}
    if workers <= 1:
        for rel, path in tasks:
            entries[rel] = _hash_with_retry(path, rel, retry_config)
    else:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                rel: pool.submit(_hash_with_retry, path, rel, retry_config)
                for rel, path in tasks
            }
            for rel, future in futures.items():
                entries[rel] = future.result()

    logger.info(
        "Snapshot of %s: %d file(s), %d noise file(s) skipped",
        root, len(entries), skipped,
    )
    return ContentSnapshot(entries, root)

"""Symlink-safe tree walking, snapshots and drift reports."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from .models import DIR, UNREADABLE, FileMeta, compute_fingerprint
from .paths import to_key


logger = logging.getLogger(__name__)


def _is_link(entry: os.DirEntry) -> bool:
    try:
        return entry.is_symlink()
    except OSError:
        return True


def _is_dir(entry: os.DirEntry) -> bool:
    try:
        return entry.is_dir(follow_symlinks=False)
    except OSError:
        return False


def iter_directories(start: Path) -> Iterator[Path]:
    """
    Lazily yield start and every descendant directory.

    Symbolic links are never followed. Directories that cannot be listed
    are logged and skipped. Calling the function again restarts the walk.

    Args:
        start: Directory to walk

    Yields:
        Absolute directory paths, parents before children
    """
    stack = [Path(start)]
    while stack:
        current = stack.pop()
        yield current
        try:
            with os.scandir(current) as it:
                children = [
                    Path(entry.path)
                    for entry in it
                    if not _is_link(entry) and _is_dir(entry)
                ]
        except OSError as e:
            logger.debug(f"Cannot list {current}: {e}")
            continue
        stack.extend(sorted(children, reverse=True))


def iter_entries(root: Path, start: Optional[Path] = None) -> Iterator[Tuple[str, Path, bool]]:
    """
    Lazily yield every non-symlink descendant of start.

    Args:
        root: Monitored root used to build keys
        start: Directory to walk (defaults to root)

    Yields:
        (key, absolute path, is_directory) tuples
    """
    for directory in iter_directories(start or root):
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError:
            continue
        for entry in entries:
            if _is_link(entry):
                continue
            path = Path(entry.path)
            key = to_key(root, path)
            if not key:
                continue
            yield key, path, _is_dir(entry)


def snapshot(
    root: Path,
    algorithm: str = "sha256",
    chunk_size: int = 65536,
) -> Dict[str, FileMeta]:
    """
    Build a key -> FileMeta snapshot of everything below root.

    Args:
        root: Directory to scan
        algorithm: hashlib algorithm for file fingerprints
        chunk_size: Read size used while hashing

    Returns:
        Mapping of root-relative keys to FileMeta
    """
    root = Path(os.path.normpath(os.path.abspath(root)))
    result: Dict[str, FileMeta] = {}

    for key, path, is_dir in iter_entries(root):
        if is_dir:
            result[key] = FileMeta.directory()
            continue
        try:
            stat = path.stat()
            size, mtime_ms = stat.st_size, int(stat.st_mtime * 1000)
        except OSError:
            size, mtime_ms = 0, 0
        fingerprint = compute_fingerprint(path, algorithm, chunk_size)
        if fingerprint == UNREADABLE:
            logger.debug(f"Unreadable during scan: {key}")
        result[key] = FileMeta(size, mtime_ms, fingerprint)

    return result


def fingerprints(entries: Mapping[str, FileMeta]) -> Dict[str, str]:
    """Reduce a snapshot to key -> fingerprint."""
    return {key: meta.fingerprint for key, meta in entries.items()}


class DriftKind:
    NEW_FILE = "NEW FILE"
    NEW_FOLDER = "NEW FOLDER"
    DELETED_FILE = "DELETED FILE"
    DELETED_FOLDER = "DELETED FOLDER"
    MODIFIED = "MODIFIED"
    TYPE_CHANGED = "TYPE CHANGED"
    SKIPPED = "SKIPPED"


@dataclass(frozen=True)
class DriftEntry:
    kind: str
    path: str


@dataclass
class DriftReport:
    """Differences between a baseline and an on-disk snapshot."""
    entries: List[DriftEntry] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def __bool__(self) -> bool:
        return bool(self.entries)

    @property
    def clean(self) -> bool:
        return not self.entries

    def paths(self, kind: str) -> List[str]:
        return [e.path for e in self.entries if e.kind == kind]

    def log(self, target: logging.Logger, ok_message: str) -> None:
        """Log every entry, or ok_message when there is nothing to report."""
        if self.clean:
            target.info(f"[OK] {ok_message}")
            return
        for entry in self.entries:
            if entry.kind == DriftKind.SKIPPED:
                target.warning(f"[SKIPPED] {entry.path} (unreadable)")
            else:
                target.info(f"[{entry.kind}] {entry.path}")


def diff(
    baseline: Mapping[str, FileMeta],
    current: Mapping[str, FileMeta],
    compare_metadata: bool = False,
) -> DriftReport:
    """
    Compare a baseline with a snapshot.

    Args:
        baseline: Trusted reference entries
        current: Entries scanned from disk
        compare_metadata: Also treat size/mtime differences as MODIFIED

    Returns:
        DriftReport with entries ordered by path
    """
    entries: List[DriftEntry] = []

    for key in sorted(baseline):
        old = baseline[key]
        new = current.get(key)

        if new is None:
            kind = DriftKind.DELETED_FOLDER if old.is_dir else DriftKind.DELETED_FILE
            entries.append(DriftEntry(kind, key))
            continue

        if old.is_dir != new.is_dir:
            entries.append(DriftEntry(DriftKind.TYPE_CHANGED, key))
            continue

        if old.is_dir:
            continue

        if new.fingerprint == UNREADABLE:
            entries.append(DriftEntry(DriftKind.SKIPPED, key))
            continue

        changed = old.fingerprint != new.fingerprint
        if compare_metadata:
            changed = (
                changed
                or old.size != new.size
                or old.last_modified_ms != new.last_modified_ms
            )
        if changed:
            entries.append(DriftEntry(DriftKind.MODIFIED, key))

    for key in sorted(current):
        if key not in baseline:
            new = current[key]
            kind = DriftKind.NEW_FOLDER if new.fingerprint == DIR else DriftKind.NEW_FILE
            entries.append(DriftEntry(kind, key))

    return DriftReport(entries)

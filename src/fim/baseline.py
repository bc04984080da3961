"""Persisted baseline store and the one-shot baseline/integrity operations."""

import hashlib
import logging
import os
from pathlib import Path
from typing import Dict, Mapping, Optional

from .config import MonitorConfig
from .exceptions import BaselineInUseError, BaselineNotFoundError, RootNotFoundError
from .models import FileMeta
from .scanner import DriftReport, diff, fingerprints, snapshot


logger = logging.getLogger(__name__)


def _root_digest(root: Path) -> str:
    return hashlib.sha256(str(root).encode("utf-8")).hexdigest()


def _pid_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def resolve_root(root: Path) -> Path:
    """
    Canonicalize a monitored root.

    Raises:
        RootNotFoundError: If the root is missing or not a directory
    """
    root = Path(root).expanduser()
    if not root.exists():
        raise RootNotFoundError(f"Root folder does not exist: {root}")
    if not root.is_dir():
        raise RootNotFoundError(f"Root path is not a directory: {root}")
    return root.resolve()


class BaselineStore:
    """
    Line-oriented baseline file for one monitored root.

    Each line is ``relativePath|size|lastModifiedMillis|fingerprint``.
    The file lives in the configured baseline directory and is named after
    a digest of the root path so that several roots can coexist.
    """

    def __init__(self, root: Path, directory: Optional[Path] = None):
        """
        Initialize the store.

        Args:
            root: Canonical monitored root
            directory: Directory holding baseline files (default ~/.fim)
        """
        self.root = Path(root)
        self.directory = Path(directory) if directory else MonitorConfig().baseline_dir
        self.path = self.directory / f"baseline_{_root_digest(self.root)}.db"
        self.lock_path = self.path.with_suffix(".lock")

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> Dict[str, FileMeta]:
        """
        Load all baseline entries.

        Malformed lines (wrong field count, unparseable numbers) are skipped.

        Returns:
            Mapping of relative paths to FileMeta

        Raises:
            BaselineNotFoundError: If no baseline exists for the root
        """
        if not self.exists():
            raise BaselineNotFoundError(
                f"Baseline not found for {self.root}. Create baseline first."
            )

        entries: Dict[str, FileMeta] = {}
        skipped = 0
        with open(self.path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.rstrip("\r\n")
                if not line:
                    continue
                parts = line.rsplit("|", 3)
                if len(parts) != 4 or not parts[0]:
                    skipped += 1
                    continue
                try:
                    meta = FileMeta(int(parts[1]), int(parts[2]), parts[3])
                except ValueError:
                    skipped += 1
                    continue
                key = parts[0]
                if os.sep != "/":
                    key = key.replace(os.sep, "/")
                entries[key] = meta

        if skipped:
            logger.warning(f"Skipped {skipped} malformed baseline line(s) in {self.path}")
        return entries

    def load_fingerprints(self) -> Dict[str, str]:
        """Load the baseline reduced to path -> fingerprint."""
        return fingerprints(self.load())

    def persist(self, entries: Mapping[str, FileMeta], force: bool = False) -> None:
        """
        Atomically write the baseline file.

        Args:
            entries: Mapping of relative paths to FileMeta
            force: Write even if a running session holds the baseline

        Raises:
            BaselineInUseError: If a running session has loaded this baseline
        """
        if self.is_held() and not force:
            raise BaselineInUseError(
                f"Baseline {self.path} is in use by a running monitor session"
            )

        self.directory.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8", newline="\n") as f:
            for key in sorted(entries):
                meta = entries[key]
                f.write(f"{key}|{meta.size}|{meta.last_modified_ms}|{meta.fingerprint}\n")
        os.replace(tmp_path, self.path)
        logger.debug(f"Persisted {len(entries)} baseline entries to {self.path}")

    def is_held(self) -> bool:
        """
        Check whether a live session holds the baseline.

        A lock left behind by a process that no longer exists is removed.
        """
        try:
            pid = int(self.lock_path.read_text(encoding="utf-8").strip())
        except FileNotFoundError:
            return False
        except (OSError, ValueError):
            return True

        if _pid_alive(pid):
            return True
        logger.warning(f"Removing stale baseline lock {self.lock_path} (pid {pid})")
        self.release()
        return False

    def acquire(self) -> None:
        """Mark the baseline as loaded by a running session."""
        self.directory.mkdir(parents=True, exist_ok=True)
        self.lock_path.write_text(str(os.getpid()), encoding="utf-8")

    def release(self) -> None:
        try:
            self.lock_path.unlink()
        except FileNotFoundError:
            pass


def create_baseline(
    root: Path,
    config: Optional[MonitorConfig] = None,
    force: bool = False,
) -> Dict[str, FileMeta]:
    """
    Scan root and write (or overwrite) its baseline.

    Args:
        root: Directory to baseline
        config: Monitor configuration
        force: Overwrite even if a running session holds the baseline

    Returns:
        The persisted entries
    """
    config = config or MonitorConfig()
    root = resolve_root(root)
    entries = snapshot(root, config.hash_algorithm, config.chunk_size)
    BaselineStore(root, config.baseline_dir).persist(entries, force=force)
    logger.info(f"Baseline created for {root}: {len(entries)} entries")
    return entries


def check_integrity(root: Path, config: Optional[MonitorConfig] = None) -> DriftReport:
    """
    Compare the current tree against its persisted baseline.

    Size and modification time differences count as MODIFIED, in addition
    to fingerprint differences.

    Raises:
        BaselineNotFoundError: If no baseline exists for the root
    """
    config = config or MonitorConfig()
    root = resolve_root(root)
    baseline = BaselineStore(root, config.baseline_dir).load()
    current = snapshot(root, config.hash_algorithm, config.chunk_size)
    report = diff(baseline, current, compare_metadata=True)
    report.log(logger, "No changes detected.")
    return report

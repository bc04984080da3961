"""Data models for the integrity monitor package."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional
import hashlib
import time


DIR = "DIR"
UNREADABLE = "UNREADABLE"


class ChangeType(Enum):
    """Semantic changes emitted by the reconciliation engine."""
    NEW_FILE = "new_file"
    NEW_FOLDER = "new_folder"
    MODIFIED = "modified"
    RESTORED = "restored"
    DELETED_FILE = "deleted_file"
    DELETED_FOLDER = "deleted_folder"
    RENAMED_FILE = "renamed_file"
    MOVED_FILE = "moved_file"
    RENAMED_FOLDER = "renamed_folder"

    @property
    def label(self) -> str:
        """Human readable tag used in log output, e.g. ``NEW FILE``."""
        return self.name.replace("_", " ")

    @property
    def has_old_path(self) -> bool:
        return self in _RELOCATIONS


_RELOCATIONS = frozenset({
    ChangeType.RENAMED_FILE,
    ChangeType.MOVED_FILE,
    ChangeType.RENAMED_FOLDER,
})


@dataclass(frozen=True)
class ChangeEvent:
    """
    A classified change relative to the runtime state.

    Attributes:
        change_type: The semantic change
        path: Current root-relative path (POSIX separators)
        absolute_path: Absolute path of the affected node
        old_path: Previous relative path, only for renamed/moved types
        is_directory: Whether the node is a directory
        timestamp: Unix timestamp when the change was classified
    """
    change_type: ChangeType
    path: str
    absolute_path: Path
    old_path: Optional[str] = None
    is_directory: bool = False
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        if not self.absolute_path.is_absolute():
            raise ValueError(f"absolute_path must be absolute: {self.absolute_path}")
        if self.change_type.has_old_path and self.old_path is None:
            raise ValueError(f"{self.change_type.name} requires old_path")
        if not self.change_type.has_old_path and self.old_path is not None:
            raise ValueError(f"{self.change_type.name} must not carry old_path")

    def describe(self) -> str:
        """One-line description, e.g. ``[RENAMED FILE] a.txt -> b.txt``."""
        if self.old_path is not None:
            return f"[{self.change_type.label}] {self.old_path} -> {self.path}"
        return f"[{self.change_type.label}] {self.path}"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "change_type": self.change_type.value,
            "path": self.path,
            "old_path": self.old_path,
            "absolute_path": str(self.absolute_path),
            "is_directory": self.is_directory,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChangeEvent":
        """Create from dictionary."""
        return cls(
            change_type=ChangeType(data["change_type"]),
            path=data["path"],
            old_path=data.get("old_path"),
            absolute_path=Path(data["absolute_path"]),
            is_directory=data.get("is_directory", False),
            timestamp=data.get("timestamp", time.time()),
        )


@dataclass
class RawNotification:
    """
    Raw notification from a directory watch before reconciliation.

    Attributes:
        kind: One of ``created``, ``deleted``, ``modified``
        path: Absolute path the notification refers to
        is_directory: Whether the watch reported a directory
        timestamp: Unix timestamp when the notification was received
    """
    kind: str
    path: Path
    is_directory: bool = False
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class FileMeta:
    """
    Baseline entry for a single node.

    Directories are recorded with size 0, mtime 0 and the DIR sentinel.
    """
    size: int
    last_modified_ms: int
    fingerprint: str

    @property
    def is_dir(self) -> bool:
        return self.fingerprint == DIR

    @classmethod
    def directory(cls) -> "FileMeta":
        return cls(0, 0, DIR)


def compute_fingerprint(
    path: Path,
    algorithm: str = "sha256",
    chunk_size: int = 65536,
) -> str:
    """
    Compute the fingerprint of a filesystem node.

    Args:
        path: Path to the file or directory
        algorithm: hashlib algorithm name
        chunk_size: Number of bytes read per iteration

    Returns:
        Hex digest of the file contents, DIR for directories, or
        UNREADABLE if the file cannot be read
    """
    if path.is_dir():
        return DIR

    try:
        hasher = hashlib.new(algorithm)
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(chunk_size), b""):
                hasher.update(chunk)
        return hasher.hexdigest()
    except OSError:
        return UNREADABLE

"""
File Integrity Monitor Package

Builds a cryptographic baseline of a directory tree and classifies live
filesystem notifications into semantic changes relative to it.

Features:
- Baseline creation and one-shot integrity checks
- Startup drift report against the baseline
- Real-time events: NEW_FILE, NEW_FOLDER, MODIFIED, RESTORED, DELETED_FILE,
  DELETED_FOLDER, RENAMED_FILE, MOVED_FILE, RENAMED_FOLDER
- Write debouncing, delayed delete verification, rename/move correlation
- Per-directory watches with seeding of freshly created folders
"""

from .models import (
    DIR,
    UNREADABLE,
    ChangeType,
    ChangeEvent,
    RawNotification,
    FileMeta,
    compute_fingerprint,
)

from .config import MonitorConfig

from .exceptions import (
    FIMError,
    RootNotFoundError,
    BaselineError,
    BaselineNotFoundError,
    BaselineInUseError,
    SessionError,
    WatchClosedError,
)

from .scanner import DriftEntry, DriftKind, DriftReport, diff, fingerprints, snapshot
from .baseline import BaselineStore, check_integrity, create_baseline
from .state import RuntimeState
from .correlator import RenameCorrelator, RenameSource, choose_candidate
from .bus import AlertBus, log_listener
from .registrar import WatchRegistrar, NotificationHandler
from .engine import ReconciliationEngine
from .session import MonitorSession


__all__ = [
    # Models
    "DIR",
    "UNREADABLE",
    "ChangeType",
    "ChangeEvent",
    "RawNotification",
    "FileMeta",
    "compute_fingerprint",
    # Config
    "MonitorConfig",
    # Exceptions
    "FIMError",
    "RootNotFoundError",
    "BaselineError",
    "BaselineNotFoundError",
    "BaselineInUseError",
    "SessionError",
    "WatchClosedError",
    # Scanning and baselines
    "DriftEntry",
    "DriftKind",
    "DriftReport",
    "diff",
    "fingerprints",
    "snapshot",
    "BaselineStore",
    "check_integrity",
    "create_baseline",
    # Components
    "RuntimeState",
    "RenameCorrelator",
    "RenameSource",
    "choose_candidate",
    "AlertBus",
    "log_listener",
    "WatchRegistrar",
    "NotificationHandler",
    "ReconciliationEngine",
    # Session
    "MonitorSession",
]

__version__ = "0.1.0"

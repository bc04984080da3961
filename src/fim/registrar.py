"""Per-directory watch subscriptions using the watchdog library."""

import logging
import os
import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional

from watchdog.events import (
    FileSystemEventHandler,
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
)
from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch

from .config import MonitorConfig
from .models import RawNotification
from .scanner import iter_directories


logger = logging.getLogger(__name__)


class NotificationHandler(FileSystemEventHandler):
    """Handler that converts watchdog events to RawNotification."""

    def __init__(self, callback: Callable[[RawNotification], None]):
        super().__init__()
        self.callback = callback

    def _emit(self, kind: str, path, is_directory: bool) -> None:
        self.callback(RawNotification(
            kind=kind,
            path=Path(os.fsdecode(path)),
            is_directory=is_directory,
            timestamp=time.time(),
        ))

    def on_created(self, event):
        self._emit("created", event.src_path, isinstance(event, DirCreatedEvent))

    def on_deleted(self, event):
        self._emit("deleted", event.src_path, isinstance(event, DirDeletedEvent))

    def on_modified(self, event):
        self._emit("modified", event.src_path, isinstance(event, DirModifiedEvent))

    def on_moved(self, event):
        # Report moves as delete + create so they are correlated like any
        # other disappearance/appearance pair.
        is_dir = isinstance(event, DirMovedEvent)
        self._emit("deleted", event.src_path, is_dir)
        if event.dest_path:
            self._emit("created", event.dest_path, is_dir)


class WatchRegistrar:
    """
    Owns one watchdog observer and a non-recursive watch per directory.

    The subscription set only grows while the registrar is open; close()
    releases every watch at once.
    """

    def __init__(self, root: Path, config: Optional[MonitorConfig] = None):
        """
        Initialize the registrar.

        Args:
            root: Canonical monitored root
            config: Monitor configuration
        """
        self.root = Path(root)
        self.config = config or MonitorConfig()
        self._observer: Optional[Observer] = None
        self._handler: Optional[NotificationHandler] = None
        self._watches: Dict[Path, ObservedWatch] = {}
        self._lock = threading.Lock()
        self._closed = False

    def start(self, callback: Callable[[RawNotification], None]) -> int:
        """
        Start the observer and subscribe to the whole tree.

        Args:
            callback: Receives every raw notification (called on watch threads)

        Returns:
            Number of directories subscribed
        """
        with self._lock:
            if self._observer is not None:
                raise RuntimeError("WatchRegistrar already started")
            if self._closed:
                return 0
            self._handler = NotificationHandler(callback)
            self._observer = Observer()
            self._observer.daemon = True
            self._observer.start()

        count = self.register_tree(self.root)
        logger.info(f"Watching {count} director{'y' if count == 1 else 'ies'} under {self.root}")
        return count

    def register(self, directory: Path) -> bool:
        """
        Subscribe to a single directory.

        Failures (directory gone, permission denied, watch limits) are
        logged and reported as False.

        Returns:
            True if a new subscription was created
        """
        directory = Path(directory)
        with self._lock:
            if self._closed or self._observer is None:
                return False
            if directory in self._watches:
                return False
            try:
                watch = self._observer.schedule(self._handler, str(directory), recursive=False)
            except OSError as e:
                logger.warning(f"Cannot watch {directory}: {e}")
                return False
            self._watches[directory] = watch
            return True

    def register_tree(self, start: Path) -> int:
        """
        Subscribe to start and every descendant directory, skipping symlinks.

        Returns:
            Number of new subscriptions
        """
        count = 0
        for directory in iter_directories(start):
            if self._closed:
                break
            if self.register(directory):
                count += 1
        return count

    def is_registered(self, directory: Path) -> bool:
        with self._lock:
            return Path(directory) in self._watches

    def watched(self) -> List[Path]:
        with self._lock:
            return sorted(self._watches)

    @property
    def is_alive(self) -> bool:
        observer = self._observer
        return observer is not None and observer.is_alive()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self, timeout: float = 5.0) -> None:
        """Release every subscription and stop the observer. Safe to call twice."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            observer = self._observer
            self._watches.clear()

        if observer is None:
            return
        try:
            observer.unschedule_all()
        except Exception as e:
            logger.debug(f"Error releasing watches: {e}")
        observer.stop()
        if observer is not threading.current_thread():
            observer.join(timeout=timeout)

    def __len__(self) -> int:
        with self._lock:
            return len(self._watches)

"""Real-time reconciliation of raw watch notifications into semantic changes.

The engine owns the runtime state and every pending tracker. All of them
are mutated only by the thread that calls handle()/sweep(), normally the
session worker running run(). Watch threads only call submit().
"""

import logging
import os
import queue
import threading
import time
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Dict, Mapping, Optional

from .config import MonitorConfig
from .correlator import RenameCorrelator
from .exceptions import WatchClosedError
from .models import DIR, UNREADABLE, ChangeEvent, ChangeType, RawNotification, compute_fingerprint
from .paths import is_transient, is_under, name_of, parent_of, rebase, to_key, to_path
from .registrar import WatchRegistrar
from .scanner import iter_entries
from .state import RuntimeState


logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """
    Turns a coalesced, order-ambiguous notification stream into ChangeEvents.

    Pending trackers:
    - modifications: key -> last write time, hashed once quiet for stability_ms
    - deletions: key -> delete time, re-checked on disk after verify_ms
    - file renames: deleted files kept as rename/move candidates
    - directory renames: deleted folders kept as rename candidates; a folder
      that is not claimed within the rename window is reported deleted
    """

    def __init__(
        self,
        root: Path,
        baseline: Mapping[str, str],
        initial_state: Mapping[str, str],
        bus,
        config: Optional[MonitorConfig] = None,
        registrar: Optional[WatchRegistrar] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the engine.

        Args:
            root: Canonical monitored root
            baseline: Trusted key -> fingerprint mapping (never mutated)
            initial_state: Key -> fingerprint snapshot of the tree right now
            bus: Alert channel exposing publish(ChangeEvent)
            config: Monitor configuration
            registrar: Used to subscribe to directories that appear later
            clock: Monotonic time source for all windows
        """
        self.root = Path(root)
        self.config = config or MonitorConfig()
        self.bus = bus
        self.registrar = registrar
        self._clock = clock

        self._baseline = MappingProxyType(dict(baseline))
        self.state = RuntimeState(initial_state)

        self._pending_modifications: Dict[str, float] = {}
        self._pending_deletions: Dict[str, float] = {}
        self._file_renames = RenameCorrelator(self.config.rename_window_ms)
        self._dir_renames = RenameCorrelator(self.config.rename_window_ms)

        self._inbox: "queue.Queue[RawNotification]" = queue.Queue(maxsize=self.config.queue_size)
        self._root_gone = False
        self.dropped = 0
        self._dropped_lock = threading.Lock()
        self.emitted = 0

    @property
    def baseline(self) -> Mapping[str, str]:
        return self._baseline

    def pending_counts(self) -> Dict[str, int]:
        return {
            "modifications": len(self._pending_modifications),
            "deletions": len(self._pending_deletions),
            "file_renames": len(self._file_renames),
            "folder_renames": len(self._dir_renames),
        }

    # ----- input -------------------------------------------------------

    def submit(self, raw: RawNotification) -> None:
        """Queue a notification from a watch thread. Overflow is dropped."""
        try:
            self._inbox.put_nowait(raw)
        except queue.Full:
            with self._dropped_lock:
                self.dropped += 1
            logger.debug(f"Notification queue full, dropped {raw.kind} {raw.path}")

    def handle(self, raw: RawNotification, now: Optional[float] = None) -> None:
        """
        Apply one raw notification to the pending trackers.

        Args:
            raw: The notification
            now: Current time on the engine clock (defaults to the clock)
        """
        now = self._clock() if now is None else now

        key = to_key(self.root, raw.path)
        if key is None:
            logger.debug(f"Ignoring notification outside root: {raw.path}")
            return
        if key == "":
            if raw.kind == "deleted":
                self._root_gone = True
            return

        path = to_path(self.root, key)

        if raw.kind == "created":
            if path.is_symlink():
                return
            created_dir = raw.is_directory or path.is_dir()
            if created_dir:
                self._on_directory_created(key, now)
                return
            if self.state.is_dir(key):
                # A file took the place of a folder that is still pending.
                if key in self._dir_renames:
                    self._dir_renames.discard(key)
                self._finish_folder_delete(key)
        elif self.state.is_dir(key) or (raw.is_directory and raw.kind == "modified"):
            if raw.kind == "deleted":
                self._dir_renames.add(key, DIR, now)
            return

        if is_transient(name_of(key), self.config.transient_prefixes, self.config.transient_suffixes):
            return

        if raw.kind == "deleted":
            self._on_file_deleted(key, now)
        elif raw.kind in ("created", "modified"):
            self._on_file_written(key, path, now)

    def _on_directory_created(self, key: str, now: float) -> None:
        if key in self._dir_renames:
            # Deleted and recreated in place: silent only if the old contents came back.
            self._dir_renames.discard(key)
            self._replace_stale_folder(key)
        else:
            old = self._dir_renames.match(DIR, parent_of(key), now, exclude=key, same_parent_only=True)
            if old is not None:
                self._dir_renames.discard(old)
                self._remap_folder(old, key)
                self._emit(ChangeType.RENAMED_FOLDER, key, old_path=old, is_directory=True)
            elif not self.state.is_dir(key):
                self.state.set(key, DIR)
                self._emit(ChangeType.NEW_FOLDER, key, is_directory=True)

        self._register_and_seed(key, now)

    def _on_file_deleted(self, key: str, now: float) -> None:
        if self.state.has_descendants(key):
            self._dir_renames.add(key, DIR, now)
            return

        fingerprint = self.state.get(key)
        if fingerprint is not None and fingerprint not in (DIR, UNREADABLE):
            self._file_renames.add(key, fingerprint, now)
        self._pending_deletions[key] = now

    def _on_file_written(self, key: str, path: Path, now: float) -> None:
        if not path.exists() or path.is_symlink():
            return
        self._pending_deletions.pop(key, None)
        self._file_renames.discard(key)
        self._pending_modifications[key] = now

    def _register_and_seed(self, key: str, now: float) -> None:
        """
        Subscribe to a new folder and pick up entries created before the
        subscription took effect.
        """
        directory = to_path(self.root, key)
        if self.registrar is not None:
            self.registrar.register_tree(directory)

        for child, _, is_dir in iter_entries(self.root, directory):
            if is_dir:
                if not self.state.is_dir(child):
                    self.state.set(child, DIR)
                    self._emit(ChangeType.NEW_FOLDER, child, is_directory=True)
            elif child not in self.state and not is_transient(
                name_of(child), self.config.transient_prefixes, self.config.transient_suffixes
            ):
                self._pending_modifications.setdefault(child, now)

    def _replace_stale_folder(self, key: str) -> bool:
        """
        Report a folder whose recorded contents are no longer on disk as
        deleted and then new again. Entries still present are re-seeded by
        the caller.

        Returns:
            True if the folder was replaced
        """
        missing = [
            child for child in self.state.descendants(key)
            if not os.path.lexists(to_path(self.root, child))
        ]
        if not missing:
            return False
        self._finish_folder_delete(key)
        self.state.set(key, DIR)
        self._emit(ChangeType.NEW_FOLDER, key, is_directory=True)
        return True

    def _remap_folder(self, old: str, new: str) -> None:
        count = self.state.remap_subtree(old, new)
        logger.debug(f"Remapped {count} entries from {old} to {new}")

        for tracker in (self._pending_modifications, self._pending_deletions):
            for key in [k for k in tracker if is_under(k, old)]:
                tracker[rebase(key, old, new)] = tracker.pop(key)
        for source in [p for p in self._file_renames.paths() if is_under(p, old)]:
            self._file_renames.discard(source)

    # ----- sweep -------------------------------------------------------

    def sweep(self, now: Optional[float] = None) -> None:
        """
        Resolve pending entries whose windows have elapsed.

        Args:
            now: Current time on the engine clock (defaults to the clock)
        """
        now = self._clock() if now is None else now
        stability = self.config.stability_ms / 1000.0
        verify = self.config.verify_ms / 1000.0

        for key, since in sorted(self._pending_modifications.items(), key=lambda kv: (kv[1], kv[0])):
            if now - since < stability:
                continue
            del self._pending_modifications[key]
            self._settle_modification(key, now)

        for key, since in sorted(self._pending_deletions.items(), key=lambda kv: (kv[1], kv[0])):
            if now - since < verify:
                continue
            if self._pending_modifications and self._file_renames.is_live(key, now):
                # A pending write may still claim this path as its rename source.
                continue
            del self._pending_deletions[key]
            self._file_renames.discard(key)
            if not to_path(self.root, key).exists() and key in self.state:
                self.state.remove(key)
                self._emit(ChangeType.DELETED_FILE, key)

        self._file_renames.expire(now)

        for source in self._dir_renames.expire(now):
            if not to_path(self.root, source.path).is_dir():
                self._finish_folder_delete(source.path)
            elif self._replace_stale_folder(source.path):
                self._register_and_seed(source.path, now)

    def _settle_modification(self, key: str, now: float) -> None:
        path = to_path(self.root, key)
        if path.is_symlink() or not path.is_file():
            return

        fingerprint = compute_fingerprint(path, self.config.hash_algorithm, self.config.chunk_size)
        if fingerprint == UNREADABLE:
            logger.warning(f"[SKIPPED] {key} (unreadable)")
        else:
            old = self._file_renames.match(fingerprint, parent_of(key), now, exclude=key)
            if old is not None:
                self._file_renames.discard(old)
                self._pending_deletions.pop(old, None)
                self.state.remove(old)
                self.state.set(key, fingerprint)
                change = ChangeType.RENAMED_FILE if parent_of(old) == parent_of(key) else ChangeType.MOVED_FILE
                self._emit(change, key, old_path=old)
                return

        current = self.state.get(key)
        if current is None or current == DIR:
            self.state.set(key, fingerprint)
            self._emit(ChangeType.NEW_FILE, key)
        elif current != fingerprint:
            self.state.set(key, fingerprint)
            if self._baseline.get(key) == fingerprint:
                self._emit(ChangeType.RESTORED, key)
            else:
                self._emit(ChangeType.MODIFIED, key)

    def _finish_folder_delete(self, key: str) -> None:
        removed = self.state.remove_subtree(key)
        if removed:
            self._emit(ChangeType.DELETED_FOLDER, key, is_directory=True)

    def _emit(
        self,
        change_type: ChangeType,
        key: str,
        old_path: Optional[str] = None,
        is_directory: bool = False,
    ) -> None:
        event = ChangeEvent(
            change_type=change_type,
            path=key,
            old_path=old_path,
            absolute_path=to_path(self.root, key),
            is_directory=is_directory,
        )
        self.emitted += 1
        logger.debug(event.describe())
        self.bus.publish(event)

    # ----- loop --------------------------------------------------------

    def run(self, cancel: threading.Event) -> None:
        """
        Poll loop: wait up to one tick for notifications, drain, sweep.

        Returns when cancel is set.

        Raises:
            WatchClosedError: If the root or the watch observer goes away
        """
        tick = self.config.tick_seconds
        logger.debug(f"Reconciliation loop started, tick={tick}s")

        while not cancel.is_set():
            try:
                raw = self._inbox.get(timeout=tick)
            except queue.Empty:
                raw = None

            if cancel.is_set():
                break

            while raw is not None:
                try:
                    self.handle(raw)
                except OSError as e:
                    logger.warning(f"Failed to handle {raw.kind} {raw.path}: {e}")
                try:
                    raw = self._inbox.get_nowait()
                except queue.Empty:
                    raw = None

            try:
                self.sweep()
            except OSError as e:
                logger.warning(f"Sweep failed: {e}")

            self._check_watch(cancel)

        logger.debug("Reconciliation loop stopped")

    def _check_watch(self, cancel: threading.Event) -> None:
        if cancel.is_set():
            return
        if self._root_gone or not self.root.is_dir():
            raise WatchClosedError(f"Monitored root is no longer available: {self.root}")
        if self.registrar is not None and not self.registrar.closed and not self.registrar.is_alive:
            raise WatchClosedError("Watch observer stopped unexpectedly")

"""Lifecycle of a single real-time monitoring session."""

import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Optional

from .baseline import BaselineStore, resolve_root
from .bus import AlertBus
from .config import MonitorConfig
from .engine import ReconciliationEngine
from .models import FileMeta
from .registrar import WatchRegistrar
from .scanner import DriftReport, diff, fingerprints, snapshot


logger = logging.getLogger(__name__)


class MonitorSession:
    """
    Starts and stops exactly one reconciliation engine.

    start() loads the baseline on the caller's thread so a missing
    baseline surfaces immediately; the startup scan, drift report, watch
    registration and the poll loop then run on a dedicated worker.
    """

    def __init__(
        self,
        config: Optional[MonitorConfig] = None,
        bus: Optional[AlertBus] = None,
    ):
        """
        Initialize the session.

        Args:
            config: Monitor configuration
            bus: Alert channel for emitted events (a private one is created if omitted)
        """
        self.config = config or MonitorConfig()
        self._owns_bus = bus is None
        self.bus = bus or AlertBus()

        self._lock = threading.Lock()
        self._running = False
        self._cancel = threading.Event()
        self._ready = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._engine: Optional[ReconciliationEngine] = None
        self._registrar: Optional[WatchRegistrar] = None
        self._store: Optional[BaselineStore] = None
        self.root: Optional[Path] = None
        self.last_drift: Optional[DriftReport] = None

    def start(
        self,
        root: Path,
        on_error: Optional[Callable[[Exception], None]] = None,
        on_finish: Optional[Callable[[], None]] = None,
    ) -> bool:
        """
        Start monitoring root in the background.

        Args:
            root: Directory to monitor
            on_error: Called on the worker with any error that ends the session
            on_finish: Called on the worker once the session has stopped

        Returns:
            False if a session is already running, True otherwise

        Raises:
            RootNotFoundError: If root is missing or not a directory
            BaselineNotFoundError: If no baseline exists for root
        """
        with self._lock:
            if self._running:
                logger.warning(f"Monitor already running for {self.root}")
                return False

            root = resolve_root(root)
            store = BaselineStore(root, self.config.baseline_dir)
            baseline = store.load()

            self._running = True
            self._cancel = threading.Event()
            self._ready = threading.Event()
            self._engine = None
            self._registrar = None
            self._store = store
            self.root = root

            self._thread = threading.Thread(
                target=self._run,
                args=(root, baseline, on_error, on_finish),
                name="fim-monitor",
                daemon=True,
            )
            self._thread.start()
        return True

    def _run(
        self,
        root: Path,
        baseline: Dict[str, FileMeta],
        on_error: Optional[Callable[[Exception], None]],
        on_finish: Optional[Callable[[], None]],
    ) -> None:
        """Worker body: drift check, seed, register, loop."""
        cancel = self._cancel
        store = self._store
        registrar = None
        try:
            store.acquire()

            current = snapshot(root, self.config.hash_algorithm, self.config.chunk_size)
            self.last_drift = diff(baseline, current)
            self.last_drift.log(logger, "No pre-existing drift detected.")

            registrar = WatchRegistrar(root, self.config)
            engine = ReconciliationEngine(
                root,
                fingerprints(baseline),
                fingerprints(current),
                self.bus,
                self.config,
                registrar=registrar,
            )
            with self._lock:
                self._engine = engine
                self._registrar = registrar

            if cancel.is_set():
                return
            registrar.start(engine.submit)

            logger.info(f"Real-time monitoring started for {root}")
            self._ready.set()
            engine.run(cancel)
        except Exception as e:
            logger.error(f"Monitor session for {root} failed: {e}")
            if on_error is not None:
                on_error(e)
        finally:
            if registrar is not None:
                registrar.close()
            store.release()
            with self._lock:
                self._running = False
            logger.info(f"Real-time monitoring stopped for {root}")
            if on_finish is not None:
                on_finish()

    def wait_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until watches are registered. Returns False on timeout."""
        return self._ready.wait(timeout)

    def stop(self) -> None:
        """
        Request the session to stop. Idempotent and safe from any thread.

        Sets the cancellation signal and releases every watch; the worker
        notices within one tick.
        """
        self._cancel.set()
        with self._lock:
            registrar = self._registrar
        if registrar is not None:
            registrar.close()

    def stop_and_wait(self, timeout: Optional[float] = None) -> bool:
        """
        Stop and wait for the worker to finish.

        Args:
            timeout: Seconds to wait (defaults to config.stop_timeout_s)

        Returns:
            True if the worker finished, False on timeout
        """
        self.stop()
        thread = self._thread
        if thread is None or thread is threading.current_thread():
            return True

        timeout = self.config.stop_timeout_s if timeout is None else timeout
        thread.join(timeout=timeout)
        if thread.is_alive():
            logger.warning(f"Monitor worker did not stop within {timeout}s")
            return False
        return True

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def engine(self) -> Optional[ReconciliationEngine]:
        return self._engine

    def runtime_snapshot(self) -> Dict[str, str]:
        """Copy of the current runtime state (empty when not started)."""
        engine = self._engine
        return engine.state.snapshot() if engine is not None else {}

    def close(self) -> None:
        """Stop the session and release the private alert bus."""
        self.stop_and_wait()
        if self._owns_bus:
            self.bus.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

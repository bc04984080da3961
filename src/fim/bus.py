"""Publish-only alert channel for classified change events."""

import logging
import queue
import threading
from typing import Callable, List, Optional

from .models import ChangeEvent


logger = logging.getLogger(__name__)

Listener = Callable[[ChangeEvent], None]

_STOP = object()


class AlertBus:
    """
    Fire-and-forget delivery of ChangeEvents to registered listeners.

    publish() only enqueues; a dispatcher thread calls each listener in
    turn. A listener that raises is logged and does not affect other
    listeners or the publisher.
    """

    def __init__(self, name: str = "AlertBus"):
        self._listeners: List[Listener] = []
        self._queue: "queue.Queue" = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False
        self._thread = threading.Thread(target=self._dispatch_loop, name=name, daemon=True)
        self._thread.start()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            A callable that unsubscribes the listener
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: ChangeEvent) -> None:
        """Queue an event for delivery. Events published after close are dropped."""
        if event is None or self._closed:
            return
        self._queue.put(event)

    def _dispatch_loop(self) -> None:
        while True:
            event = self._queue.get()
            if event is _STOP:
                return
            with self._lock:
                listeners = list(self._listeners)
            for listener in listeners:
                try:
                    listener(event)
                except Exception:
                    logger.exception(f"Alert listener {listener!r} failed for {event.describe()}")

    def close(self, timeout: Optional[float] = 5.0) -> bool:
        """
        Deliver already queued events and stop the dispatcher.

        Returns:
            True if the dispatcher finished within the timeout
        """
        with self._lock:
            if not self._closed:
                self._closed = True
                self._queue.put(_STOP)
        self._thread.join(timeout=timeout)
        return not self._thread.is_alive()

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def log_listener(event: ChangeEvent) -> None:
    """Listener that writes each event to the log, e.g. ``[NEW FILE] a.txt``."""
    logger.info(event.describe())

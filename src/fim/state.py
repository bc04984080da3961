"""Thread-safe runtime state of the monitored tree."""

import threading
from typing import Dict, Iterator, List, Mapping, Optional

from .models import DIR
from .paths import is_under, rebase


class RuntimeState:
    """
    Current belief about the tree: relative path -> fingerprint.

    Only the engine worker writes. Readers on other threads use get(),
    snapshot() and the other query methods, which copy under the lock.
    """

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._entries: Dict[str, str] = dict(initial or {})
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, fingerprint: str) -> None:
        if not key:
            raise ValueError("the root itself is never tracked")
        with self._lock:
            self._entries[key] = fingerprint

    def remove(self, key: str) -> Optional[str]:
        with self._lock:
            return self._entries.pop(key, None)

    def is_dir(self, key: str) -> bool:
        with self._lock:
            return self._entries.get(key) == DIR

    def has_descendants(self, key: str) -> bool:
        prefix = key + "/"
        with self._lock:
            return any(k.startswith(prefix) for k in self._entries)

    def descendants(self, key: str) -> List[str]:
        """Sorted keys strictly below key."""
        prefix = key + "/"
        with self._lock:
            return sorted(k for k in self._entries if k.startswith(prefix))

    def remap_subtree(self, old: str, new: str) -> int:
        """
        Move every entry at or below old to the same place below new.

        Returns:
            Number of entries remapped
        """
        with self._lock:
            moved = {
                rebase(k, old, new): v
                for k, v in self._entries.items()
                if is_under(k, old)
            }
            for k in [k for k in self._entries if is_under(k, old)]:
                del self._entries[k]
            self._entries.update(moved)
            return len(moved)

    def remove_subtree(self, prefix: str) -> List[str]:
        """
        Remove every entry at or below prefix.

        Returns:
            The removed keys
        """
        with self._lock:
            removed = [k for k in self._entries if is_under(k, prefix)]
            for k in removed:
                del self._entries[k]
            return removed

    def snapshot(self) -> Dict[str, str]:
        """Copy of the current state for external readers."""
        with self._lock:
            return dict(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())

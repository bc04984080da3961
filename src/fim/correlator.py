"""Time-windowed correlation of deleted paths with newly created ones."""

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .paths import parent_of


@dataclass(frozen=True)
class RenameSource:
    """A deleted path that may still turn out to be a rename/move."""
    path: str
    fingerprint: str
    timestamp: float
    parent: str


def choose_candidate(same_parent: Sequence[str], elsewhere: Sequence[str]) -> Optional[str]:
    """
    Pick the unique rename source among matching candidates.

    A single candidate in the same parent directory wins. Several
    same-parent candidates are ambiguous and nothing is inferred. With no
    same-parent candidate, a single candidate elsewhere wins.

    Args:
        same_parent: Matching sources in the new path's parent directory
        elsewhere: Matching sources in other directories

    Returns:
        The chosen source path, or None
    """
    if len(same_parent) == 1:
        return same_parent[0]
    if same_parent:
        return None
    if len(elsewhere) == 1:
        return elsewhere[0]
    return None


class RenameCorrelator:
    """
    Index of rename/move candidates keyed by (fingerprint, parent).

    Matching requires an exact fingerprint and an age within the window.
    Not thread-safe: owned by the engine worker.
    """

    def __init__(self, window_ms: int = 1200):
        """
        Initialize the correlator.

        Args:
            window_ms: How long a source stays a candidate
        """
        self.window_ms = window_ms
        self._sources: Dict[str, RenameSource] = {}
        self._by_key: Dict[Tuple[str, str], Set[str]] = defaultdict(set)
        self._by_fingerprint: Dict[str, Set[str]] = defaultdict(set)

    @property
    def window_sec(self) -> float:
        return self.window_ms / 1000.0

    def add(self, path: str, fingerprint: str, timestamp: float) -> RenameSource:
        """Record (or refresh) a deleted path as a candidate."""
        self.discard(path)
        source = RenameSource(path, fingerprint, timestamp, parent_of(path))
        self._sources[path] = source
        self._by_key[(fingerprint, source.parent)].add(path)
        self._by_fingerprint[fingerprint].add(path)
        return source

    def discard(self, path: str) -> Optional[RenameSource]:
        source = self._sources.pop(path, None)
        if source is None:
            return None

        key = (source.fingerprint, source.parent)
        self._by_key[key].discard(path)
        if not self._by_key[key]:
            del self._by_key[key]
        self._by_fingerprint[source.fingerprint].discard(path)
        if not self._by_fingerprint[source.fingerprint]:
            del self._by_fingerprint[source.fingerprint]
        return source

    def get(self, path: str) -> Optional[RenameSource]:
        return self._sources.get(path)

    def paths(self) -> List[str]:
        return list(self._sources)

    def is_live(self, path: str, now: float) -> bool:
        source = self._sources.get(path)
        return source is not None and (now - source.timestamp) <= self.window_sec

    def candidates(
        self,
        fingerprint: str,
        parent: str,
        now: float,
        exclude: Optional[str] = None,
    ) -> Tuple[List[str], List[str]]:
        """
        Live candidates with a matching fingerprint.

        Returns:
            (same-parent paths, other-parent paths), each sorted
        """
        local = self._by_key.get((fingerprint, parent), set())
        same = [
            path for path in local
            if path != exclude and self.is_live(path, now)
        ]
        other = [
            path for path in self._by_fingerprint.get(fingerprint, ())
            if path not in local and path != exclude and self.is_live(path, now)
        ]
        return sorted(same), sorted(other)

    def match(
        self,
        fingerprint: str,
        parent: str,
        now: float,
        exclude: Optional[str] = None,
        same_parent_only: bool = False,
    ) -> Optional[str]:
        """
        Find the unique live source for a new path.

        Args:
            fingerprint: Fingerprint of the new path
            parent: Parent key of the new path
            now: Current timestamp
            exclude: Path that must not match itself
            same_parent_only: Ignore sources in other directories

        Returns:
            The matching source path, or None if absent or ambiguous
        """
        same, other = self.candidates(fingerprint, parent, now, exclude)
        if same_parent_only:
            other = []
        return choose_candidate(same, other)

    def expire(self, now: float) -> List[RenameSource]:
        """
        Remove and return sources older than the window.

        Args:
            now: Current timestamp

        Returns:
            Expired sources, oldest first
        """
        expired = [
            s for s in self._sources.values()
            if (now - s.timestamp) > self.window_sec
        ]
        for source in expired:
            self.discard(source.path)
        return sorted(expired, key=lambda s: (s.timestamp, s.path))

    def clear(self) -> None:
        self._sources.clear()
        self._by_key.clear()
        self._by_fingerprint.clear()

    def __len__(self) -> int:
        return len(self._sources)

    def __contains__(self, path: str) -> bool:
        return path in self._sources

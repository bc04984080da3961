"""Path key helpers.

Keys are root-relative POSIX paths. The empty string is the root itself and
is never stored in any state mapping.
"""

import os
from pathlib import Path
from typing import Iterable, Optional


def to_key(root: Path, path: Path) -> Optional[str]:
    """
    Convert an absolute path into a root-relative key.

    Args:
        root: Absolute, normalized monitored root
        path: Path reported by a watch or a walk

    Returns:
        The key with forward slashes, "" for the root, or None when the
        path resolves outside the root
    """
    absolute = Path(os.path.normpath(os.path.abspath(path)))
    try:
        relative = absolute.relative_to(root)
    except ValueError:
        return None

    key = relative.as_posix()
    return "" if key == "." else key


def to_path(root: Path, key: str) -> Path:
    """Absolute path for a key."""
    if not key:
        return root
    return root.joinpath(*key.split("/"))


def parent_of(key: str) -> str:
    """Parent key, "" for entries directly under the root."""
    head, _, _ = key.rpartition("/")
    return head


def name_of(key: str) -> str:
    return key.rpartition("/")[2]


def is_under(key: str, prefix: str) -> bool:
    """True if key equals prefix or lies below it."""
    return key == prefix or key.startswith(prefix + "/")


def rebase(key: str, old_prefix: str, new_prefix: str) -> str:
    """Replace old_prefix with new_prefix at the start of key."""
    if key == old_prefix:
        return new_prefix
    return new_prefix + key[len(old_prefix):]


def is_transient(
    name: str,
    prefixes: Iterable[str],
    suffixes: Iterable[str],
) -> bool:
    """Check whether a filename looks like an editor artefact."""
    return name.startswith(tuple(prefixes)) or name.endswith(tuple(suffixes))

"""
utils
-----

Small shared helpers: a path existence check and the thread-safe key set
used by policy consumers to reconcile one config generation with the next.
"""

import os
import threading
from typing import Iterable, List, Optional, Set as TypingSet

__all__ = ["Set", "ThreadSafeSet", "path_exists"]

# One generation of keys (method names, resource names...)
Set = TypingSet[str]


def path_exists(path: str) -> bool:
    """Return True if *path* exists on disk (file or directory)."""
    return os.path.exists(path)


class ThreadSafeSet:
    """
    Set of keys guarded by a single lock.

    Consumers keep one instance per policy subsystem and call
    :py:meth:`diff_and_emplace` with the keys of each freshly parsed config to
    learn which keys disappeared since the previous generation.
    """

    def __init__(self, keys: Optional[Iterable[str]] = None):
        self._lock = threading.Lock()
        self._keys: Set = set(keys or ())

    def insert(self, key: str) -> None:
        with self._lock:
            self._keys.add(key)

    def diff_and_emplace(self, new_set: Iterable[str]) -> List[str]:
        """
        Replace the current keys with *new_set* and return the removed ones.

        The difference is computed and the replacement made under one lock
        acquisition, so concurrent reconciliation passes never see a
        half-replaced generation.

        Args:
            new_set: Keys present in the newest generation.

        Returns:
            Keys that were in the previous generation but not in *new_set*,
            sorted.
        """
        incoming = set(new_set)
        with self._lock:
            removed = self._keys - incoming
            self._keys = incoming
        return sorted(removed)

    def snapshot(self) -> Set:
        with self._lock:
            return set(self._keys)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._keys

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)

from __future__ import annotations

import threading
import weakref
from pathlib import Path
from typing import Any


class DirectoryRegistry:
    """
    Process-wide bookkeeping for disk storage.

    - One stable lock per normalized file path, so writers of the same key
      serialize while different keys proceed independently.
    - The set of live handles bound to each storage directory, so a write
      through one handle can be announced to its siblings.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._handles: dict[str, weakref.WeakSet[Any]] = {}

    def lock_for(self, path: Path) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(str(path.resolve()), threading.Lock())

    def attach(self, directory: Path, handle: Any) -> None:
        key = str(directory.resolve())
        with self._guard:
            self._handles.setdefault(key, weakref.WeakSet()).add(handle)

    def detach(self, directory: Path, handle: Any) -> None:
        key = str(directory.resolve())
        with self._guard:
            handles = self._handles.get(key)
            if handles is not None:
                handles.discard(handle)

    def siblings(self, directory: Path, handle: Any) -> list[Any]:
        key = str(directory.resolve())
        with self._guard:
            return [h for h in self._handles.get(key, ()) if h is not handle]


GLOBAL_DIRECTORIES = DirectoryRegistry()

from __future__ import annotations

import logging
import threading
from pathlib import Path
from urllib.parse import quote, unquote

from .errors import PersistError
from .file_io import atomic_write_text, read_text
from .interfaces import StorageBackend, StorageEvent, StorageListener, Unsubscribe
from .locks import GLOBAL_DIRECTORIES, DirectoryRegistry

logger = logging.getLogger(__name__)

SUFFIX = ".json"


class DiskStorage(StorageBackend):
    """
    Stores each key as its own file under a directory.

    - File names are the percent-encoded key plus ".json".
    - Writes are atomic (temp file + replace) and serialized per file.
    - Handles bound to the same directory in this process notify each other.
    - `poll()` picks up changes made by other processes.
    """

    def __init__(self, directory: Path, *, registry: DirectoryRegistry = GLOBAL_DIRECTORIES):
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._registry = registry
        self._lock = threading.Lock()
        self._listeners: list[StorageListener] = []
        self._seen: dict[str, str] = self._scan()
        self._closed = False
        registry.attach(self._dir, self)

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, key: str) -> Path:
        return self._dir / (quote(key, safe="") + SUFFIX)

    def get_item(self, key: str) -> str | None:
        path = self.path_for(key)
        with self._registry.lock_for(path):
            return read_text(path)

    def set_item(self, key: str, value: str) -> None:
        path = self.path_for(key)
        with self._registry.lock_for(path):
            old = read_text(path)
            try:
                atomic_write_text(path, value)
            except OSError as e:
                raise PersistError(f"failed to write {path}: {e}") from e
        self._remember(key, value)
        if old != value:
            self._announce(StorageEvent(key=key, new_value=value, old_value=old))

    def remove_item(self, key: str) -> None:
        path = self.path_for(key)
        with self._registry.lock_for(path):
            old = read_text(path)
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                raise PersistError(f"failed to remove {path}: {e}") from e
        self._remember(key, None)
        if old is not None:
            self._announce(StorageEvent(key=key, new_value=None, old_value=old))

    def subscribe(self, listener: StorageListener) -> Unsubscribe:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def poll(self) -> int:
        """
        Compare the directory against the last known contents and dispatch an
        event for every key another process changed. Returns the event count.
        """
        current = self._scan()
        with self._lock:
            previous = dict(self._seen)
            self._seen = dict(current)

        events: list[StorageEvent] = []
        for key, value in current.items():
            if previous.get(key) != value:
                events.append(StorageEvent(key=key, new_value=value, old_value=previous.get(key)))
        for key, value in previous.items():
            if key not in current:
                events.append(StorageEvent(key=key, new_value=None, old_value=value))

        for event in events:
            self._dispatch(event)
        return len(events)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._registry.detach(self._dir, self)

    def _scan(self) -> dict[str, str]:
        found: dict[str, str] = {}
        for path in self._dir.glob("*" + SUFFIX):
            raw = read_text(path)
            if raw is not None:
                found[unquote(path.name[: -len(SUFFIX)])] = raw
        return found

    def _remember(self, key: str, value: str | None) -> None:
        with self._lock:
            if value is None:
                self._seen.pop(key, None)
            else:
                self._seen[key] = value

    def _announce(self, event: StorageEvent) -> None:
        for sibling in self._registry.siblings(self._dir, self):
            sibling._receive(event)

    def _receive(self, event: StorageEvent) -> None:
        if event.key is not None:
            self._remember(event.key, event.new_value)
        self._dispatch(event)

    def _dispatch(self, event: StorageEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("DISK STORAGE EVENT: listener failed for key %r", event.key)

from __future__ import annotations

import logging
import threading
import weakref
from collections import deque

from .errors import QuotaExceededError
from .interfaces import StorageBackend, StorageEvent, StorageListener, Unsubscribe

logger = logging.getLogger(__name__)


class MemoryStorageArea:
    """
    In-process storage area shared by several contexts (the localStorage model).

    - `context()` hands out a MemoryStorage bound to this area. A context only
      receives events while it has listeners; the area holds it weakly.
    - A change made through one context is announced to every other context,
      never to the writer, and only when the stored value actually changed.
    - `quota_bytes` caps the summed length of keys and values.
    - With `deferred=True` events are queued per context until that context
      calls `dispatch_pending()`, which models asynchronous delivery.
    """

    def __init__(self, *, quota_bytes: int | None = None, deferred: bool = False) -> None:
        self._lock = threading.Lock()
        self._items: dict[str, str] = {}
        self._contexts: weakref.WeakSet[MemoryStorage] = weakref.WeakSet()
        self._quota = quota_bytes
        self._deferred = deferred

    @property
    def deferred(self) -> bool:
        return self._deferred

    def context(self) -> "MemoryStorage":
        return MemoryStorage(self)

    def context_count(self) -> int:
        """Contexts currently listening for events."""
        with self._lock:
            return len(self._contexts)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._items)

    def used_bytes(self) -> int:
        with self._lock:
            return self._size(self._items)

    @staticmethod
    def _size(items: dict[str, str]) -> int:
        return sum(len(k) + len(v) for k, v in items.items())

    def _get(self, key: str) -> str | None:
        with self._lock:
            return self._items.get(key)

    def _set(self, origin: "MemoryStorage", key: str, value: str) -> None:
        with self._lock:
            old = self._items.get(key)
            if self._quota is not None:
                pending = dict(self._items)
                pending[key] = value
                needed = self._size(pending)
                if needed > self._quota:
                    raise QuotaExceededError(key, needed, self._quota)
            self._items[key] = value
            others = [c for c in self._contexts if c is not origin]
        if old != value:
            self._announce(others, StorageEvent(key=key, new_value=value, old_value=old))

    def _remove(self, origin: "MemoryStorage", key: str) -> None:
        with self._lock:
            old = self._items.pop(key, None)
            others = [c for c in self._contexts if c is not origin]
        if old is not None:
            self._announce(others, StorageEvent(key=key, new_value=None, old_value=old))

    def _clear(self, origin: "MemoryStorage") -> None:
        with self._lock:
            had_items = bool(self._items)
            self._items.clear()
            others = [c for c in self._contexts if c is not origin]
        if had_items:
            self._announce(others, StorageEvent(key=None, new_value=None))

    def _attach(self, ctx: "MemoryStorage") -> None:
        with self._lock:
            self._contexts.add(ctx)

    def _detach(self, ctx: "MemoryStorage") -> None:
        with self._lock:
            self._contexts.discard(ctx)

    def _announce(self, contexts: list["MemoryStorage"], event: StorageEvent) -> None:
        for ctx in contexts:
            if self._deferred:
                ctx._enqueue(event)
            else:
                ctx._dispatch(event)


class MemoryStorage(StorageBackend):
    """One context's handle on a MemoryStorageArea."""

    def __init__(self, area: MemoryStorageArea) -> None:
        self._area = area
        self._lock = threading.Lock()
        self._listeners: list[StorageListener] = []
        self._pending: deque[StorageEvent] = deque()

    @property
    def area(self) -> MemoryStorageArea:
        return self._area

    def get_item(self, key: str) -> str | None:
        return self._area._get(key)

    def set_item(self, key: str, value: str) -> None:
        self._area._set(self, key, value)

    def remove_item(self, key: str) -> None:
        self._area._remove(self, key)

    def clear(self) -> None:
        self._area._clear(self)

    def subscribe(self, listener: StorageListener) -> Unsubscribe:
        with self._lock:
            self._listeners.append(listener)
        self._area._attach(self)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)
                idle = not self._listeners
            if idle:
                self.detach()

        return _unsubscribe

    def detach(self) -> None:
        """Stop receiving events and drop queued ones, until the next subscribe()."""
        self._area._detach(self)
        with self._lock:
            self._pending.clear()

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def dispatch_pending(self) -> int:
        """Deliver queued events in commit order; returns how many were delivered."""
        delivered = 0
        while True:
            with self._lock:
                if not self._pending:
                    return delivered
                event = self._pending.popleft()
            self._dispatch(event)
            delivered += 1

    def _enqueue(self, event: StorageEvent) -> None:
        with self._lock:
            self._pending.append(event)

    def _dispatch(self, event: StorageEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("MEMORY STORAGE EVENT: listener failed for key %r", event.key)

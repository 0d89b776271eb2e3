from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar, Union

from pydantic import ValidationError

from .diagnostics import IssueCallback, IssueKind, StorageIssue, report_issue, validation_details
from .envelope import encode
from .interfaces import StorageBackend, StorageEvent, Unsubscribe
from .loader import ValidatedLoader
from .options import Migrate, StorageOptions
from .schema import Schema

logger = logging.getLogger(__name__)

T = TypeVar("T")

ChangeListener = Callable[[T], None]


@dataclass(frozen=True)
class Replace(Generic[T]):
    value: T

    def resolve(self, current: T) -> T:
        return self.value


@dataclass(frozen=True)
class Update(Generic[T]):
    fn: Callable[[T], T]

    def resolve(self, current: T) -> T:
        return self.fn(current)


Change = Union[Replace[T], Update[T]]


class SynchronizedStore(Generic[T]):
    """
    Owns the current value for one storage key.

    - Starts from whatever valid record the storage holds, else the default.
    - Writes are validated strictly; a rejected write leaves everything as it was.
    - Changes made by other contexts arrive as storage events and go through
      the same loader as the initial read.
    - `storage=None` means no medium is bound: the store runs in memory on
      its default.

    Nothing raises out of get/set/update; failures go to the log and `on_error`.
    """

    def __init__(
        self,
        options: StorageOptions[T],
        storage: StorageBackend | None,
        *,
        on_error: IssueCallback | None = None,
    ):
        self._options = options
        self._storage = storage
        self._on_error = on_error
        self._loader: ValidatedLoader[T] = ValidatedLoader(options, on_error=on_error)
        self._lock = threading.RLock()
        self._listeners: list[ChangeListener[T]] = []
        self._unsubscribe: Unsubscribe | None = None
        self._closed = False

        self._current: T = self._initial_value()
        if storage is not None:
            self._unsubscribe = storage.subscribe(self._on_storage_event)

    # -------- Read --------
    @property
    def key(self) -> str:
        return self._options.key

    @property
    def options(self) -> StorageOptions[T]:
        return self._options

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def value(self) -> T:
        return self.get()

    def get(self) -> T:
        return self._current

    # -------- Write --------
    def set(self, value: T) -> bool:
        """Replace the value. Returns False when the write was rejected."""
        return self._write(Replace(value))

    def update(self, fn: Callable[[T], T]) -> bool:
        """Replace the value with fn(current). Returns False when the write was rejected."""
        return self._write(Update(fn))

    def _write(self, change: Change[T]) -> bool:
        opts = self._options
        with self._lock:
            try:
                candidate = change.resolve(self._current)
            except Exception as e:
                self._report("update", "updater raised, write aborted", e)
                return False

            try:
                validated = opts.schema.parse(candidate)
            except ValidationError as e:
                self._report("validation", "rejected invalid value, write aborted", e, validation_details(e))
                return False
            except Exception as e:
                self._report("validation", "validator raised, write aborted", e)
                return False

            try:
                raw = encode(opts.schema.dump(validated), opts.version)
            except Exception as e:
                self._report("persist", "could not serialize value, write aborted", e)
                return False

            self._current = validated

        self._notify(validated)
        self._persist(raw)
        return True

    def _persist(self, raw: str) -> None:
        if self._storage is None:
            logger.debug("SAFE STORAGE WRITE: %r kept in memory only (no storage bound)", self.key)
            return
        try:
            self._storage.set_item(self.key, raw)
        except Exception as e:
            # In-memory value stays updated; durable again after the next good write or reload().
            self._report("persist", "could not persist value", e)

    # -------- Sync --------
    def reload(self) -> T:
        """Re-read storage through the loader and return the resulting value."""
        if self._storage is None or self._closed:
            return self._current
        value = self._initial_value()
        self._replace(value)
        return value

    def _on_storage_event(self, event: StorageEvent) -> None:
        if self._closed:
            return
        if event.key != self.key:
            return
        if event.new_value is None:
            # Removal; deletion semantics are left to the application.
            return
        logger.debug("SAFE STORAGE SYNC: %r changed in another context", self.key)
        self._replace(self._loader.load(event.new_value))

    def _replace(self, value: T) -> None:
        with self._lock:
            self._current = value
        self._notify(value)

    def _initial_value(self) -> T:
        if self._storage is None:
            return self._options.default_value
        try:
            raw = self._storage.get_item(self.key)
        except Exception as e:
            self._report("environment", "storage unreadable, using default", e)
            return self._options.default_value
        return self._loader.load(raw)

    # -------- Change notifications --------
    def subscribe(self, listener: ChangeListener[T]) -> Unsubscribe:
        """Call listener with the new value after every local write or remote sync."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, value: T) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(value)
            except Exception:
                logger.exception("SAFE STORAGE NOTIFY: listener failed for %r", self.key)

    # -------- Lifecycle --------
    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        with self._lock:
            self._listeners.clear()

    def __enter__(self) -> "SynchronizedStore[T]":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _report(
        self,
        kind: IssueKind,
        message: str,
        error: BaseException,
        details: list[dict[str, Any]] | None = None,
    ) -> None:
        issue = StorageIssue(key=self.key, kind=kind, message=message, error=error, details=details or [])
        report_issue(issue, self._on_error)

    def __repr__(self) -> str:
        return f"SynchronizedStore(key={self.key!r}, version={self._options.version}, closed={self._closed})"


def safe_storage(
    key: str,
    schema: Any,
    default_value: T,
    *,
    storage: StorageBackend | None,
    version: int = 1,
    migrate: Migrate | None = None,
    on_error: IssueCallback | None = None,
) -> SynchronizedStore[T]:
    """Build the options and the store in one call."""
    options: StorageOptions[T] = StorageOptions(
        key=key,
        schema=Schema.of(schema),
        default_value=default_value,
        version=version,
        migrate=migrate,
    )
    return SynchronizedStore(options, storage, on_error=on_error)

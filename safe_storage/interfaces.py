from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol


@dataclass(frozen=True)
class StorageEvent:
    """
    A change made to a storage medium by some other context.

    `key` is None when the whole area was cleared; `new_value` is None when
    the key was removed.
    """

    key: str | None
    new_value: str | None
    old_value: str | None = None


StorageListener = Callable[[StorageEvent], None]
Unsubscribe = Callable[[], None]


class StorageBackend(Protocol):
    """
    Minimal key/value interface shared by every context bound to one medium.
    """

    def get_item(self, key: str) -> str | None:
        """Return the raw string stored under key, or None if absent."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Store value under key. Raises PersistError if the medium refuses the write."""
        ...

    def remove_item(self, key: str) -> None:
        ...

    def subscribe(self, listener: StorageListener) -> Unsubscribe:
        """
        Register a listener for changes made by *other* contexts.

        Returns a callable that removes the listener; calling it twice is a no-op.
        """
        ...

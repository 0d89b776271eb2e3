from __future__ import annotations


class SafeStorageError(Exception):
    """Base class for errors raised inside safe_storage."""


class DecodeError(SafeStorageError):
    """Raised when a stored record is not a well-formed envelope."""


class PersistError(SafeStorageError):
    """Raised by a storage medium that rejects or fails a write."""


class QuotaExceededError(PersistError):
    """Raised when a write would push a storage area past its quota."""

    def __init__(self, key: str, needed: int, quota: int):
        super().__init__(f"writing {key!r} needs {needed} bytes, quota is {quota}")
        self.key = key
        self.needed = needed
        self.quota = quota


class EnvironmentUnavailable(SafeStorageError):
    """
    No storage medium is bound (headless or non-interactive host).

    Stores never surface this to callers; they fall back to their default value.
    """

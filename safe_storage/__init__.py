"""
Schema-validated, versioned application state persisted in a key/value
storage medium and kept in sync across the contexts that share it.
"""

from __future__ import annotations

from .diagnostics import StorageIssue
from .disk_store import DiskStorage
from .envelope import Envelope, decode, encode
from .environment import bind_storage, require_storage
from .errors import DecodeError, EnvironmentUnavailable, PersistError, QuotaExceededError, SafeStorageError
from .interfaces import StorageBackend, StorageEvent
from .loader import ValidatedLoader
from .memory_store import MemoryStorage, MemoryStorageArea
from .options import StorageOptions
from .schema import ParseResult, Schema
from .store import Replace, SynchronizedStore, Update, safe_storage

__all__ = [
    "DecodeError",
    "DiskStorage",
    "Envelope",
    "EnvironmentUnavailable",
    "MemoryStorage",
    "MemoryStorageArea",
    "ParseResult",
    "PersistError",
    "QuotaExceededError",
    "Replace",
    "SafeStorageError",
    "Schema",
    "StorageBackend",
    "StorageEvent",
    "StorageIssue",
    "StorageOptions",
    "SynchronizedStore",
    "Update",
    "ValidatedLoader",
    "bind_storage",
    "require_storage",
    "decode",
    "encode",
    "safe_storage",
]

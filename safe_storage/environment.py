from __future__ import annotations

import logging
import threading

from dotenv import load_dotenv

from .disk_store import DiskStorage
from .errors import EnvironmentUnavailable
from .interfaces import StorageBackend, StorageEvent
from .memory_store import MemoryStorageArea
from .paths import storage_dir
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

_DEFAULT_AREA_LOCK = threading.Lock()
_DEFAULT_AREA: MemoryStorageArea | None = None


def default_area(quota_bytes: int | None = None) -> MemoryStorageArea:
    """
    The process-wide memory area that `bind_storage()` hands contexts of.

    The quota only applies when the area is first created.
    """
    global _DEFAULT_AREA
    with _DEFAULT_AREA_LOCK:
        if _DEFAULT_AREA is None:
            _DEFAULT_AREA = MemoryStorageArea(quota_bytes=quota_bytes)
        return _DEFAULT_AREA


def reset_default_area() -> None:
    global _DEFAULT_AREA
    with _DEFAULT_AREA_LOCK:
        _DEFAULT_AREA = None


def bind_storage(settings: Settings | None = None, *, env_file: str | None = "local.env") -> StorageBackend | None:
    """
    Return a storage handle for this context, or None when no medium is
    available (SAFE_STORAGE_BACKEND=none). Stores treat None as a headless
    host and run on their defaults.
    """
    if settings is None:
        if env_file:
            load_dotenv(env_file)
        settings = get_settings()

    if settings.backend == "none":
        logger.debug("SAFE STORAGE ENV: no storage medium bound")
        return None
    storage: StorageBackend
    if settings.backend == "disk":
        directory = storage_dir(settings)
        logger.debug("SAFE STORAGE ENV: disk storage at %s", directory)
        storage = DiskStorage(directory)
    else:
        logger.debug("SAFE STORAGE ENV: memory storage (quota=%s)", settings.quota_bytes)
        storage = default_area(settings.quota_bytes).context()

    if settings.debug_log_events:
        storage.subscribe(_log_event)
    return storage


def _log_event(event: StorageEvent) -> None:
    logger.info(
        "SAFE STORAGE EVENT: key=%r old=%d bytes new=%s",
        event.key,
        len(event.old_value or ""),
        "removed" if event.new_value is None else f"{len(event.new_value)} bytes",
    )


def require_storage(settings: Settings | None = None, *, env_file: str | None = "local.env") -> StorageBackend:
    """Like bind_storage(), for callers that cannot run without a medium."""
    storage = bind_storage(settings, env_file=env_file)
    if storage is None:
        raise EnvironmentUnavailable("no storage medium bound (SAFE_STORAGE_BACKEND=none)")
    return storage

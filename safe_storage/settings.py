from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

BackendName = Literal["memory", "disk", "none"]

_BACKENDS: tuple[BackendName, ...] = ("memory", "disk", "none")

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def _env_flag(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    return raw in _TRUTHY if raw else default


def _env_int(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw.strip())
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


@dataclass(frozen=True)
class Settings:
    # Which storage medium bind_storage() hands out
    backend: BackendName

    # Disk backend
    storage_dir: str

    # Memory backend (None = unlimited)
    quota_bytes: int | None

    # Debug
    debug_log_events: bool


def get_settings() -> Settings:
    backend = (os.getenv("SAFE_STORAGE_BACKEND", "memory")).strip().lower()
    if backend not in _BACKENDS:
        raise ValueError(f"SAFE_STORAGE_BACKEND must be one of {', '.join(_BACKENDS)}, got {backend!r}")

    storage_dir = os.getenv("SAFE_STORAGE_DIR", os.path.join("data", "storage"))

    quota_bytes = _env_int("SAFE_STORAGE_QUOTA_BYTES")

    debug_log_events = _env_flag("SAFE_STORAGE_DEBUG_LOG_EVENTS", False)

    return Settings(
        backend=backend,  # type: ignore[arg-type]
        storage_dir=storage_dir,
        quota_bytes=quota_bytes,
        debug_log_events=debug_log_events,
    )

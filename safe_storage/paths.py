from __future__ import annotations

from pathlib import Path

from .settings import Settings, get_settings


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def storage_dir(settings: Settings | None = None) -> Path:
    settings = settings or get_settings()
    return ensure_dir(Path(settings.storage_dir).expanduser().resolve())

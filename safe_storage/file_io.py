from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


def read_text(path: Path) -> str | None:
    """
    Read a stored record from disk.

    Returns None for missing files, empty files, or files that cannot be read.
    """
    try:
        if not path.exists():
            return None
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("DISK STORAGE READ: failed to read %s: %r", path, e)
        return None
    return raw if raw.strip() else None


def atomic_write_text(path: Path, text: str) -> None:
    """
    Write text next to `path` under a unique temp name, then swap it in.

    Readers in other processes see either the old record or the new one.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

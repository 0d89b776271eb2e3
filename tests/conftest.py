from __future__ import annotations

from pathlib import Path
import sys

import pytest


# Ensure the repository root (parent of ./tests) is importable during pytest collection.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


from safe_storage import MemoryStorageArea, StorageIssue  # noqa: E402
from safe_storage import environment  # noqa: E402


@pytest.fixture
def area() -> MemoryStorageArea:
    return MemoryStorageArea()


@pytest.fixture
def issues() -> list[StorageIssue]:
    return []


@pytest.fixture
def collect(issues: list[StorageIssue]):
    return issues.append


@pytest.fixture(autouse=True)
def fresh_default_area():
    """
    bind_storage() hands out contexts of a process-wide area; start each test clean.
    """
    environment.reset_default_area()
    yield
    environment.reset_default_area()


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in (
        "SAFE_STORAGE_BACKEND",
        "SAFE_STORAGE_DIR",
        "SAFE_STORAGE_QUOTA_BYTES",
        "SAFE_STORAGE_DEBUG_LOG_EVENTS",
    ):
        # setenv first so anything load_dotenv() adds is removed on teardown
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch

from __future__ import annotations

import json
import logging

import pytest
from profiles import DEFAULT_PROFILE, PROFILE_SCHEMA
from pydantic import BaseModel

from safe_storage import (
    MemoryStorageArea,
    PersistError,
    Replace,
    Schema,
    StorageOptions,
    SynchronizedStore,
    Update,
    encode,
    safe_storage,
)


def _store(storage, collect=None, **overrides) -> SynchronizedStore:
    kwargs = {"default_value": DEFAULT_PROFILE}
    kwargs.update(overrides)
    default_value = kwargs.pop("default_value")
    return safe_storage("test-key", PROFILE_SCHEMA, default_value, storage=storage, on_error=collect, **kwargs)


def test_empty_storage_yields_default(area):
    store = _store(area.context())
    assert store.get() == {"name": "Default", "count": 0}


def test_set_persists_versioned_envelope(area):
    ctx = area.context()
    store = _store(ctx)

    assert store.set({"name": "Updated", "count": 10}) is True

    assert ctx.get_item("test-key") == '{"data":{"name":"Updated","count":10},"version":1}'
    stored = json.loads(ctx.get_item("test-key"))
    assert stored["data"] == {"name": "Updated", "count": 10}
    assert stored["version"] == 1


def test_set_then_fresh_store_round_trips(area):
    store = _store(area.context())
    store.set({"name": "Kept", "count": 2.5})
    assert store.get() == {"name": "Kept", "count": 2.5}

    again = _store(area.context())
    assert again.get() == {"name": "Kept", "count": 2.5}


def test_invalid_stored_record_yields_default(area, collect, issues):
    ctx = area.context()
    ctx.set_item("test-key", json.dumps({"data": {"name": 123, "count": "wrong"}, "version": 1}))

    store = _store(ctx, collect, default_value={"name": "Fallback", "count": 0})

    assert store.get()["name"] == "Fallback"
    assert [i.kind for i in issues] == ["validation"]


def test_stale_record_is_migrated(area):
    ctx = area.context()
    ctx.set_item("test-key", json.dumps({"data": {"name": "Old User"}, "version": 1}))

    def migrate(old, old_version):
        if old_version == 1:
            return {**old, "count": 99}
        return old

    store = _store(ctx, version=2, migrate=migrate, default_value={"name": "New", "count": 0})
    assert store.get() == {"name": "Old User", "count": 99}


def test_migrated_value_is_written_back_on_next_set(area):
    ctx = area.context()
    ctx.set_item("test-key", encode({"name": "Old User"}, 1))
    store = _store(ctx, version=2, migrate=lambda old, v: {**old, "count": 1})

    store.update(lambda p: {**p, "count": p["count"] + 1})

    assert json.loads(ctx.get_item("test-key")) == {"data": {"name": "Old User", "count": 2}, "version": 2}


def test_rejected_write_leaves_state_and_storage_untouched(area, collect, issues):
    ctx = area.context()
    store = _store(ctx, collect)
    store.set({"name": "Good", "count": 1})
    before = ctx.get_item("test-key")

    assert store.set({"name": "Bad", "count": "many"}) is False  # type: ignore[typeddict-item]

    assert store.get() == {"name": "Good", "count": 1}
    assert ctx.get_item("test-key") == before
    assert [i.kind for i in issues] == ["validation"]
    assert issues[0].details


def test_rejected_write_does_not_substitute_default(area, collect):
    store = _store(area.context(), collect)
    store.set({"name": "Mine", "count": 5})
    store.set(None)  # type: ignore[arg-type]
    assert store.get() == {"name": "Mine", "count": 5}


def test_update_applies_function_to_current(area):
    store = _store(area.context())
    store.update(lambda p: {**p, "count": p["count"] + 1})
    store.update(lambda p: {**p, "count": p["count"] + 1})
    assert store.get() == {"name": "Default", "count": 2}


def test_raising_updater_aborts_write(area, collect, issues):
    ctx = area.context()
    store = _store(ctx, collect)

    def boom(p):
        raise ZeroDivisionError

    assert store.update(boom) is False
    assert store.get() == DEFAULT_PROFILE
    assert ctx.get_item("test-key") is None
    assert [i.kind for i in issues] == ["update"]


def test_change_variants_resolve_against_current():
    assert Replace(len).resolve([1, 2]) is len
    assert Update(len).resolve([1, 2]) == 2


def test_persist_failure_keeps_in_memory_value(collect, issues):
    area = MemoryStorageArea(quota_bytes=60)
    ctx = area.context()
    store = _store(ctx, collect)

    assert store.set({"name": "x" * 100, "count": 1}) is True

    assert store.get() == {"name": "x" * 100, "count": 1}
    assert ctx.get_item("test-key") is None
    assert [i.kind for i in issues] == ["persist"]
    assert isinstance(issues[0].error, PersistError)


def test_reload_resyncs_from_storage(area):
    ctx = area.context()
    store = _store(ctx)
    # a handle never hears about its own writes
    ctx.set_item("test-key", encode({"name": "Behind", "count": 4}, 1))

    assert store.get() == DEFAULT_PROFILE
    assert store.reload() == {"name": "Behind", "count": 4}
    assert store.get() == {"name": "Behind", "count": 4}


def test_no_storage_bound_uses_default_and_keeps_writes_in_memory(collect, issues):
    store = _store(None, collect)
    assert store.get() == DEFAULT_PROFILE

    assert store.set({"name": "Local", "count": 1}) is True
    assert store.get() == {"name": "Local", "count": 1}
    assert store.reload() == {"name": "Local", "count": 1}
    assert issues == []


def test_unreadable_storage_is_treated_as_unavailable(collect, issues):
    class Broken:
        def get_item(self, key):
            raise PermissionError("storage disabled")

        def set_item(self, key, value):
            raise PermissionError("storage disabled")

        def remove_item(self, key):
            raise PermissionError("storage disabled")

        def subscribe(self, listener):
            return lambda: None

    store = _store(Broken(), collect)
    assert store.get() == DEFAULT_PROFILE
    assert [i.kind for i in issues] == ["environment"]


def test_subscribers_see_local_writes_only_when_accepted(area):
    store = _store(area.context())
    seen = []
    unsubscribe = store.subscribe(seen.append)

    store.set({"name": "A", "count": 1})
    store.set({"name": "B", "count": "x"})  # type: ignore[typeddict-item]
    unsubscribe()
    store.set({"name": "C", "count": 3})

    assert seen == [{"name": "A", "count": 1}]


def test_failing_subscriber_does_not_break_write(area, caplog):
    store = _store(area.context())

    def bad(value):
        raise RuntimeError("render failed")

    store.subscribe(bad)
    with caplog.at_level(logging.ERROR):
        assert store.set({"name": "Still", "count": 1}) is True
    assert store.get() == {"name": "Still", "count": 1}
    assert "SAFE STORAGE NOTIFY" in caplog.text


def test_issues_are_logged_with_key(area, caplog):
    ctx = area.context()
    ctx.set_item("test-key", "garbage")
    with caplog.at_level(logging.ERROR, logger="safe_storage"):
        _store(ctx)
    assert "SAFE STORAGE DECODE" in caplog.text
    assert "'test-key'" in caplog.text


def test_model_schema_round_trip(area):
    class Settings(BaseModel):
        theme: str = "light"
        font_size: int = 12

    ctx = area.context()
    store = safe_storage("ui", Settings, Settings(), storage=ctx)
    store.set(Settings(theme="dark"))

    fresh = safe_storage("ui", Settings, Settings(), storage=area.context())
    assert fresh.get() == Settings(theme="dark", font_size=12)
    assert json.loads(ctx.get_item("ui")) == {"data": {"theme": "dark", "font_size": 12}, "version": 1}


def test_options_reject_bad_configuration():
    with pytest.raises(ValueError):
        StorageOptions(key="", schema=PROFILE_SCHEMA, default_value=DEFAULT_PROFILE)
    with pytest.raises(ValueError):
        StorageOptions(key="k", schema=PROFILE_SCHEMA, default_value=DEFAULT_PROFILE, version=-1)
    with pytest.raises(TypeError):
        StorageOptions(key="k", schema=PROFILE_SCHEMA, default_value=DEFAULT_PROFILE, migrate=3)  # type: ignore[arg-type]


def test_options_wrap_plain_types_in_schema():
    opts = StorageOptions(key="k", schema=int, default_value=0)  # type: ignore[arg-type]
    assert isinstance(opts.schema, Schema)
    assert opts.schema.parse("5") == 5

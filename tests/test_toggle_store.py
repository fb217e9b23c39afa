from __future__ import annotations

import json
import threading
from datetime import timedelta

import pytest

from toggles.core.audit import ToggleAuditLogger
from toggles.core.codec import BoolValue, FloatValue, IntValue, SetValue, StrValue
from toggles.core.errors import (
    BackendError,
    BackendTimeoutError,
    DecodeError,
    SchemaMismatch,
    UnknownKeyError,
    ValidationError,
)
from toggles.core.persistence import Snapshot, SnapshotEntry
from toggles.core.store import ReloadStatus, ToggleDefinition, ToggleStore
from .helpers.fakes import BlockingPersistence, DummyLogger, FlakyPersistence, MemoryPersistence


def test_defaults_before_any_reload(store):
    assert store.read("dark_mode") is False
    assert store.read("max_items") == 10
    assert store.values() == {"dark_mode": False, "max_items": 10, "region": "eu", "admins": []}
    assert store.last_reload().status == ReloadStatus.NEVER
    assert store.last_reload().is_stale is True
    assert store.current_version() is None


def test_unknown_key(store):
    with pytest.raises(UnknownKeyError) as ei:
        store.read("nope")
    assert ei.value.key == "nope"
    with pytest.raises(UnknownKeyError):
        store.update("nope", True)


def test_reload_without_data_keeps_defaults(store):
    lr = store.reload()
    assert lr.status == ReloadStatus.NO_DATA
    assert lr.is_stale is False
    assert store.read("region") == "eu"


def test_reload_applies_saved_snapshot(store, memory, clock):
    memory.save(
        Snapshot(
            version=7,
            date=clock(),
            toggles={
                "dark_mode": SnapshotEntry(value=True, modified_by="ops"),
                "admins": SnapshotEntry(value=["ana", "bo"]),
            },
        )
    )
    lr = store.reload()
    assert lr.status == ReloadStatus.DATA
    assert lr.version == 7
    assert store.current_version() == 7
    assert store.read("dark_mode") is True
    assert store.read("admins") == ["ana", "bo"]
    # absent from the snapshot, so still the default
    assert store.read("max_items") == 10
    assert store.definition("dark_mode").modified_by == "ops"


def test_malformed_key_aborts_whole_reload(store, memory, clock):
    memory.save(Snapshot(version=1, date=clock(), toggles={"dark_mode": SnapshotEntry(value=True)}))
    store.reload()
    first = store.last_reload()

    clock.advance(60)
    memory.save(
        Snapshot(
            version=2,
            date=clock(),
            toggles={
                "dark_mode": SnapshotEntry(value=False),
                "region": SnapshotEntry(value="apac"),
            },
        )
    )
    with pytest.raises(DecodeError) as ei:
        store.reload()
    assert ei.value.key == "region"
    assert ei.value.context["raw"] == "apac"

    assert store.read("dark_mode") is True
    assert store.read("region") == "eu"
    assert store.current_version() == 1
    lr = store.last_reload()
    assert lr.status == ReloadStatus.FAILED
    assert lr.is_stale is True
    assert lr.reload_date == first.reload_date
    assert lr.failed_at == clock()
    assert "region" in lr.error


def test_absent_snapshot_resets_to_defaults(store, memory, clock):
    memory.save(Snapshot(version=1, date=clock(), toggles={"max_items": SnapshotEntry(value=50)}))
    store.reload()
    assert store.read("max_items") == 50
    memory.data = None
    lr = store.reload()
    assert lr.status == ReloadStatus.NO_DATA
    assert store.read("max_items") == 10
    assert store.current_version() is None


def test_update_then_read(store, memory, clock):
    view = store.update("dark_mode", True, "alice")
    assert store.read("dark_mode") is True
    assert view.value is True
    assert view.modified_by == "alice"
    assert view.modified_at == clock()

    head = store.history("dark_mode")[0]
    assert head.value is True
    assert head.modified_by == "alice"
    assert head.value_overview == "true"

    saved = memory.snapshot()
    assert saved.version == 1
    assert saved.toggles["dark_mode"].value is True
    assert store.current_version() == 1
    assert store.last_reload().version == 1


def test_update_json_entry_point(store, memory):
    store.update_json("admins", ["z", "a"], "bob")
    assert store.read("admins") == ["z", "a"]
    assert memory.snapshot().toggles["admins"].history[0].value_overview == "[z, a]"


def test_update_json_stores_canonical_encoding(definitions, memory):
    defs = definitions + [ToggleDefinition(key="tags", codec=SetValue(StrValue()), default=frozenset())]
    store = ToggleStore(defs, memory, logger=DummyLogger())
    view = store.update_json("tags", ["b", "a", "a"], "ops")
    assert view.value == ["a", "b"]
    assert store.read("tags") == frozenset({"a", "b"})

    saved = memory.snapshot().toggles["tags"]
    assert saved.value == ["a", "b"]
    assert saved.history[0].value == ["a", "b"]
    assert store.history("tags")[0].value == ["a", "b"]
    assert store.definition("tags").value == ["a", "b"]


def test_huge_int_for_float_toggle_is_a_validation_error(definitions, memory):
    defs = definitions + [ToggleDefinition(key="ratio", codec=FloatValue(), default=0.5)]
    store = ToggleStore(defs, memory, logger=DummyLogger())
    with pytest.raises(ValidationError) as ei:
        store.update_json("ratio", 10**400, "ops")
    assert ei.value.constraint == "finite"
    with pytest.raises(ValidationError):
        store.update("ratio", 10**400, "ops")
    assert store.read("ratio") == 0.5
    assert memory.saves == 0


def test_read_returns_a_private_copy(store):
    mine = store.read("admins")
    mine.append("mallory")
    assert store.read("admins") == []

    store.update("admins", ["alice"], "ops")
    store.read("admins").append("mallory")
    store.values()["admins"].append("mallory")
    store.history("admins")[0].value.append("mallory")
    store.definition("admins").value.append("mallory")
    assert store.read("admins") == ["alice"]
    assert store.values()["admins"] == ["alice"]
    assert store.history("admins")[0].value == ["alice"]
    assert store.definition("admins").value == ["alice"]


def test_invalid_update_changes_nothing(store, memory):
    store.update("max_items", 20, "alice")
    with pytest.raises(ValidationError) as ei:
        store.update("max_items", 500, "mallory")
    assert ei.value.key == "max_items"
    assert ei.value.constraint == "range"

    with pytest.raises(ValidationError) as ei:
        store.update_json("dark_mode", "yes", "mallory")
    assert ei.value.constraint == "type"

    assert store.read("max_items") == 20
    assert [h.modified_by for h in store.history("max_items")] == ["alice"]
    assert store.history("dark_mode") == []
    assert memory.saves == 1


def test_wrong_python_type_is_a_validation_error(store):
    with pytest.raises(ValidationError):
        store.update("region", 3)


def test_history_is_most_recent_first_and_capped(definitions, memory, clock):
    store = ToggleStore(definitions, memory, logger=DummyLogger(), clock=clock, max_history=3)
    for n in range(1, 6):
        clock.advance(1)
        store.update("max_items", n, f"user{n}")
    hist = store.history("max_items")
    assert [h.value for h in hist] == [5, 4, 3]
    assert all(a.modified_at >= b.modified_at for a, b in zip(hist, hist[1:]))
    assert memory.snapshot().version == 5


def test_backwards_clock_keeps_history_ordered(store, clock):
    store.update("dark_mode", True, "a")
    first = store.history("dark_mode")[0].modified_at
    clock.advance(-3600)
    store.update("dark_mode", False, "b")
    hist = store.history("dark_mode")
    assert hist[0].modified_at >= hist[1].modified_at
    assert hist[0].modified_at == first


def test_update_preserves_unknown_keys(store, memory, clock):
    memory.save(
        Snapshot(
            version=3,
            date=clock(),
            toggles={"from_newer_release": SnapshotEntry(value={"anything": [1]})},
        )
    )
    store.update("region", "us", "alice")
    saved = memory.snapshot()
    assert saved.version == 4
    assert saved.toggles["from_newer_release"].value == {"anything": [1]}
    assert saved.toggles["region"].value == "us"


def test_update_picks_up_other_writers(definitions, memory):
    a = ToggleStore(definitions, memory, logger=DummyLogger())
    b = ToggleStore(definitions, memory, logger=DummyLogger())
    a.update("dark_mode", True, "a")
    b.update("max_items", 5, "b")

    saved = memory.snapshot()
    assert saved.toggles["dark_mode"].value is True
    assert saved.toggles["max_items"].value == 5
    assert b.read("dark_mode") is True
    assert a.read("max_items") == 10
    a.reload()
    assert a.read("max_items") == 5


def test_concurrent_updates_to_different_keys_all_persist(store, memory):
    errors = []

    def worker(key, values):
        try:
            for v in values:
                store.update(key, v, key)
        except Exception as e:  # noqa: BLE001
            errors.append(e)

    t1 = threading.Thread(target=worker, args=("dark_mode", [True, False] * 5))
    t2 = threading.Thread(target=worker, args=("max_items", list(range(11, 21))))
    t1.start()
    t2.start()
    t1.join(10)
    t2.join(10)

    assert errors == []
    saved = memory.snapshot()
    assert saved.version == 20
    assert saved.toggles["dark_mode"].value is False
    assert saved.toggles["max_items"].value == 20
    assert len(saved.toggles["dark_mode"].history) == 10
    assert len(saved.toggles["max_items"].history) == 10


def test_readers_never_see_a_torn_reload():
    defs = [
        ToggleDefinition(key="x", codec=IntValue(), default=0),
        ToggleDefinition(key="y", codec=IntValue(), default=0),
    ]
    memory = MemoryPersistence()
    store = ToggleStore(defs, memory, logger=DummyLogger())
    stop = threading.Event()
    torn = []

    def reader():
        while not stop.is_set():
            vals = store.values()
            if vals["x"] != vals["y"]:
                torn.append(vals)

    readers = [threading.Thread(target=reader) for _ in range(3)]
    for t in readers:
        t.start()
    try:
        for i in range(1, 101):
            memory.save(Snapshot(version=i, toggles={"x": SnapshotEntry(value=i), "y": SnapshotEntry(value=i)}))
            store.reload()
    finally:
        stop.set()
        for t in readers:
            t.join(5)
    assert torn == []
    assert store.values() == {"x": 100, "y": 100}


def test_save_failure_leaves_memory_untouched(definitions):
    p = FlakyPersistence()
    store = ToggleStore(definitions, p, logger=DummyLogger())
    store.update("dark_mode", True, "a")
    p.fail_save = True
    with pytest.raises(BackendError) as ei:
        store.update("dark_mode", False, "b")
    assert ei.value.operation == "save"
    assert store.read("dark_mode") is True
    assert len(store.history("dark_mode")) == 1
    assert store.current_version() == 1


def test_reload_failure_aborts_update(definitions):
    p = FlakyPersistence()
    store = ToggleStore(definitions, p, logger=DummyLogger())
    p.fail_load = True
    with pytest.raises(BackendError):
        store.update("dark_mode", True, "a")
    assert p.saves == 0
    assert store.read("dark_mode") is False
    assert store.last_reload().status == ReloadStatus.FAILED


def test_backend_timeout(definitions):
    p = BlockingPersistence()
    store = ToggleStore(definitions, p, logger=DummyLogger(), backend_timeout_seconds=0.05)
    try:
        with pytest.raises(BackendTimeoutError):
            store.reload()
        assert store.last_reload().status == ReloadStatus.FAILED
        assert store.read("dark_mode") is False
    finally:
        p.release.set()


def test_reads_do_not_wait_for_backend_io(definitions):
    p = BlockingPersistence()
    store = ToggleStore(definitions, p, logger=DummyLogger())
    t = threading.Thread(target=store.reload)
    t.start()
    try:
        assert p.entered.wait(2.0)
        assert store.read("region") == "eu"
        assert store.values()["max_items"] == 10
    finally:
        p.release.set()
        t.join(5)


def test_definition_view(store):
    view = store.definition("region")
    assert view.key == "region"
    assert view.default == "eu"
    assert view.format == {"kind": "string", "tag": "str", "string": {"kind": "choices", "choices": ["eu", "us"]}}
    assert [v.key for v in store.definitions()] == ["dark_mode", "max_items", "region", "admins"]
    assert store.keys() == ["dark_mode", "max_items", "region", "admins"]


def test_duplicate_keys_rejected():
    d = ToggleDefinition(key="a", codec=BoolValue(), default=False)
    with pytest.raises(SchemaMismatch):
        ToggleStore([d, d])


def test_invalid_default_rejected():
    with pytest.raises(SchemaMismatch):
        ToggleStore([ToggleDefinition(key="a", codec=IntValue(minimum=5), default=1)])


def test_audit_line_written_on_update(definitions, memory, tmp_path):
    path = tmp_path / "audit.jsonl"
    store = ToggleStore(definitions, memory, logger=DummyLogger(), audit_logger=ToggleAuditLogger(str(path)))
    store.update("max_items", 42, "alice")
    with pytest.raises(ValidationError):
        store.update("max_items", 0, "alice")
    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    rec = json.loads(lines[0])
    assert rec["event"] == "toggle.updated"
    assert rec["key"] == "max_items"
    assert rec["modified_by"] == "alice"
    assert rec["version"] == 1
    assert rec["details"]["value_overview"] == "42"


def test_naive_timestamps_read_as_utc(store, memory):
    memory.data = json.dumps(
        {
            "version": 1,
            "date": "2026-01-01T00:00:00",
            "toggles": {"dark_mode": {"value": True, "modified_at": "2026-01-01T00:00:00", "history": []}},
        }
    ).encode("utf-8")
    store.reload()
    modified_at = store.definition("dark_mode").modified_at
    assert modified_at.utcoffset() == timedelta(0)

import json

import pytest
from conftest import ADDRESS, USER

from schemagraph.builder.session import BuilderSession
from schemagraph.builder.storage import FileSnapshotStorage, load_snapshot
from schemagraph.exceptions import StorageError
from schemagraph.types import Connection, GraphSnapshot, Instance, Position


@pytest.fixture
def snapshot():
    return GraphSnapshot(
        instances=[
            Instance(id="user-1", schema_path=USER, position=Position(x=1, y=2), values={"name": "Al"}),
            Instance(id="address-1", schema_path=ADDRESS, position=Position(x=3, y=4)),
        ],
        connections=[
            Connection(id="conn-1", source_id="user-1", target_id="address-1", property_path="address"),
        ],
    )


def raw_instance(instance_id, **overrides):
    return {"id": instance_id, "schemaPath": USER, "position": {"x": 0, "y": 0}, **overrides}


# --- load_snapshot ---

def test_load_snapshot_accepts_wire_format(snapshot):
    loaded = load_snapshot(snapshot.model_dump(by_alias=True))
    assert loaded == snapshot
    assert load_snapshot(snapshot) == snapshot


def test_load_snapshot_defaults_missing_values():
    loaded = load_snapshot({"instances": [raw_instance("user-1")], "connections": []})
    assert loaded.instances[0].values == {}


@pytest.mark.parametrize(
    "raw",
    [
        None,
        [],
        {"instances": []},
        {"instances": {}, "connections": []},
        {"instances": [{"id": "user-1", "schemaPath": USER}], "connections": []},
        {"instances": [raw_instance("")], "connections": []},
        {"instances": [raw_instance("user-1"), raw_instance("user-1")], "connections": []},
        {"instances": [raw_instance("user-1")], "connections": [{"id": "c", "sourceId": "user-1"}]},
        {
            "instances": [raw_instance("user-1")],
            "connections": [{"id": "c", "sourceId": "user-1", "targetId": "user-2"}],
        },
    ],
    ids=[
        "none",
        "list",
        "no-connections",
        "instances-not-list",
        "no-position",
        "empty-id",
        "duplicate-id",
        "no-target",
        "dangling-target",
    ],
)
def test_load_snapshot_rejects(raw):
    assert load_snapshot(raw) is None


# --- FileSnapshotStorage ---

def test_save_and_load(tmp_path, snapshot):
    storage = FileSnapshotStorage(tmp_path)
    path = storage.save(snapshot)
    assert path == tmp_path / "builder-state.json"
    assert storage.exists()

    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert on_disk["instances"][0]["schemaPath"] == USER
    assert on_disk["connections"][0]["sourceId"] == "user-1"
    assert on_disk["lastSaved"]

    loaded = storage.load()
    assert loaded.instances == snapshot.instances
    assert loaded.connections == snapshot.connections
    assert loaded.last_saved == on_disk["lastSaved"]
    assert snapshot.last_saved is None


def test_named_snapshots_are_separate(tmp_path, snapshot):
    storage = FileSnapshotStorage(tmp_path / "nested")
    storage.save(snapshot, name="a")
    assert storage.exists("a")
    assert not storage.exists("b")
    assert storage.load("b") is None


def test_load_discards_corrupt_file(tmp_path):
    storage = FileSnapshotStorage(tmp_path)
    storage.path().write_text("{not json", encoding="utf-8")
    assert storage.load() is None
    assert not storage.exists()


def test_load_discards_invalid_snapshot(tmp_path):
    storage = FileSnapshotStorage(tmp_path)
    storage.path().write_text(json.dumps({"instances": "x", "connections": []}), encoding="utf-8")
    assert storage.load() is None
    assert not storage.exists()


def test_clear(tmp_path, snapshot):
    storage = FileSnapshotStorage(tmp_path)
    storage.save(snapshot)
    storage.clear()
    assert not storage.exists()
    storage.clear()


def test_save_failure_raises_storage_error(tmp_path, snapshot):
    blocker = tmp_path / "file"
    blocker.write_text("", encoding="utf-8")
    storage = FileSnapshotStorage(blocker / "sub")
    with pytest.raises(StorageError) as exc_info:
        storage.save(snapshot)
    assert exc_info.value.path.endswith("builder-state.json")


def test_session_autosave_through_events(tmp_path, session, catalog):
    storage = FileSnapshotStorage(tmp_path)
    session.events.subscribe("*", lambda _event, _payload: storage.save(session.snapshot()))
    session.create_instance(USER, Position(x=0, y=0), {"name": "Al"})
    session.create_instance(ADDRESS, Position(x=0, y=0))
    session.propose_connection("user-1", "address-1", "address")

    fresh = BuilderSession(catalog)
    assert fresh.restore(storage.load())
    assert len(fresh.instances) == 2
    assert len(fresh.connections) == 1

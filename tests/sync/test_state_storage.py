"""
Unit tests for the key/value stores and checkpoint persistence.
"""

import pytest

from sync.checkpoint import Checkpoint, CheckpointStore
from sync.storage import JsonFileStore, SqlKeyValueStore, StorageError, create_store


@pytest.fixture(params=["json", "sql"])
def store(request, tmp_path):
    if request.param == "json":
        return JsonFileStore(str(tmp_path / "state" / "sync.json"))
    return SqlKeyValueStore(f"sqlite:///{tmp_path / 'state.db'}")


class TestKeyValueStores:
    def test_put_get_delete(self, store):
        assert store.get("k") is None

        store.put("k", "one")
        store.put("k", "two")
        assert store.get("k") == "two"

        store.delete("k")
        store.delete("k")
        assert store.get("k") is None

    def test_json_store_survives_new_instance(self, tmp_path):
        path = str(tmp_path / "sync.json")
        JsonFileStore(path).put("checkpoint:job", "{}")

        assert JsonFileStore(path).get("checkpoint:job") == "{}"

    def test_json_store_corrupt_file(self, tmp_path):
        path = tmp_path / "sync.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(StorageError):
            JsonFileStore(str(path)).get("k")

    def test_create_store_picks_backend(self, tmp_path):
        assert isinstance(create_store(str(tmp_path / "s.json")), JsonFileStore)
        assert isinstance(
            create_store(str(tmp_path / "s.json"), f"sqlite:///{tmp_path / 's.db'}"), SqlKeyValueStore
        )


class TestCheckpointStore:
    def test_save_load_clear(self, store):
        checkpoints = CheckpointStore(store)
        checkpoints.save(Checkpoint(job="member-sync", cursor=37, total=100))

        loaded = checkpoints.load("member-sync")
        assert (loaded.job, loaded.cursor, loaded.total) == ("member-sync", 37, 100)
        assert checkpoints.load("group-sync") is None

        checkpoints.clear("member-sync")
        assert checkpoints.load("member-sync") is None

    def test_advance_keeps_total(self):
        assert Checkpoint(job="j", cursor=0, total=10).advance(4).total == 10

    def test_last_key_survives_round_trip(self, store):
        checkpoints = CheckpointStore(store)
        checkpoints.save(Checkpoint(job="lifecycle-sync", cursor=3, total=9).advance(4, "d@example.org"))

        assert checkpoints.load("lifecycle-sync").last_key == "d@example.org"

    @pytest.mark.parametrize("raw", ["not json", '{"job": "j"}', '{"job": "j", "cursor": -1, "total": 5}'])
    def test_invalid_checkpoint_rejected(self, raw):
        with pytest.raises(StorageError):
            Checkpoint.from_json(raw)

"""Tests for cleanup state stores."""

import json

import pytest

from photo_triage.core.config import CleanupSettings
from photo_triage.storage import JsonFileStore, MemoryStore, SqlStore, create_store


@pytest.fixture(params=["memory", "json", "sqlite"])
def state_store(request, temp_dir):
    """Each store backend, backed by the temp directory where relevant."""
    if request.param == "memory":
        store = MemoryStore()
    elif request.param == "json":
        store = JsonFileStore(temp_dir / "state.json")
    else:
        store = SqlStore(f"sqlite:///{temp_dir / 'state.db'}")
    yield store
    store.close()


class TestStateStoreContract:
    """Behavior shared by every backend."""

    def test_get_missing_returns_none(self, state_store):
        """Test reading an unknown key."""
        assert state_store.get("catalog/none") is None

    def test_put_and_get(self, state_store):
        """Test a value can be stored and read back."""
        state_store.put("checkpoint/Trip", {"orderedGroupIds": ["g1"], "index": 2})
        assert state_store.get("checkpoint/Trip") == {
            "orderedGroupIds": ["g1"],
            "index": 2,
        }

    def test_put_replaces_value(self, state_store):
        """Test last write wins."""
        state_store.put("checkpoint/Trip", {"index": 1})
        state_store.put("checkpoint/Trip", {"index": 3})
        assert state_store.get("checkpoint/Trip") == {"index": 3}

    def test_returned_values_are_copies(self, state_store):
        """Test mutating a returned value does not change the store."""
        state_store.put("catalog/Trip", {"groups": [{"id": "g1"}]})
        value = state_store.get("catalog/Trip")
        value["groups"].append({"id": "g2"})
        assert state_store.get("catalog/Trip") == {"groups": [{"id": "g1"}]}

    def test_delete(self, state_store):
        """Test deleting present and missing keys."""
        state_store.put("checkpoint/Trip", {"index": 1})
        state_store.delete("checkpoint/Trip")
        state_store.delete("checkpoint/Trip")
        assert state_store.get("checkpoint/Trip") is None

    def test_keys_by_prefix(self, state_store):
        """Test listing keys by prefix."""
        state_store.put("catalog/B", {})
        state_store.put("catalog/A", {})
        state_store.put("checkpoint/A", {})
        assert state_store.keys("catalog/") == ["catalog/A", "catalog/B"]
        assert len(state_store.keys()) == 3

    def test_keys_prefix_is_literal(self, state_store):
        """Test wildcard characters in a prefix match literally."""
        state_store.put("catalog/2024_06", {})
        state_store.put("catalog/2024-06", {})
        assert state_store.keys("catalog/2024_") == ["catalog/2024_06"]


class TestJsonFileStore:
    """Tests specific to the JSON file store."""

    def test_persists_across_instances(self, temp_dir):
        """Test a new store reads what an earlier one wrote."""
        path = temp_dir / "state.json"
        JsonFileStore(path).put("catalog/Trip", {"groups": []})

        assert JsonFileStore(path).get("catalog/Trip") == {"groups": []}

    def test_document_layout(self, temp_dir):
        """Test entries are written under an entries key."""
        path = temp_dir / "state.json"
        JsonFileStore(path).put("checkpoint/Trip", {"index": 0})

        with open(path) as f:
            document = json.load(f)
        assert document["entries"] == {"checkpoint/Trip": {"index": 0}}
        assert "last_updated" in document

    def test_creates_backup_on_overwrite(self, temp_dir):
        """Test the previous document is kept as a hidden backup."""
        path = temp_dir / "state.json"
        store = JsonFileStore(path)
        store.put("checkpoint/Trip", {"index": 0})
        store.put("checkpoint/Trip", {"index": 1})

        assert store.backup_file.exists()
        assert store.backup_file.name == ".state.json.backup"
        assert not path.with_suffix(".tmp").exists()

    def test_recovers_from_backup(self, temp_dir):
        """Test a corrupted document falls back to the backup."""
        path = temp_dir / "state.json"
        store = JsonFileStore(path)
        store.put("checkpoint/Trip", {"index": 0})
        store.put("checkpoint/Trip", {"index": 1})

        path.write_text("{not json")

        recovered = JsonFileStore(path)
        assert recovered.get("checkpoint/Trip") == {"index": 0}

    def test_corrupted_without_backup_raises(self, temp_dir):
        """Test a corrupted document without a backup is an error."""
        path = temp_dir / "state.json"
        path.write_text("{not json")

        with pytest.raises(ValueError):
            JsonFileStore(path).get("checkpoint/Trip")


class TestCreateStore:
    """Tests for backend selection."""

    def test_memory_backend(self):
        settings = CleanupSettings(_env_file=None, store_backend="memory")
        assert isinstance(create_store(settings), MemoryStore)

    def test_json_backend(self, temp_dir):
        settings = CleanupSettings(
            _env_file=None, store_backend="json", state_dir=temp_dir
        )
        store = create_store(settings)
        assert isinstance(store, JsonFileStore)
        assert store.path == temp_dir / "cleanup_state.json"

    def test_sqlite_backend(self, temp_dir):
        settings = CleanupSettings(
            _env_file=None, store_backend="sqlite", state_dir=temp_dir / "nested"
        )
        store = create_store(settings)
        try:
            assert isinstance(store, SqlStore)
            store.put("catalog/Trip", {"groups": []})
            assert (temp_dir / "nested" / "cleanup_state.db").exists()
        finally:
            store.close()

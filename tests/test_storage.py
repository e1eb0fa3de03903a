"""
Tests for the desired-state key-value stores.
"""

import json
from pathlib import Path

import pytest

from portswitch.core.domain.state import PersistedConfig
from portswitch.infrastructure.storage.store import JsonFileStore, KeyValueStore, MemoryStore


class TestKeyValueStore:
    """Test cases for the store base class."""

    def test_flush_is_abstract(self) -> None:
        with pytest.raises(TypeError):
            KeyValueStore()  # type: ignore[abstract]

    def test_subclass_must_implement_flush(self) -> None:
        class Incomplete(KeyValueStore):
            pass

        with pytest.raises(TypeError):
            Incomplete()  # type: ignore[abstract]


class TestMemoryStore:
    """Test cases for MemoryStore."""

    def test_initial_values(self) -> None:
        store = MemoryStore({"port": 8080})

        assert store["port"] == 8080
        assert len(store) == 1
        assert store.flush_count == 0

    def test_update_flushes_once(self) -> None:
        """Saving a config writes both fields in one flush."""
        store = MemoryStore()

        PersistedConfig(port=8080, listening=True).save(store)

        assert store.snapshot() == {"port": 8080, "listening": True}
        assert store.flush_count == 1

    def test_setitem_and_delitem_flush(self) -> None:
        store = MemoryStore()

        store["port"] = 1
        del store["port"]

        assert "port" not in store
        assert store.flush_count == 2

    def test_missing_key(self) -> None:
        with pytest.raises(KeyError):
            MemoryStore()["port"]


class TestJsonFileStore:
    """Test cases for JsonFileStore."""

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        """First run has no record."""
        store = JsonFileStore(tmp_path / "state.json")

        assert len(store) == 0
        assert PersistedConfig.load(store) == PersistedConfig()

    def test_write_creates_parent_directories(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "dir" / "state.json"
        store = JsonFileStore(path)

        PersistedConfig(port=8443, listening=True).save(store)

        assert json.loads(path.read_text(encoding="utf-8")) == {"port": 8443, "listening": True}

    def test_survives_reopen(self, tmp_path: Path) -> None:
        """A second store on the same file sees what the first wrote."""
        path = tmp_path / "state.json"
        PersistedConfig(port=1234, listening=True).save(JsonFileStore(path))

        reopened = JsonFileStore(path)

        assert PersistedConfig.load(reopened) == PersistedConfig(1234, True)

    def test_no_temporary_files_left(self, tmp_path: Path) -> None:
        store = JsonFileStore(tmp_path / "state.json")

        store["port"] = 1
        store["listening"] = False

        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]

    @pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]", ""])
    def test_corrupt_file_is_empty(self, tmp_path: Path, content: str) -> None:
        """Unreadable records fall back to an empty store."""
        path = tmp_path / "state.json"
        path.write_text(content, encoding="utf-8")

        store = JsonFileStore(path)

        assert store.snapshot() == {}
        assert PersistedConfig.load(store) == PersistedConfig()

    def test_corrupt_file_is_replaced_on_write(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text("garbage", encoding="utf-8")
        store = JsonFileStore(path)

        PersistedConfig().save(store)

        assert json.loads(path.read_text(encoding="utf-8")) == {"port": 9090, "listening": False}

    def test_reload_picks_up_external_changes(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        store = JsonFileStore(path)
        path.write_text(json.dumps({"port": 7000}), encoding="utf-8")

        store.reload()

        assert store["port"] == 7000
        assert store.path == path

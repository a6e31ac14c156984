"""
Tests for credential and connection-history stores.
"""

from __future__ import annotations

from nodepilot.stores import JsonHistoryStore, MemoryCredentialStore, MemoryHistoryStore


class TestMemoryCredentialStore:
    def test_empty_by_default(self):
        assert MemoryCredentialStore().load_credentials() is None

    def test_save_and_clear(self):
        store = MemoryCredentialStore()
        store.save_credentials("user", "pass")
        assert store.load_credentials() == ("user", "pass")

        store.clear_credentials()
        assert store.load_credentials() is None

    def test_preloaded(self):
        assert MemoryCredentialStore("u", "p").load_credentials() == ("u", "p")


class TestMemoryHistoryStore:
    def test_duplicates_recorded_once(self):
        store = MemoryHistoryStore()
        store.record_connection("127.0.0.1:8332")
        store.record_connection("10.0.0.2:8332")
        store.record_connection("127.0.0.1:8332")

        assert store.list_history() == ["127.0.0.1:8332", "10.0.0.2:8332"]

    def test_clear(self):
        store = MemoryHistoryStore()
        store.record_connection("127.0.0.1:8332")
        store.clear_history()
        assert store.list_history() == []


class TestJsonHistoryStore:
    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "nested" / "history.json"
        JsonHistoryStore(path).record_connection("127.0.0.1:8332")
        JsonHistoryStore(path).record_connection("127.0.0.1:8332")

        assert JsonHistoryStore(path).list_history() == ["127.0.0.1:8332"]

    def test_missing_file_is_empty(self, tmp_path):
        assert JsonHistoryStore(tmp_path / "absent.json").list_history() == []

    def test_corrupt_file_is_ignored(self, tmp_path):
        path = tmp_path / "history.json"
        path.write_text("{not json")

        store = JsonHistoryStore(path)

        assert store.list_history() == []
        store.record_connection("node:8332")
        assert store.list_history() == ["node:8332"]

    def test_clear_removes_file(self, tmp_path):
        path = tmp_path / "history.json"
        store = JsonHistoryStore(path)
        store.record_connection("node:8332")

        store.clear_history()

        assert not path.exists()
        assert store.list_history() == []

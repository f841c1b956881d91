"""Tests for the local cache store."""

import json

from conftest import make_book, make_transaction
from pettycash.models.audit import AuditEventType
from pettycash.services.storage import InMemoryBackend, JsonFileBackend, LocalCacheStore
from pettycash.services.storage.local_cache import (
    ALL_KEYS,
    STORAGE_KEY_BOOKS,
    STORAGE_KEY_CURRENT_BOOK,
    STORAGE_KEY_TRANSACTIONS,
    migrate_transaction_record,
)


class BrokenBackend(InMemoryBackend):
    """Every write fails."""

    def set(self, key, value):
        raise OSError("disk full")


class TestBooks:
    """Tests for the book collection."""

    def test_default_book_is_synthesized_and_persisted(self, local_store, backend):
        """Test that an empty cache yields and stores the default book."""
        books = local_store.load_books()
        assert [(b.id, b.name) for b in books] == [("default-book", "Main Cashbook")]
        stored = json.loads(backend.data[STORAGE_KEY_BOOKS])
        assert stored[0]["id"] == "default-book"
        assert "createdAt" in stored[0]

    def test_default_book_is_stable_across_loads(self, local_store):
        """Test that a second load returns the same default book, not a new one."""
        first = local_store.load_books()
        second = local_store.load_books()

        assert second == first
        assert second[0].created_at == first[0].created_at

    def test_saved_books_round_trip(self, local_store):
        """Test that books come back in order."""
        local_store.save_books([make_book("a", "A"), make_book("b", "B")])
        assert [b.id for b in local_store.load_books()] == ["a", "b"]

    def test_corrupt_books_read_as_empty(self, backend, audit_logger):
        """Test that unparseable JSON is logged and yields no books."""
        backend.data[STORAGE_KEY_BOOKS] = "{not json"
        store = LocalCacheStore(backend=backend, audit_logger=audit_logger)

        assert store.load_books() == []
        assert audit_logger.history[-1].event_type == AuditEventType.LOCAL_READ_FAILED

    def test_default_book_overrides(self, backend):
        """Test that the default book id and name are configurable."""
        store = LocalCacheStore(backend=backend, default_book_id="main", default_book_name="Cash")
        assert [(b.id, b.name) for b in store.load_books()] == [("main", "Cash")]


class TestTransactions:
    """Tests for the transaction collection."""

    def test_missing_key_reads_as_empty(self, local_store):
        """Test that nothing stored means no transactions."""
        assert local_store.load_transactions() == []

    def test_stored_shape_is_camel_case(self, local_store, backend):
        """Test that records are stored with bookId."""
        local_store.save_transactions([make_transaction()])
        stored = json.loads(backend.data[STORAGE_KEY_TRANSACTIONS])
        assert stored[0]["bookId"] == "default-book"
        assert stored[0]["type"] == "EXPENSE"

    def test_legacy_attachment_is_migrated(self, backend, local_store):
        """Test that a single legacy attachment moves into the list."""
        backend.data[STORAGE_KEY_TRANSACTIONS] = json.dumps([{
            "id": "t1",
            "bookId": "default-book",
            "date": "2024-01-02T00:00:00.000Z",
            "description": "Old",
            "amount": 3,
            "type": "EXPENSE",
            "category": "Transport",
            "attachment": "data:image/jpeg;base64,AAAA",
        }])

        [tx] = local_store.load_transactions()
        assert tx.attachments == ["data:image/jpeg;base64,AAAA"]

    def test_corrupt_transactions_read_as_empty(self, backend, audit_logger):
        """Test that a bad record is logged and yields an empty list."""
        backend.data[STORAGE_KEY_TRANSACTIONS] = json.dumps([{"id": "t1"}])
        store = LocalCacheStore(backend=backend, audit_logger=audit_logger)

        assert store.load_transactions() == []
        assert audit_logger.history[-1].event_type == AuditEventType.LOCAL_READ_FAILED


class TestMigration:
    """Tests for the legacy record upgrade."""

    def test_existing_list_wins(self):
        """Test that a non-empty attachments list is kept."""
        record = migrate_transaction_record({"attachment": "old", "attachments": ["new"]})
        assert record["attachments"] == ["new"]
        assert "attachment" not in record

    def test_null_list_becomes_empty(self):
        """Test that null attachments become an empty list."""
        assert migrate_transaction_record({"attachments": None})["attachments"] == []

    def test_input_is_not_mutated(self):
        """Test that the original dict is untouched."""
        original = {"attachment": "old"}
        migrate_transaction_record(original)
        assert original == {"attachment": "old"}


class TestSelectionAndClear:
    """Tests for the selected book id and logout."""

    def test_selected_book_round_trip(self, local_store):
        """Test the scalar key."""
        assert local_store.load_selected_book_id() is None
        local_store.save_selected_book_id("b2")
        assert local_store.load_selected_book_id() == "b2"

    def test_clear_removes_every_key(self, local_store, backend):
        """Test that logout leaves no key behind."""
        local_store.load_books()
        local_store.save_transactions([make_transaction()])
        local_store.save_selected_book_id("default-book")

        local_store.clear()

        assert not any(key in backend.data for key in ALL_KEYS)

    def test_write_failures_are_swallowed(self, audit_logger):
        """Test that a failing backend never raises to the caller."""
        store = LocalCacheStore(backend=BrokenBackend(), audit_logger=audit_logger)

        store.save_transactions([make_transaction()])
        store.save_selected_book_id("x")

        failed = [e for e in audit_logger.history if e.event_type == AuditEventType.LOCAL_WRITE_FAILED]
        assert [e.entity_id for e in failed] == [STORAGE_KEY_TRANSACTIONS, STORAGE_KEY_CURRENT_BOOK]


class TestJsonFileBackend:
    """Tests for the file-per-key backend."""

    def test_round_trip(self, tmp_path):
        """Test set, get and delete on disk."""
        backend = JsonFileBackend(tmp_path / "cache")
        assert backend.get("k") is None

        backend.set("k", "[1, 2]")
        assert backend.get("k") == "[1, 2]"
        assert (tmp_path / "cache" / "k.json").exists()

        backend.delete("k")
        assert backend.get("k") is None

    def test_store_survives_reopen(self, tmp_path):
        """Test that a second store sees the first store's data."""
        LocalCacheStore(backend=JsonFileBackend(tmp_path)).save_books([make_book("a", "A")])
        reopened = LocalCacheStore(backend=JsonFileBackend(tmp_path))
        assert [b.id for b in reopened.load_books()] == ["a"]

    def test_default_directory_from_settings(self, tmp_path):
        """Test that the cache directory comes from PETTYCASH_CACHE_DIR."""
        backend = JsonFileBackend()
        backend.set("k", "v")
        assert (tmp_path / "cache" / "k.json").read_text() == "v"

"""
Local Cache Store

DESIGN DECISION: The local cache is a key-value store of whole collections.
Each collection (transactions, books) is read and written as a single JSON
snapshot, and the selected book id is a plain string. There are no partial
updates and no queries - callers filter in Python.

FAILURE POLICY: Local persistence is best-effort.
- Read failures return an empty collection (or None for the scalar)
- Write failures are logged and swallowed, never raised to the caller
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import TypeAdapter

from pettycash.audit import AuditLogger
from pettycash.config import get_settings
from pettycash.models.ledger import Book, Transaction, utc_now_iso
from pettycash.services.storage.interface import KeyValueBackend


STORAGE_KEY_TRANSACTIONS = "petty_cash_transactions"
STORAGE_KEY_BOOKS = "petty_cash_books"
STORAGE_KEY_CURRENT_BOOK = "petty_cash_current_book_id"

ALL_KEYS = (
    STORAGE_KEY_TRANSACTIONS,
    STORAGE_KEY_BOOKS,
    STORAGE_KEY_CURRENT_BOOK,
)

_transactions_adapter = TypeAdapter(list[Transaction])
_books_adapter = TypeAdapter(list[Book])


class InMemoryBackend:
    """Dict-backed key-value store for tests and ephemeral sessions."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileBackend:
    """
    One file per key under a directory.

    Writes go to a temporary file first and are then renamed over the
    target, so a crash never leaves a half-written snapshot.
    """

    def __init__(self, directory: Optional[Path] = None):
        self._directory = Path(directory) if directory else get_settings().app.cache_path

    def _path(self, key: str) -> Path:
        return self._directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._directory, prefix=f".{key}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            os.replace(tmp, self._path(key))
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


def migrate_transaction_record(record: dict) -> dict:
    """
    Upgrade a stored transaction dict to the current shape.

    Legacy records carry a single `attachment` field. It is moved into
    the `attachments` list when that list is missing or empty.
    """
    record = dict(record)
    legacy = record.pop("attachment", None)
    if legacy and not record.get("attachments"):
        record["attachments"] = [legacy]
    elif record.get("attachments") is None:
        record["attachments"] = []
    return record


class LocalCacheStore:
    """
    Whole-collection persistence for books, transactions and the
    selected book id.
    """

    def __init__(
        self,
        backend: Optional[KeyValueBackend] = None,
        audit_logger: Optional[AuditLogger] = None,
        default_book_id: Optional[str] = None,
        default_book_name: Optional[str] = None,
    ):
        app_settings = get_settings().app
        self._backend = backend if backend is not None else JsonFileBackend()
        self._audit_logger = audit_logger or AuditLogger()
        self._default_book_id = default_book_id or app_settings.default_book_id
        self._default_book_name = default_book_name or app_settings.default_book_name

    def _write(self, key: str, value: str) -> None:
        try:
            self._backend.set(key, value)
        except Exception as e:
            self._audit_logger.log_local_write_failed(key, str(e))

    def _read(self, key: str) -> Optional[str]:
        # Read errors are left to the caller, which maps them to empty results
        return self._backend.get(key)

    # -- transactions --------------------------------------------------------

    def load_transactions(self) -> list[Transaction]:
        """Load all transactions, applying the legacy attachment migration."""
        try:
            raw = self._read(STORAGE_KEY_TRANSACTIONS)
            records = json.loads(raw) if raw else []
            return _transactions_adapter.validate_python(
                [migrate_transaction_record(r) for r in records]
            )
        except Exception as e:
            self._audit_logger.log_local_read_failed(STORAGE_KEY_TRANSACTIONS, str(e))
            return []

    def save_transactions(self, transactions: list[Transaction]) -> None:
        payload = _transactions_adapter.dump_json(list(transactions), by_alias=True)
        self._write(STORAGE_KEY_TRANSACTIONS, payload.decode("utf-8"))

    # -- books ---------------------------------------------------------------

    def load_books(self) -> list[Book]:
        """
        Load all books.

        Never returns an empty list on a successful read: if nothing is
        stored, a default book is created, persisted and returned.
        """
        try:
            raw = self._read(STORAGE_KEY_BOOKS)
            books = _books_adapter.validate_json(raw) if raw else []
        except Exception as e:
            self._audit_logger.log_local_read_failed(STORAGE_KEY_BOOKS, str(e))
            return []

        if not books:
            default_book = Book(
                id=self._default_book_id,
                name=self._default_book_name,
                created_at=utc_now_iso(),
            )
            self.save_books([default_book])
            return [default_book]
        return books

    def save_books(self, books: list[Book]) -> None:
        payload = _books_adapter.dump_json(list(books), by_alias=True)
        self._write(STORAGE_KEY_BOOKS, payload.decode("utf-8"))

    # -- selected book -------------------------------------------------------

    def load_selected_book_id(self) -> Optional[str]:
        try:
            return self._read(STORAGE_KEY_CURRENT_BOOK) or None
        except Exception as e:
            self._audit_logger.log_local_read_failed(STORAGE_KEY_CURRENT_BOOK, str(e))
            return None

    def save_selected_book_id(self, book_id: str) -> None:
        self._write(STORAGE_KEY_CURRENT_BOOK, book_id)

    # -- session -------------------------------------------------------------

    def clear(self) -> None:
        """Remove every persisted key (used on logout)."""
        for key in ALL_KEYS:
            try:
                self._backend.delete(key)
            except Exception as e:
                self._audit_logger.log_local_write_failed(key, str(e))

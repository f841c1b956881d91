"""
Shared fixtures for the Petty Cash Ledger tests.

No real API calls: the remote ledger and attachment storage are
replaced by in-memory fakes that record every call.
"""

from types import SimpleNamespace
from typing import Optional

import pytest

from pettycash.audit import AuditLogger
from pettycash.config import get_settings
from pettycash.models.ledger import Book, Transaction, TransactionType
from pettycash.orchestrator import LedgerCoordinator
from pettycash.services.storage import (
    AttachmentStorageInterface,
    InMemoryBackend,
    LocalCacheStore,
    RemoteLedgerInterface,
    StorageError,
)
from pettycash.session import SessionGate


REMOTE_URL_PREFIX = "https://res.cloudinary.com/demo/image/upload/"


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Fresh settings per test, no real keys, cache files under tmp_path."""
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setenv("PETTYCASH_CACHE_DIR", str(tmp_path / "cache"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class FakeRemoteLedger(RemoteLedgerInterface):
    """In-memory remote tables. Operations named in fail_on raise StorageError."""

    def __init__(self):
        self.books: dict[str, tuple[str, Book]] = {}
        self.transactions: dict[str, Transaction] = {}
        self.calls: list[tuple[str, Optional[str]]] = []
        self.fail_on: set[str] = set()

    def _record(self, operation: str, entity_id: Optional[str] = None):
        self.calls.append((operation, entity_id))
        if operation in self.fail_on:
            raise StorageError(f"{operation} failed")

    def operations(self) -> list[str]:
        return [op for op, _ in self.calls]

    async def fetch_books(self, identity):
        self._record("fetch_books", identity)
        return [book for owner, book in self.books.values() if owner == identity]

    async def upsert_book(self, identity, book):
        self._record("upsert_book", book.id)
        self.books[book.id] = (identity, book)

    async def delete_book(self, book_id):
        self._record("delete_book", book_id)
        return self.books.pop(book_id, None) is not None

    async def fetch_transactions(self, book_id):
        self._record("fetch_transactions", book_id)
        return [t for t in self.transactions.values() if t.book_id == book_id]

    async def upsert_transaction(self, transaction):
        self._record("upsert_transaction", transaction.id)
        self.transactions[transaction.id] = transaction

    async def delete_transaction(self, transaction_id):
        self._record("delete_transaction", transaction_id)
        return self.transactions.pop(transaction_id, None) is not None


class FakeAttachmentStorage(AttachmentStorageInterface):
    """Pretends to be Cloudinary."""

    def __init__(self):
        self.uploaded: list[bytes] = []
        self.deleted: list[str] = []
        self.fail_upload = False
        self.fail_delete: set[str] = set()

    def is_remote_attachment(self, ref):
        return ref.startswith(REMOTE_URL_PREFIX)

    async def upload_attachment(self, blob, identity):
        if self.fail_upload:
            raise StorageError("upload failed")
        self.uploaded.append(blob)
        return f"{REMOTE_URL_PREFIX}receipts/{identity}/{len(self.uploaded)}.jpg"

    async def delete_attachment(self, url):
        if url in self.fail_delete:
            raise StorageError("delete failed")
        self.deleted.append(url)


class FakeModel:
    """Stands in for a Gemini GenerativeModel."""

    def __init__(self, text: Optional[str] = None, error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.prompts: list[str] = []

    async def generate_content_async(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.text)


def make_transaction(
    tx_id: str = "t1",
    book_id: str = "default-book",
    amount: str = "10",
    type: TransactionType = TransactionType.EXPENSE,
    category: str = "Transport",
    date: str = "2024-03-01T09:00:00.000Z",
    description: str = "Taxi",
    attachments: Optional[list[str]] = None,
) -> Transaction:
    return Transaction(
        id=tx_id,
        book_id=book_id,
        date=date,
        description=description,
        amount=amount,
        type=type,
        category=category,
        attachments=attachments or [],
    )


def make_book(book_id: str = "b2", name: str = "Branch Office") -> Book:
    return Book(id=book_id, name=name, created_at="2024-01-01T00:00:00.000Z")


@pytest.fixture
def backend():
    return InMemoryBackend()


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def local_store(backend, audit_logger):
    return LocalCacheStore(backend=backend, audit_logger=audit_logger)


@pytest.fixture
def remote():
    return FakeRemoteLedger()


@pytest.fixture
def attachments():
    return FakeAttachmentStorage()


@pytest.fixture
def coordinator(local_store, remote, attachments, audit_logger):
    """Signed-out coordinator with a remote configured."""
    return LedgerCoordinator(
        local_store=local_store,
        remote=remote,
        attachments=attachments,
        session=SessionGate(),
        audit_logger=audit_logger,
    )

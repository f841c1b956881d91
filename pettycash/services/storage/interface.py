"""
Abstract Storage Interfaces

DESIGN DECISION: We define abstract interfaces for the remote ledger and
for attachment storage. This allows us to:
1. Swap Google Sheets / Cloudinary for another backend later
2. Use in-memory fakes for testing
3. Keep the reconciliation logic decoupled from any storage vendor

Every remote method requires a signed-in identity. The interfaces do NOT
silently no-op when the identity is absent - that gate lives in the
reconciliation layer.
"""

from abc import ABC, abstractmethod
from typing import Optional, Protocol

from pettycash.models.ledger import Book, Transaction


class KeyValueBackend(Protocol):
    """Opaque string blobs keyed by name (the local cache medium)."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class RemoteLedgerInterface(ABC):
    """
    Abstract interface for the remote books/transactions tables.

    Writes are full-record upserts keyed by the client-generated id.
    """

    @abstractmethod
    async def fetch_books(self, identity: str) -> list[Book]:
        """
        Fetch all books owned by an identity.

        Raises:
            StorageError: If the fetch fails
        """
        pass

    @abstractmethod
    async def upsert_book(self, identity: str, book: Book) -> None:
        """
        Insert or replace a book owned by an identity.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_book(self, book_id: str) -> bool:
        """
        Delete a book row. Transactions are NOT cascaded here.

        Returns:
            True if a row was deleted
        """
        pass

    @abstractmethod
    async def fetch_transactions(self, book_id: str) -> list[Transaction]:
        """
        Fetch all transactions of a book.

        Raises:
            StorageError: If the fetch fails
        """
        pass

    @abstractmethod
    async def upsert_transaction(self, transaction: Transaction) -> None:
        """
        Insert or replace a transaction.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: str) -> bool:
        """
        Delete a transaction row.

        Returns:
            True if a row was deleted
        """
        pass


class AttachmentStorageInterface(ABC):
    """Abstract interface for attachment image storage."""

    @abstractmethod
    async def upload_attachment(self, blob: bytes, identity: str) -> str:
        """
        Store an image and return its public URL.

        Raises:
            AttachmentUploadError: If the upload fails
        """
        pass

    @abstractmethod
    async def delete_attachment(self, url: str) -> None:
        """
        Delete the stored object behind a URL.

        References that are not remote storage URLs are skipped.

        Raises:
            AttachmentDeleteError: If the delete fails
        """
        pass

    @abstractmethod
    def is_remote_attachment(self, ref: str) -> bool:
        """Whether a reference points at an object in this storage."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class IdentityRequiredError(StorageError):
    """A remote operation was attempted without a signed-in identity."""
    pass

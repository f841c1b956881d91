"""
Storage Services Package

Provides the local cache, the abstract remote interfaces and the
Google Sheets remote ledger implementation.
"""

from pettycash.services.storage.interface import (
    AttachmentStorageInterface,
    ConnectionError,
    IdentityRequiredError,
    KeyValueBackend,
    RemoteLedgerInterface,
    StorageError,
)
from pettycash.services.storage.local_cache import (
    InMemoryBackend,
    JsonFileBackend,
    LocalCacheStore,
    migrate_transaction_record,
)
from pettycash.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Interfaces
    "AttachmentStorageInterface",
    "KeyValueBackend",
    "RemoteLedgerInterface",
    # Exceptions
    "ConnectionError",
    "IdentityRequiredError",
    "StorageError",
    # Local cache
    "InMemoryBackend",
    "JsonFileBackend",
    "LocalCacheStore",
    "migrate_transaction_record",
    # Google Sheets implementation
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
]

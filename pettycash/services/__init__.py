"""Services package."""

from pettycash.services.image import (
    AttachmentDeleteError,
    AttachmentError,
    AttachmentUploadError,
    CloudinaryAttachmentStorage,
    InvalidAttachmentError,
)
from pettycash.services.storage import (
    AttachmentStorageInterface,
    ConnectionError,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    IdentityRequiredError,
    InMemoryBackend,
    JsonFileBackend,
    LocalCacheStore,
    RemoteLedgerInterface,
    StorageError,
)

__all__ = [
    # Attachment services
    "AttachmentDeleteError",
    "AttachmentError",
    "AttachmentUploadError",
    "CloudinaryAttachmentStorage",
    "InvalidAttachmentError",
    # Storage services
    "AttachmentStorageInterface",
    "ConnectionError",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "IdentityRequiredError",
    "InMemoryBackend",
    "JsonFileBackend",
    "LocalCacheStore",
    "RemoteLedgerInterface",
    "StorageError",
]

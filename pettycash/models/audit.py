"""
Audit Models for Petty Cash Ledger

Every local write, remote write and sync step produces an audit event.
This provides:
1. Traceability of what reached the remote store and what did not
2. Debugging information when a background write fails
3. A record of swallowed failures, since none of them reach the caller

DESIGN DECISION: Events are logged locally only. They are not persisted
to the remote store.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Session
    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"

    # Local persistence
    LOCAL_WRITE_FAILED = "local_write_failed"
    LOCAL_READ_FAILED = "local_read_failed"

    # Records
    BOOK_SAVED = "book_saved"
    BOOK_DELETED = "book_deleted"
    TRANSACTION_SAVED = "transaction_saved"
    TRANSACTION_DELETED = "transaction_deleted"

    # Remote
    REMOTE_WRITE_COMPLETED = "remote_write_completed"
    REMOTE_WRITE_FAILED = "remote_write_failed"
    REMOTE_SYNC_COMPLETED = "remote_sync_completed"
    REMOTE_SYNC_FAILED = "remote_sync_failed"

    # Attachments
    ATTACHMENT_UPLOADED = "attachment_uploaded"
    ATTACHMENT_UPLOAD_FAILED = "attachment_upload_failed"
    ATTACHMENT_DELETED = "attachment_deleted"
    ATTACHMENT_DELETE_FAILED = "attachment_delete_failed"

    # Validation
    VALIDATION_FAILED = "validation_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """A single audit event."""

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'book', 'transaction', 'attachment')"
    )
    entity_id: Optional[str] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_saved("book", book.id, remote=True)
        event = AuditEventBuilder.remote_write_failed("upsert_book", book.id, error)
    """

    @staticmethod
    def session_started(identity: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_STARTED,
            entity_type="session",
            entity_id=identity,
            description="Session started",
        )

    @staticmethod
    def session_ended() -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_ENDED,
            entity_type="session",
            description="Session ended, local cache cleared",
        )

    @staticmethod
    def local_write_failed(key: str, error: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOCAL_WRITE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="cache_key",
            entity_id=key,
            description=f"Failed to write local cache key {key}",
            error_message=error,
        )

    @staticmethod
    def local_read_failed(key: str, error: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOCAL_READ_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="cache_key",
            entity_id=key,
            description=f"Failed to read local cache key {key}",
            error_message=error,
        )

    @staticmethod
    def record_saved(entity_type: str, entity_id: str, remote: bool) -> AuditEvent:
        event_type = (
            AuditEventType.BOOK_SAVED if entity_type == "book"
            else AuditEventType.TRANSACTION_SAVED
        )
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type.title()} saved locally",
            details={"remote_scheduled": remote},
        )

    @staticmethod
    def record_deleted(
        entity_type: str,
        entity_id: str,
        remote: bool,
        cascaded: int = 0,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.BOOK_DELETED if entity_type == "book"
            else AuditEventType.TRANSACTION_DELETED
        )
        details: dict[str, Any] = {"remote_scheduled": remote}
        if cascaded:
            details["cascaded_transactions"] = cascaded
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type.title()} deleted locally",
            details=details,
        )

    @staticmethod
    def remote_write_completed(operation: str, entity_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_WRITE_COMPLETED,
            severity=AuditSeverity.DEBUG,
            entity_id=entity_id,
            description=f"Remote {operation} completed",
            details={"operation": operation},
        )

    @staticmethod
    def remote_write_failed(operation: str, entity_id: str, error: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_WRITE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_id=entity_id,
            description=f"Remote {operation} failed; local state kept",
            details={"operation": operation},
            error_message=error,
        )

    @staticmethod
    def remote_sync_completed(scope: str, count: int, details: Optional[dict] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_SYNC_COMPLETED,
            entity_type=scope,
            description=f"Synced {count} {scope} from remote",
            details={"count": count, **(details or {})},
        )

    @staticmethod
    def remote_sync_failed(scope: str, error: str, entity_id: Optional[str] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_SYNC_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=scope,
            entity_id=entity_id,
            description=f"Remote sync of {scope} failed; using local cache",
            error_message=error,
        )

    @staticmethod
    def attachment_uploaded(url: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ATTACHMENT_UPLOADED,
            entity_type="attachment",
            entity_id=url,
            description="Attachment uploaded",
        )

    @staticmethod
    def attachment_upload_failed(error: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ATTACHMENT_UPLOAD_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="attachment",
            description="Attachment upload failed",
            error_message=error,
        )

    @staticmethod
    def attachment_deleted(url: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ATTACHMENT_DELETED,
            severity=AuditSeverity.DEBUG,
            entity_type="attachment",
            entity_id=url,
            description="Attachment deleted from storage",
        )

    @staticmethod
    def attachment_delete_failed(url: str, error: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ATTACHMENT_DELETE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="attachment",
            entity_id=url,
            description="Attachment delete failed; record deletion continues",
            error_message=error,
        )

    @staticmethod
    def validation_failed(entity_type: str, issues: list[dict]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            description=f"Validation failed with {len(issues)} issue(s)",
            details={"issues": issues},
        )

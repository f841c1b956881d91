"""
Audit Logger

DESIGN DECISION: Every local write, remote write and sync step is logged.
Remote failures are swallowed by the reconciliation layer, so the audit
log is the only place they become visible.

The audit logger:
- Never raises (logging must not break the main flow)
- Picks the log level from the event severity
"""

from collections import deque
from typing import Optional

import structlog

from pettycash.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def get_logger(name: Optional[str] = None):
    """Get a structlog logger bound to the given name."""
    return structlog.get_logger(name)


class AuditLogger:
    """
    Central audit logging service.

    Keeps the last events in memory so callers (and tests) can inspect
    what happened to background writes.
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("pettycash.audit")
        self._history: deque[AuditEvent] = deque(maxlen=history_size)

    @property
    def history(self) -> list[AuditEvent]:
        """Recent events, oldest first."""
        return list(self._history)

    def log(self, event: AuditEvent) -> None:
        """Log an audit event."""
        self._history.append(event)

        log_dict = event.to_log_dict()
        try:
            if event.severity == AuditSeverity.ERROR:
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception:
            # A broken log handler must not break the ledger
            pass

    def log_local_write_failed(self, key: str, error: str) -> None:
        self.log(AuditEventBuilder.local_write_failed(key, error))

    def log_local_read_failed(self, key: str, error: str) -> None:
        self.log(AuditEventBuilder.local_read_failed(key, error))

    def log_record_saved(self, entity_type: str, entity_id: str, remote: bool) -> None:
        self.log(AuditEventBuilder.record_saved(entity_type, entity_id, remote))

    def log_record_deleted(
        self,
        entity_type: str,
        entity_id: str,
        remote: bool,
        cascaded: int = 0,
    ) -> None:
        self.log(AuditEventBuilder.record_deleted(entity_type, entity_id, remote, cascaded))

    def log_remote_write_completed(self, operation: str, entity_id: str) -> None:
        self.log(AuditEventBuilder.remote_write_completed(operation, entity_id))

    def log_remote_write_failed(self, operation: str, entity_id: str, error: str) -> None:
        """Log a failed background write. Local state is never rolled back."""
        self.log(AuditEventBuilder.remote_write_failed(operation, entity_id, error))

    def log_remote_sync_completed(self, scope: str, count: int, **details) -> None:
        self.log(AuditEventBuilder.remote_sync_completed(scope, count, details))

    def log_remote_sync_failed(self, scope: str, error: str, entity_id: Optional[str] = None) -> None:
        self.log(AuditEventBuilder.remote_sync_failed(scope, error, entity_id))

    def log_attachment_uploaded(self, url: str) -> None:
        self.log(AuditEventBuilder.attachment_uploaded(url))

    def log_attachment_upload_failed(self, error: str) -> None:
        self.log(AuditEventBuilder.attachment_upload_failed(error))

    def log_attachment_deleted(self, url: str) -> None:
        self.log(AuditEventBuilder.attachment_deleted(url))

    def log_attachment_delete_failed(self, url: str, error: str) -> None:
        self.log(AuditEventBuilder.attachment_delete_failed(url, error))

    def log_validation_failed(self, entity_type: str, issues: list[dict]) -> None:
        self.log(AuditEventBuilder.validation_failed(entity_type, issues))

    def log_session_started(self, identity: str) -> None:
        self.log(AuditEventBuilder.session_started(identity))

    def log_session_ended(self) -> None:
        self.log(AuditEventBuilder.session_ended())

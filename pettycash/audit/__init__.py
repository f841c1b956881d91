"""Audit logging package."""

from pettycash.audit.logger import AuditLogger, get_logger

__all__ = ["AuditLogger", "get_logger"]

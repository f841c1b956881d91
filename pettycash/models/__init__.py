"""
Data Models Package

This package contains all Pydantic models used in the Petty Cash Ledger.
All data flowing through the system must conform to these schemas.
"""

from pettycash.models.ledger import (
    CATEGORIES,
    FALLBACK_CATEGORY,
    Book,
    CategoryTotal,
    SpendingSummary,
    StatementRow,
    Transaction,
    TransactionType,
    generate_id,
    random_suffix,
    utc_now_iso,
)
from pettycash.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "CATEGORIES",
    "FALLBACK_CATEGORY",
    "Book",
    "CategoryTotal",
    "SpendingSummary",
    "StatementRow",
    "Transaction",
    "TransactionType",
    "generate_id",
    "random_suffix",
    "utc_now_iso",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]

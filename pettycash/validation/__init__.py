"""Validation package."""

from pettycash.validation.validator import (
    LastBookError,
    LedgerValidator,
    ValidationError,
    ValidationIssue,
)

__all__ = [
    "LastBookError",
    "LedgerValidator",
    "ValidationError",
    "ValidationIssue",
]

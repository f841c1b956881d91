"""
Core Data Models for Petty Cash Ledger

These models define the schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Serialize to the same camelCase shape in the local cache on every device
3. Be replaced whole on every update (no partial patches)

DESIGN DECISION: Ids are generated on the client before any remote write.
The local id is reused as the remote primary key, so no id remapping
is ever needed after a sync.
"""

import random
import string
import time
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# ENUMS & CONSTANTS
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a cash movement."""
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


# Suggested categories. Used for the UI picker and AI prompts only -
# the category field itself accepts free text.
CATEGORIES = [
    "Office Supplies",
    "Food & Beverages",
    "Transport",
    "Maintenance",
    "Entertainment",
    "Utilities",
    "Miscellaneous",
    "Sales",
    "Refund",
    "Top-up",
]

FALLBACK_CATEGORY = "Miscellaneous"

_BASE36 = string.digits + string.ascii_lowercase


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def random_suffix(length: int = 7) -> str:
    """Random base-36 string used in ids and attachment object keys."""
    return "".join(random.choices(_BASE36, k=length))


def generate_id() -> str:
    """
    Generate a locally unique id.

    Format: base-36 millisecond timestamp followed by a 7 character
    random base-36 suffix.
    """
    return _to_base36(int(time.time() * 1000)) + random_suffix()


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# =============================================================================
# ENTITIES
# =============================================================================

class Book(BaseModel):
    """
    A named ledger partition grouping a subset of transactions.

    The book collection is never empty once loaded; a default book
    is synthesized by the local cache when nothing is stored.
    """
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Client-generated book id"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name"
    )
    created_at: str = Field(
        default_factory=utc_now_iso,
        alias="createdAt",
        description="ISO timestamp of creation"
    )


class Transaction(BaseModel):
    """
    A single income or expense record.

    Every transaction belongs to exactly one book. Attachments are
    either inline data URIs or remote storage URLs.
    """
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Client-generated transaction id"
    )
    book_id: str = Field(
        ...,
        alias="bookId",
        description="Owning book"
    )
    date: str = Field(
        default_factory=utc_now_iso,
        description="ISO timestamp of the transaction"
    )
    description: str = Field(
        default="",
        max_length=500,
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Non-negative amount"
    )
    type: TransactionType
    category: str = Field(
        default=FALLBACK_CATEGORY,
        description="Free-text category, usually one of CATEGORIES"
    )
    attachments: list[str] = Field(default_factory=list)

    @field_validator('attachments', mode='before')
    @classmethod
    def none_to_empty(cls, v):
        """Remote rows may carry a null attachments column."""
        return [] if v is None else v

    @property
    def is_income(self) -> bool:
        return self.type == TransactionType.INCOME

    @property
    def day(self) -> str:
        """Date portion (YYYY-MM-DD) of the timestamp."""
        return self.date.split("T")[0]


# =============================================================================
# DERIVED MODELS (never persisted)
# =============================================================================

class SpendingSummary(BaseModel):
    """Totals over the transactions of one book."""
    model_config = ConfigDict(populate_by_name=True)

    total_income: Decimal = Field(default=Decimal("0"), alias="totalIncome")
    total_expense: Decimal = Field(default=Decimal("0"), alias="totalExpense")
    balance: Decimal = Field(default=Decimal("0"))


class CategoryTotal(BaseModel):
    """Expense total for one category."""

    category: str
    total: Decimal


class StatementRow(BaseModel):
    """
    One line of a printable statement.

    Income is shown in the debit column, expenses in credit,
    and balance is the running balance after this line.
    """

    date: str
    description: str
    category: str
    debit: Optional[Decimal] = None
    credit: Optional[Decimal] = None
    balance: Decimal

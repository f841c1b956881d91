"""
Input Validation

DESIGN DECISION: Validation runs synchronously BEFORE any state change.
A rejected save or delete leaves local state, the cache and the remote
store untouched - there is never a partial effect.

IMPORTANT: Category is NOT validated against the suggested list.
It is an open string; the list only feeds the picker and AI prompts.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Sequence

from pydantic import BaseModel, Field

from pettycash.models.ledger import Book, Transaction


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(..., description="Field with the issue")
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'last_book')"
    )
    message: str = Field(..., description="Human-readable description of the issue")


class ValidationError(ValueError):
    """Input was rejected before any state change."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__("; ".join(issue.message for issue in issues))


class LastBookError(ValidationError):
    """Attempted to delete the only remaining book."""

    def __init__(self):
        super().__init__([ValidationIssue(
            field="book",
            issue_type="last_book",
            message="You cannot delete the last book.",
        )])


class LedgerValidator:
    """Validates books and transactions before they are saved or deleted."""

    def check_book_name(self, name: Optional[str]) -> list[ValidationIssue]:
        if name is None or not name.strip():
            return [ValidationIssue(
                field="name",
                issue_type="missing",
                message="Book name is required",
            )]
        return []

    def check_transaction_fields(
        self,
        description: Optional[str],
        amount,
    ) -> list[ValidationIssue]:
        """Checks on raw form input, before a Transaction is built."""
        issues = []

        if description is None or not str(description).strip():
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="Description is required",
            ))

        if amount is None or (isinstance(amount, str) and not amount.strip()):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
            ))
        else:
            try:
                value = Decimal(str(amount))
            except InvalidOperation:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="invalid_value",
                    message=f"Amount is not a number: {amount!r}",
                ))
            else:
                if not value.is_finite() or value < 0:
                    issues.append(ValidationIssue(
                        field="amount",
                        issue_type="invalid_value",
                        message="Amount must be zero or more",
                    ))

        return issues

    def validate_book(self, book: Book) -> None:
        """Raise ValidationError if the book cannot be saved."""
        issues = self.check_book_name(book.name)
        if issues:
            raise ValidationError(issues)

    def validate_transaction(
        self,
        transaction: Transaction,
        books: Sequence[Book],
    ) -> None:
        """Raise ValidationError if the transaction cannot be saved."""
        issues = self.check_transaction_fields(
            transaction.description, transaction.amount
        )

        if not any(b.id == transaction.book_id for b in books):
            issues.append(ValidationIssue(
                field="bookId",
                issue_type="unknown_book",
                message=f"Book {transaction.book_id!r} does not exist",
            ))

        if issues:
            raise ValidationError(issues)

    def validate_book_deletion(self, books: Sequence[Book], book_id: str) -> None:
        """
        Raise if the book cannot be deleted.

        Raises:
            LastBookError: If it is the only remaining book
            ValidationError: If the book does not exist
        """
        if len(books) <= 1:
            raise LastBookError()
        if not any(b.id == book_id for b in books):
            raise ValidationError([ValidationIssue(
                field="book",
                issue_type="unknown_book",
                message=f"Book {book_id!r} does not exist",
            )])

    @staticmethod
    def get_user_friendly_summary(error: ValidationError) -> str:
        """One line per issue, for display in an alert."""
        return "\n".join(f"• {issue.message}" for issue in error.issues)

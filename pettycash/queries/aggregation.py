"""
Aggregation over in-memory transactions

DESIGN DECISION: Aggregation is pure and stateless.
Summaries are recomputed from the full transaction set every time it
changes; nothing is maintained incrementally and nothing is persisted.
"""

from decimal import Decimal
from typing import Iterable

from pettycash.models.ledger import (
    CategoryTotal,
    SpendingSummary,
    StatementRow,
    Transaction,
    TransactionType,
)


ZERO = Decimal("0")


def filter_by_book(transactions: Iterable[Transaction], book_id: str) -> list[Transaction]:
    """Transactions that belong to one book, in their original order."""
    return [t for t in transactions if t.book_id == book_id]


def compute_summary(transactions: Iterable[Transaction]) -> SpendingSummary:
    """Total income, total expense and balance."""
    income = ZERO
    expense = ZERO
    for t in transactions:
        if t.type == TransactionType.INCOME:
            income += t.amount
        elif t.type == TransactionType.EXPENSE:
            expense += t.amount

    return SpendingSummary(
        total_income=income,
        total_expense=expense,
        balance=income - expense,
    )


def compute_category_breakdown(transactions: Iterable[Transaction]) -> list[CategoryTotal]:
    """
    Expense totals per category, largest first.

    Income is ignored. Categories with equal totals keep the order
    in which they were first seen.
    """
    totals: dict[str, Decimal] = {}
    for t in transactions:
        if t.type != TransactionType.EXPENSE:
            continue
        totals[t.category] = totals.get(t.category, ZERO) + t.amount

    # sorted() is stable, so ties keep insertion order
    ordered = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [CategoryTotal(category=c, total=total) for c, total in ordered]


def build_statement(transactions: Iterable[Transaction]) -> list[StatementRow]:
    """
    Rows for a printable statement, oldest first, with a running balance.

    Income appears in the debit column and expenses in credit.
    """
    ordered = sorted(transactions, key=lambda t: t.date)

    rows = []
    running = ZERO
    for t in ordered:
        if t.is_income:
            running += t.amount
        else:
            running -= t.amount
        rows.append(StatementRow(
            date=t.day,
            description=t.description,
            category=t.category,
            debit=t.amount if t.is_income else None,
            credit=None if t.is_income else t.amount,
            balance=running,
        ))
    return rows

"""
Pure state transitions for the reconciliation layer.

Every function returns a new list and never mutates its input, so the
coordinator can swap collections atomically and tests can check the
transitions without any storage.
"""

from typing import Callable, Sequence, TypeVar

from pettycash.models.ledger import Transaction


T = TypeVar("T")


def upsert_by_id(items: Sequence[T], item: T, prepend: bool = False) -> list[T]:
    """
    Replace the record with the same id in place, or add it.

    New records go to the front when prepend is set, otherwise to the end.
    """
    result = list(items)
    for idx, existing in enumerate(result):
        if existing.id == item.id:
            result[idx] = item
            return result
    if prepend:
        result.insert(0, item)
    else:
        result.append(item)
    return result


def remove_by_id(items: Sequence[T], item_id: str) -> list[T]:
    """Drop the record with the given id, if present."""
    return [i for i in items if i.id != item_id]


def remove_by_book(transactions: Sequence[Transaction], book_id: str) -> list[Transaction]:
    """Drop every transaction of a book (book delete cascade)."""
    return [t for t in transactions if t.book_id != book_id]


def merge_collection(
    local: Sequence[T],
    remote_subset: Sequence[T],
    scope_key: str,
    scope_of: Callable[[T], str] = lambda t: t.book_id,
) -> list[T]:
    """
    Overwrite the local records of one scope with a fetched remote set.

    Records outside the scope are kept untouched and in order; the
    remote set is appended after them. This is a full replacement of
    the scope: unsynced local edits inside it are lost.
    """
    kept = [r for r in local if scope_of(r) != scope_key]
    return kept + list(remote_subset)

"""Local/remote reconciliation helpers."""

from pettycash.sync.merge import (
    merge_collection,
    remove_by_book,
    remove_by_id,
    upsert_by_id,
)

__all__ = [
    "merge_collection",
    "remove_by_book",
    "remove_by_id",
    "upsert_by_id",
]

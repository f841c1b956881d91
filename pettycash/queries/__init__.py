"""Aggregation and derived views package."""

from pettycash.queries.aggregation import (
    build_statement,
    compute_category_breakdown,
    compute_summary,
    filter_by_book,
)

__all__ = [
    "build_statement",
    "compute_category_breakdown",
    "compute_summary",
    "filter_by_book",
]

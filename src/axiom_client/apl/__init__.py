# src/axiom_client/apl/__init__.py
"""APL query construction."""

from axiom_client.apl.builder import Column, Dataset, FilterOp, Query, SortOrder

__all__ = [
    "Column",
    "Dataset",
    "FilterOp",
    "Query",
    "SortOrder",
]

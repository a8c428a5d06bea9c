# products/views/__init__.py

"""
Products views package exports.

Purpose:
- Central export point for router imports.
"""

from .inventory import InventoryViewSet
from .transactions import StockTransactionViewSet

__all__ = [
    "InventoryViewSet",
    "StockTransactionViewSet",
]

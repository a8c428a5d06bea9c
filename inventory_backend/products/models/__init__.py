"""
PATH: products/models/__init__.py

Products models export surface.
"""

from .product import Product
from .inventory_operation import InventoryOperation
from .stock_transaction import StockTransaction
from .stock_level import StockLevel

__all__ = [
    "Product",
    "InventoryOperation",
    "StockTransaction",
    "StockLevel",
]

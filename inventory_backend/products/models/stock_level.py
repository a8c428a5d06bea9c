# products/models/stock_level.py

"""
STOCK LEVEL (CurrentStock projection)

One row per (product, warehouse). Cache of the running sum of
StockTransaction.quantity for the pair, kept for fast reads and used as
the row lock for that key.

- Mutated ONLY by products.services.ledger (same DB transaction as the
  ledger append).
- Recomputable from the ledger at any time (verify_stock_levels).
"""

from decimal import Decimal

from django.db import models
from django.db.models import Q

from warehouses.models import Warehouse

from .product import Product


class StockLevel(models.Model):
    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name="stock_levels",
    )
    warehouse = models.ForeignKey(
        Warehouse,
        on_delete=models.PROTECT,
        related_name="stock_levels",
    )

    current_stock = models.DecimalField(
        max_digits=14,
        decimal_places=3,
        default=Decimal("0"),
    )

    last_updated = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["product_id", "warehouse_id"]
        constraints = [
            models.UniqueConstraint(
                fields=["product", "warehouse"],
                name="unique_stock_level_per_product_warehouse",
            ),
            models.CheckConstraint(
                condition=Q(current_stock__gte=0),
                name="chk_stocklevel_current_stock_gte_zero",
            ),
        ]
        indexes = [
            models.Index(fields=["warehouse", "product"], name="stocklevel_wh_product_idx"),
        ]

    @property
    def key(self):
        return (self.product_id, self.warehouse_id)

    def __str__(self):
        return f"{self.product_id}@{self.warehouse_id}: {self.current_stock}"

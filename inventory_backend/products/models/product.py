# products/models/product.py

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Sum


class Product(models.Model):
    """
    Represents a stock-keeping product.

    STOCK MODEL (IMPORTANT):
    - Product itself does NOT store stock
    - Stock lives in the ledger (StockTransaction) and its projection (StockLevel)
    - The ledger never mutates products

    THRESHOLDS:
    - minimum_stock / reorder_point drive low-stock reporting
    - both optional; the system-wide default applies when absent
    """

    sku = models.CharField(max_length=128, unique=True, db_index=True)
    name = models.CharField(max_length=255, db_index=True)

    unit_of_measure = models.CharField(max_length=32, default="unit")
    # Discrete units (pieces, boxes) only accept whole quantities.
    is_discrete_unit = models.BooleanField(default=True)

    minimum_stock = models.DecimalField(
        max_digits=14,
        decimal_places=3,
        null=True,
        blank=True,
        default=None,
    )
    reorder_point = models.DecimalField(
        max_digits=14,
        decimal_places=3,
        null=True,
        blank=True,
        default=None,
    )

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["sku"]
        indexes = [
            models.Index(fields=["name"], name="product_name_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.sku})"

    def clean(self):
        self.sku = (self.sku or "").strip().upper()
        if not self.sku:
            raise ValidationError({"sku": "sku is required"})

        for field in ("minimum_stock", "reorder_point"):
            value = getattr(self, field)
            if value is not None and Decimal(value) < Decimal("0"):
                raise ValidationError({field: f"{field} cannot be negative"})

    @property
    def low_stock_threshold(self):
        """
        Per-product threshold, or None when the product does not define one.
        """
        if self.minimum_stock is not None:
            return self.minimum_stock
        return self.reorder_point

    @property
    def total_stock_db(self) -> Decimal:
        return (
            self.stock_levels.aggregate(total=Sum("current_stock")).get("total")
            or Decimal("0")
        )

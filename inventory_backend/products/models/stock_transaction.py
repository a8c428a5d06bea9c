# products/models/stock_transaction.py

"""
CANONICAL INVENTORY LEDGER

Immutable ledger entry for one (product, warehouse) stock change.

GUARANTEES:
- Append-only (no updates, no deletes)
- new_stock = previous_stock + quantity, and new_stock >= 0
- quantity sign matches the transaction type
  (INBOUND / TRANSFER_IN positive, OUTBOUND / TRANSFER_OUT negative,
   ADJUSTMENT either way but never zero)
- reason must be one of the reasons allowed for the type

Rows are written ONLY by products.services.ledger.append_transaction,
which also keeps StockLevel in step inside the same DB transaction.
"""

from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from warehouses.models import Warehouse

from .inventory_operation import InventoryOperation
from .product import Product


class StockTransaction(models.Model):
    class TransactionType(models.TextChoices):
        INBOUND = "INBOUND", "Inbound"
        OUTBOUND = "OUTBOUND", "Outbound"
        ADJUSTMENT = "ADJUSTMENT", "Adjustment"
        TRANSFER_OUT = "TRANSFER_OUT", "Transfer Out"
        TRANSFER_IN = "TRANSFER_IN", "Transfer In"

    class Reason(models.TextChoices):
        PURCHASE = "purchase", "Purchase"
        RETURN = "return", "Return"
        INITIAL_STOCK = "initial_stock", "Initial Stock"
        FOUND = "found", "Found"
        SALE = "sale", "Sale"
        DAMAGED = "damaged", "Damaged"
        LOST = "lost", "Lost"
        CORRECTION = "correction", "Correction"
        TRANSFER_OUT = "transfer_out", "Transfer Out"
        TRANSFER_IN = "transfer_in", "Transfer In"

    TYPE_REASONS = {
        TransactionType.INBOUND: {
            Reason.PURCHASE,
            Reason.RETURN,
            Reason.INITIAL_STOCK,
            Reason.FOUND,
        },
        TransactionType.OUTBOUND: {
            Reason.SALE,
            Reason.DAMAGED,
            Reason.LOST,
        },
        TransactionType.ADJUSTMENT: {Reason.CORRECTION},
        TransactionType.TRANSFER_OUT: {Reason.TRANSFER_OUT},
        TransactionType.TRANSFER_IN: {Reason.TRANSFER_IN},
    }

    # +1 positive only, -1 negative only, None either (non-zero)
    TYPE_SIGN = {
        TransactionType.INBOUND: 1,
        TransactionType.TRANSFER_IN: 1,
        TransactionType.OUTBOUND: -1,
        TransactionType.TRANSFER_OUT: -1,
        TransactionType.ADJUSTMENT: None,
    }

    operation = models.ForeignKey(
        InventoryOperation,
        on_delete=models.PROTECT,
        related_name="transactions",
    )

    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name="stock_transactions",
    )
    warehouse = models.ForeignKey(
        Warehouse,
        on_delete=models.PROTECT,
        related_name="stock_transactions",
    )

    transaction_type = models.CharField(max_length=20, choices=TransactionType.choices)
    reason = models.CharField(max_length=20, choices=Reason.choices)

    quantity = models.DecimalField(max_digits=14, decimal_places=3)
    previous_stock = models.DecimalField(max_digits=14, decimal_places=3)
    new_stock = models.DecimalField(max_digits=14, decimal_places=3)

    unit_cost = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        default=None,
    )

    reference = models.CharField(max_length=100, null=True, blank=True, default=None)
    notes = models.TextField(null=True, blank=True, default=None)

    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="stock_transactions",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["created_at"], name="stocktx_created_idx"),
            models.Index(fields=["transaction_type"], name="stocktx_type_idx"),
            models.Index(fields=["reason"], name="stocktx_reason_idx"),
            models.Index(fields=["product", "warehouse", "created_at"], name="stocktx_prod_wh_created_idx"),
            models.Index(fields=["warehouse", "created_at"], name="stocktx_wh_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~Q(quantity=0),
                name="chk_stocktx_quantity_non_zero",
            ),
            models.CheckConstraint(
                condition=Q(new_stock__gte=0),
                name="chk_stocktx_new_stock_gte_zero",
            ),
            # balance (new = previous + quantity) is checked in clean()
        ]

    def clean(self):
        quantity = Decimal(self.quantity)
        if quantity == 0:
            raise ValidationError("quantity cannot be zero")

        expected_sign = self.TYPE_SIGN.get(self.transaction_type)
        if expected_sign == 1 and quantity < 0:
            raise ValidationError(f"{self.transaction_type} requires a positive quantity")
        if expected_sign == -1 and quantity > 0:
            raise ValidationError(f"{self.transaction_type} requires a negative quantity")

        allowed = self.TYPE_REASONS.get(self.transaction_type, set())
        if self.reason not in allowed:
            raise ValidationError(f"{self.reason} is not a valid reason for {self.transaction_type}")

        if Decimal(self.previous_stock) + quantity != Decimal(self.new_stock):
            raise ValidationError("new_stock must equal previous_stock + quantity")

        if Decimal(self.new_stock) < 0:
            raise ValidationError("new_stock cannot be negative")

        if self.unit_cost is not None and Decimal(self.unit_cost) < 0:
            raise ValidationError("unit_cost cannot be negative")

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("StockTransaction records are immutable")

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(
            "StockTransaction records are immutable and cannot be deleted"
        )

    @property
    def correlation_id(self):
        return self.operation_id

    @property
    def total_cost(self):
        if self.unit_cost is None:
            return None
        return self.unit_cost * abs(Decimal(self.quantity))

    def __str__(self):
        product_name = getattr(self.product, "name", "Product")
        return f"{product_name} | {self.transaction_type} | {self.quantity}"

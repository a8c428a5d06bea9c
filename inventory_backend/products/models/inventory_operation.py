# products/models/inventory_operation.py

"""
INVENTORY OPERATION

One row per logical engine operation (single transaction, adjustment,
transfer, bulk upload). Every StockTransaction written by the operation
points here, so:
- the id is the correlation id linking TRANSFER_OUT / TRANSFER_IN legs
- idempotency_key (client supplied) makes retries replay instead of
  writing the stock movement twice
"""

import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models


class InventoryOperation(models.Model):
    class Kind(models.TextChoices):
        INBOUND = "INBOUND", "Inbound"
        OUTBOUND = "OUTBOUND", "Outbound"
        ADJUSTMENT = "ADJUSTMENT", "Adjustment"
        TRANSFER = "TRANSFER", "Transfer"
        BULK_INBOUND = "BULK_INBOUND", "Bulk Inbound"
        BULK_OUTBOUND = "BULK_OUTBOUND", "Bulk Outbound"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    kind = models.CharField(max_length=20, choices=Kind.choices)

    idempotency_key = models.CharField(
        max_length=100,
        unique=True,
        null=True,
        blank=True,
        default=None,
    )

    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="inventory_operations",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("InventoryOperation records are immutable")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("InventoryOperation records are immutable and cannot be deleted")

    def __str__(self):
        return f"{self.kind} {self.id}"

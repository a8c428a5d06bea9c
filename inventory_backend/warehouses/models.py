# warehouses/models.py

"""
WAREHOUSE

Physical stock location. Ledger rows reference warehouses by id, so:
- A warehouse with StockTransaction history is NEVER hard-deleted
  (retire it instead: is_active=False).
- At most one warehouse is the main warehouse (partial unique constraint).
  Switching the main warehouse goes through warehouses.services.
"""

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q


class Warehouse(models.Model):
    code = models.CharField(max_length=32, unique=True)
    name = models.CharField(max_length=255)

    description = models.TextField(blank=True, default="")
    address = models.CharField(max_length=255, blank=True, default="")

    is_main = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["code"]
        constraints = [
            models.UniqueConstraint(
                fields=["is_main"],
                condition=Q(is_main=True),
                name="unique_main_warehouse",
            ),
        ]

    def clean(self):
        self.code = (self.code or "").strip().upper()
        self.name = (self.name or "").strip()

        if not self.code:
            raise ValidationError({"code": "code is required"})
        if not self.name:
            raise ValidationError({"name": "name is required"})

        if self.is_main and not self.is_active:
            raise ValidationError({"is_main": "The main warehouse must be active"})

    def has_ledger_history(self) -> bool:
        from products.models import StockTransaction

        return StockTransaction.objects.filter(warehouse_id=self.pk).exists()

    def delete(self, *args, **kwargs):
        """
        Audit safety: ledger rows point here by id.
        """
        if self.has_ledger_history():
            raise ValidationError(
                "Cannot delete Warehouse: it has stock transaction history. Deactivate it instead."
            )
        return super().delete(*args, **kwargs)

    def __str__(self):
        return f"{self.name} ({self.code})"

# products/admin.py
"""
Admin rules (audit-safe ledger):

- Products are maintained here (the API only reads them).
- StockTransaction / StockLevel / InventoryOperation are read-only:
  stock changes only go through the transaction engine, so the admin can
  inspect the ledger but never add, edit or delete rows.
"""

from __future__ import annotations

from django.contrib import admin

from products.models import InventoryOperation, Product, StockLevel, StockTransaction


class ReadOnlyAdmin(admin.ModelAdmin):
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class StockLevelInline(admin.TabularInline):
    model = StockLevel
    extra = 0
    can_delete = False
    fields = ("warehouse", "current_stock", "last_updated")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = (
        "sku",
        "name",
        "unit_of_measure",
        "is_discrete_unit",
        "minimum_stock",
        "reorder_point",
        "is_active",
    )
    list_filter = ("is_active", "is_discrete_unit")
    search_fields = ("sku", "name")
    inlines = [StockLevelInline]


@admin.register(StockTransaction)
class StockTransactionAdmin(ReadOnlyAdmin):
    list_display = (
        "id",
        "created_at",
        "product",
        "warehouse",
        "transaction_type",
        "reason",
        "quantity",
        "previous_stock",
        "new_stock",
        "performed_by",
    )
    list_filter = ("transaction_type", "reason", "warehouse")
    search_fields = ("product__sku", "product__name", "reference", "operation__id")
    date_hierarchy = "created_at"
    list_select_related = ("product", "warehouse", "performed_by")


@admin.register(StockLevel)
class StockLevelAdmin(ReadOnlyAdmin):
    list_display = ("product", "warehouse", "current_stock", "last_updated")
    list_filter = ("warehouse",)
    search_fields = ("product__sku", "product__name")
    list_select_related = ("product", "warehouse")


@admin.register(InventoryOperation)
class InventoryOperationAdmin(ReadOnlyAdmin):
    list_display = ("id", "kind", "idempotency_key", "performed_by", "created_at")
    list_filter = ("kind",)
    search_fields = ("idempotency_key",)

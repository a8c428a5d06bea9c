# warehouses/admin.py

"""
Warehouse admin.

- Ticking is_main demotes the previous main warehouse (same transaction).
- Deleting a warehouse with ledger history is refused by Warehouse.delete();
  retire it by unticking is_active instead.
"""

from django.contrib import admin
from django.db import transaction

from warehouses.models import Warehouse
from warehouses.services import demote_main_warehouses


@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "is_main", "is_active", "updated_at")
    list_filter = ("is_main", "is_active")
    search_fields = ("code", "name", "address")
    ordering = ("code",)

    @transaction.atomic
    def save_model(self, request, obj, form, change):
        if obj.is_main:
            demote_main_warehouses(keep_pk=obj.pk)
        super().save_model(request, obj, form, change)

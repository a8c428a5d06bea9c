# products/serializers/inventory.py

"""
INVENTORY OPERATION + STOCK VIEW SERIALIZERS

Input:
- adjust / transfer / bulk request bodies (camelCase or snake_case).

Output:
- stock projections built by products.services.inventory_queries
  (plain dicts with snake_case keys, rendered camelCase).
"""

from __future__ import annotations

from rest_framework import serializers

from products.models import Product
from products.serializers.base import CamelCaseInputSerializer, QuantityField, decimal_field


# =========================================================
# INPUT
# =========================================================
class AdjustStockSerializer(CamelCaseInputSerializer):
    product_id = serializers.IntegerField()
    warehouse_id = serializers.IntegerField(required=False, allow_null=True)
    new_stock = QuantityField()
    reason = serializers.CharField(max_length=20, required=False, allow_blank=True)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    operation_id = serializers.CharField(max_length=100, required=False, allow_blank=True)


class TransferStockSerializer(CamelCaseInputSerializer):
    product_id = serializers.IntegerField()
    from_warehouse_id = serializers.IntegerField()
    to_warehouse_id = serializers.IntegerField()
    quantity = QuantityField()
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    operation_id = serializers.CharField(max_length=100, required=False, allow_blank=True)


class BulkLineSerializer(CamelCaseInputSerializer):
    product_id = serializers.IntegerField()
    quantity = QuantityField()
    unit_cost = QuantityField(required=False, allow_null=True)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)


class BulkOperationSerializer(CamelCaseInputSerializer):
    warehouse_id = serializers.IntegerField(required=False, allow_null=True)
    items = BulkLineSerializer(many=True, allow_empty=False)
    reason = serializers.CharField(max_length=20)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    operation_id = serializers.CharField(max_length=100, required=False, allow_blank=True)


class LowStockQuerySerializer(CamelCaseInputSerializer):
    threshold = QuantityField(required=False, allow_null=True)
    warehouse_id = serializers.IntegerField(required=False)


class InventoryQuerySerializer(CamelCaseInputSerializer):
    product_id = serializers.IntegerField(required=False)
    warehouse_id = serializers.IntegerField(required=False)
    search = serializers.CharField(required=False, allow_blank=True, max_length=100)
    in_stock = serializers.BooleanField(required=False, default=False)
    offset = serializers.IntegerField(required=False, min_value=0, default=0)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=200)


class InventorySummaryQuerySerializer(CamelCaseInputSerializer):
    warehouse_id = serializers.IntegerField(required=False)


# =========================================================
# OUTPUT
# =========================================================
class ProductSummarySerializer(serializers.ModelSerializer):
    unitOfMeasure = serializers.CharField(source="unit_of_measure", read_only=True)
    isDiscreteUnit = serializers.BooleanField(source="is_discrete_unit", read_only=True)
    minimumStock = decimal_field(source="minimum_stock")
    reorderPoint = decimal_field(source="reorder_point")
    isActive = serializers.BooleanField(source="is_active", read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "sku",
            "name",
            "unitOfMeasure",
            "isDiscreteUnit",
            "minimumStock",
            "reorderPoint",
            "isActive",
        ]


class ProductWarehouseStockSerializer(serializers.Serializer):
    warehouseId = serializers.IntegerField(source="warehouse_id")
    warehouseCode = serializers.CharField(source="warehouse_code")
    warehouseName = serializers.CharField(source="warehouse_name")
    isMain = serializers.BooleanField(source="is_main")
    currentStock = decimal_field(source="current_stock")


class WarehouseProductStockSerializer(serializers.Serializer):
    productId = serializers.IntegerField(source="product_id")
    sku = serializers.CharField()
    name = serializers.CharField()
    unitOfMeasure = serializers.CharField(source="unit_of_measure")
    currentStock = decimal_field(source="current_stock")


class WarehouseStatsSerializer(serializers.Serializer):
    currentStock = decimal_field(source="current_stock")
    totalInbound = decimal_field(source="total_inbound")
    totalOutbound = decimal_field(source="total_outbound")
    uniqueProducts = serializers.IntegerField(source="unique_products")


class StockInWarehouseSerializer(serializers.Serializer):
    productId = serializers.IntegerField(source="product_id")
    warehouseId = serializers.IntegerField(source="warehouse_id")
    currentStock = decimal_field(source="current_stock")


class LowStockItemSerializer(serializers.Serializer):
    product = ProductSummarySerializer(read_only=True)
    productId = serializers.IntegerField(source="product.id")
    sku = serializers.CharField(source="product.sku")
    name = serializers.CharField(source="product.name")
    currentStock = decimal_field(source="current_stock")
    threshold = decimal_field()
    shortfall = decimal_field()


class StockLevelSerializer(serializers.Serializer):
    """One projection row of GET /api/inventory/."""

    productId = serializers.IntegerField(source="product_id")
    sku = serializers.CharField(source="product.sku")
    name = serializers.CharField(source="product.name")
    unitOfMeasure = serializers.CharField(source="product.unit_of_measure")
    warehouseId = serializers.IntegerField(source="warehouse_id")
    warehouseCode = serializers.CharField(source="warehouse.code")
    warehouseName = serializers.CharField(source="warehouse.name")
    currentStock = decimal_field(source="current_stock")
    lastUpdated = serializers.DateTimeField(source="last_updated")


class InventorySummarySerializer(serializers.Serializer):
    totalProducts = serializers.IntegerField(source="total_products")
    totalUnits = decimal_field(source="total_units")
    warehouseCount = serializers.IntegerField(source="warehouse_count")
    lowStockCount = serializers.IntegerField(source="low_stock_count")
    outOfStockCount = serializers.IntegerField(source="out_of_stock_count")

# products/serializers/transactions.py

"""
LEDGER SERIALIZERS

Input serializers only check shape (types, lengths, required keys).
Quantity, reason and access rules are enforced by the transaction engine
so that every rejection carries a domain error code.
"""

from __future__ import annotations

from rest_framework import serializers

from products.models import StockTransaction
from products.serializers.base import CamelCaseInputSerializer, QuantityField, decimal_field


# =========================================================
# OUTPUT
# =========================================================
class StockTransactionSerializer(serializers.ModelSerializer):
    operationId = serializers.UUIDField(source="operation_id", read_only=True)
    correlationId = serializers.UUIDField(source="operation_id", read_only=True)

    productId = serializers.IntegerField(source="product_id", read_only=True)
    productSku = serializers.CharField(source="product.sku", read_only=True)
    productName = serializers.CharField(source="product.name", read_only=True)

    warehouseId = serializers.IntegerField(source="warehouse_id", read_only=True)
    warehouseCode = serializers.CharField(source="warehouse.code", read_only=True)

    type = serializers.SerializerMethodField()
    transactionType = serializers.CharField(source="transaction_type", read_only=True)

    quantity = decimal_field()
    previousStock = decimal_field(source="previous_stock")
    newStock = decimal_field(source="new_stock")

    unitCost = serializers.DecimalField(
        source="unit_cost", max_digits=12, decimal_places=2, read_only=True
    )
    totalCost = serializers.DecimalField(
        source="total_cost", max_digits=16, decimal_places=2, read_only=True
    )

    performedBy = serializers.CharField(source="performed_by_id", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = StockTransaction
        fields = [
            "id",
            "operationId",
            "correlationId",
            "productId",
            "productSku",
            "productName",
            "warehouseId",
            "warehouseCode",
            "type",
            "transactionType",
            "reason",
            "quantity",
            "previousStock",
            "newStock",
            "unitCost",
            "totalCost",
            "reference",
            "notes",
            "performedBy",
            "createdAt",
        ]
        read_only_fields = fields

    def get_type(self, obj):
        return str(obj.transaction_type).lower()


def history_page_payload(page, *, context=None) -> dict:
    return {
        "count": page.count,
        "offset": page.offset,
        "limit": page.limit,
        "nextOffset": page.next_offset,
        "results": StockTransactionSerializer(page.results, many=True, context=context).data,
    }


# =========================================================
# INPUT
# =========================================================
class TransactionCreateSerializer(CamelCaseInputSerializer):
    """
    POST /api/transactions/

    For type=adjustment, quantity is the absolute target stock.
    """

    product_id = serializers.IntegerField()
    warehouse_id = serializers.IntegerField(required=False, allow_null=True)
    type = serializers.CharField(max_length=20)
    reason = serializers.CharField(max_length=20, required=False, allow_blank=True)
    quantity = QuantityField()
    unit_cost = QuantityField(required=False, allow_null=True)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    operation_id = serializers.CharField(max_length=100, required=False, allow_blank=True)


class TransactionFilterSerializer(CamelCaseInputSerializer):
    product_id = serializers.IntegerField(required=False)
    warehouse_id = serializers.IntegerField(required=False)
    type = serializers.ChoiceField(
        choices=[t.lower() for t in StockTransaction.TransactionType.values]
        + list(StockTransaction.TransactionType.values),
        required=False,
    )
    reason = serializers.ChoiceField(choices=StockTransaction.Reason.values, required=False)
    operation_id = serializers.UUIDField(required=False)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
    offset = serializers.IntegerField(required=False, min_value=0, default=0)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=200)

    def validate(self, attrs):
        date_from = attrs.get("date_from")
        date_to = attrs.get("date_to")
        if date_from and date_to and date_from > date_to:
            raise serializers.ValidationError({"date_to": "date_to must be on or after date_from"})
        return attrs

# products/views/inventory.py

"""
INVENTORY OPERATIONS + STOCK VIEWS

Routes (under /api/inventory/):
- GET  /                                            -> paged stock levels (scoped)
- GET  summary/                                     -> scoped totals
- POST adjust/                                      -> absolute stock correction
- POST transfer/                                    -> move stock between warehouses
- POST bulk/inbound/, bulk/outbound/                -> all-or-nothing multi-line
- GET  stock/<productId>/                           -> stock per accessible warehouse
- GET  stock/<productId>/warehouse/<warehouseId>/   -> {currentStock}
- GET  low-stock/                                   -> products under threshold
- GET  warehouses/<id>/summary/                     -> warehouse dashboard

Transfer is gated by the engine (WAREHOUSE_ACCESS_DENIED for roles that
cannot transfer) so the client always gets the error envelope.
"""

from __future__ import annotations

from decimal import Decimal

from drf_spectacular.utils import OpenApiTypes, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from permissions.roles import (
    CAP_INVENTORY_ADJUST,
    CAP_INVENTORY_EDIT,
    CAP_INVENTORY_VIEW,
    HasCapability,
    IsInventoryActor,
    can_access_warehouse,
)
from products.serializers.inventory import (
    AdjustStockSerializer,
    BulkOperationSerializer,
    InventoryQuerySerializer,
    InventorySummaryQuerySerializer,
    InventorySummarySerializer,
    LowStockItemSerializer,
    LowStockQuerySerializer,
    ProductWarehouseStockSerializer,
    StockInWarehouseSerializer,
    StockLevelSerializer,
    TransferStockSerializer,
    WarehouseProductStockSerializer,
    WarehouseStatsSerializer,
)
from products.serializers.transactions import StockTransactionSerializer
from products.services import inventory_queries
from products.services.errors import BulkOperationError
from products.services.stock_transactions import (
    adjust_stock,
    bulk_inbound,
    bulk_outbound,
    transfer_stock,
)
from products.views.errors import InventoryActorMixin, inventory_error_response
from warehouses.models import Warehouse
from warehouses.serializers import WarehouseSerializer


class InventoryViewSet(InventoryActorMixin, viewsets.ViewSet):
    permission_classes = [IsAuthenticated]

    required_capability = None
    required_any_capabilities = None

    def get_permissions(self):
        # reset per request
        self.required_capability = None
        self.required_any_capabilities = None

        if self.action in {"bulk_inbound", "bulk_outbound"}:
            self.required_capability = CAP_INVENTORY_EDIT
            return [IsAuthenticated(), HasCapability()]

        if self.action == "adjust":
            self.required_capability = CAP_INVENTORY_ADJUST
            return [IsAuthenticated(), HasCapability()]

        if self.action == "transfer":
            return [IsAuthenticated(), IsInventoryActor()]

        self.required_capability = CAP_INVENTORY_VIEW
        return [IsAuthenticated(), HasCapability()]

    def _tx(self, tx):
        return StockTransactionSerializer(tx, context={"request": self.request}).data

    # -------------------------------------------------
    # LIST / SUMMARY
    # -------------------------------------------------
    @extend_schema(
        parameters=[InventoryQuerySerializer],
        responses={200: OpenApiTypes.OBJECT},
        description="Stock levels (product x warehouse) inside the caller's warehouse scope, offset paged.",
    )
    def list(self, request):
        query = InventoryQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        filters = dict(query.validated_data)
        offset = filters.pop("offset", 0)
        limit = filters.pop("limit", None)

        page = inventory_queries.list_stock_levels(
            self.get_actor(), filters, offset=offset, limit=limit
        )
        return Response(
            {
                "count": page.count,
                "offset": page.offset,
                "limit": page.limit,
                "nextOffset": page.next_offset,
                "results": StockLevelSerializer(page.results, many=True).data,
            }
        )

    @extend_schema(
        parameters=[InventorySummaryQuerySerializer],
        responses={200: InventorySummarySerializer},
        description="Totals over the caller's warehouse scope (or one warehouse).",
    )
    @action(detail=False, methods=["get"])
    def summary(self, request):
        query = InventorySummaryQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        data = inventory_queries.inventory_summary(
            self.get_actor(), warehouse_id=query.validated_data.get("warehouse_id")
        )
        return Response(InventorySummarySerializer(data).data)

    # -------------------------------------------------
    # MUTATIONS
    # -------------------------------------------------
    @extend_schema(
        request=AdjustStockSerializer,
        responses={200: OpenApiTypes.OBJECT},
        description="Set stock to an absolute target; the delta is computed server-side.",
    )
    @action(detail=False, methods=["post"])
    def adjust(self, request):
        serializer = AdjustStockSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        v = serializer.validated_data

        tx = adjust_stock(
            self.get_actor(),
            product_id=v["product_id"],
            warehouse_id=v.get("warehouse_id"),
            new_stock=v["new_stock"],
            reason=v.get("reason") or "correction",
            reference=v.get("reference"),
            notes=v.get("notes"),
            idempotency_key=self.get_idempotency_key(v),
        )
        return Response({"transaction": self._tx(tx)}, status=status.HTTP_200_OK)

    @extend_schema(
        request=TransferStockSerializer,
        responses={200: OpenApiTypes.OBJECT},
        description="Move stock between two warehouses: TRANSFER_OUT + TRANSFER_IN, both or neither.",
    )
    @action(detail=False, methods=["post"])
    def transfer(self, request):
        serializer = TransferStockSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        v = serializer.validated_data

        result = transfer_stock(
            self.get_actor(),
            product_id=v["product_id"],
            from_warehouse_id=v["from_warehouse_id"],
            to_warehouse_id=v["to_warehouse_id"],
            quantity=v["quantity"],
            reference=v.get("reference"),
            notes=v.get("notes"),
            idempotency_key=self.get_idempotency_key(v),
        )
        return Response(
            {
                "correlationId": str(result.operation.pk),
                "outTransaction": self._tx(result.out_transaction),
                "inTransaction": self._tx(result.in_transaction),
            },
            status=status.HTTP_200_OK,
        )

    def _bulk(self, request, operation):
        serializer = BulkOperationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        v = serializer.validated_data

        try:
            result = operation(
                self.get_actor(),
                warehouse_id=v.get("warehouse_id"),
                items=v["items"],
                reason=v["reason"],
                notes=v.get("notes"),
                idempotency_key=self.get_idempotency_key(v),
            )
        except BulkOperationError as exc:
            return inventory_error_response(exc, created=[], failed=exc.failed)

        return Response(
            {
                "operationId": str(result.operation.pk),
                "created": [self._tx(tx) for tx in result.created],
                "failed": result.failed,
            },
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(
        request=BulkOperationSerializer,
        responses={201: OpenApiTypes.OBJECT},
        description="All-or-nothing inbound for several lines against one warehouse.",
    )
    @action(detail=False, methods=["post"], url_path="bulk/inbound")
    def bulk_inbound(self, request):
        return self._bulk(request, bulk_inbound)

    @extend_schema(
        request=BulkOperationSerializer,
        responses={201: OpenApiTypes.OBJECT},
        description="All-or-nothing outbound; repeated products are checked cumulatively.",
    )
    @action(detail=False, methods=["post"], url_path="bulk/outbound")
    def bulk_outbound(self, request):
        return self._bulk(request, bulk_outbound)

    # -------------------------------------------------
    # READS
    # -------------------------------------------------
    @extend_schema(responses={200: OpenApiTypes.OBJECT})
    @action(detail=False, methods=["get"], url_path=r"stock/(?P<product_id>\d+)")
    def stock(self, request, product_id=None):
        rows = inventory_queries.stock_by_product_all_warehouses(self.get_actor(), product_id)
        total = sum((row["current_stock"] for row in rows), Decimal("0"))
        return Response(
            {
                "productId": int(product_id),
                "totalStock": str(total),
                "warehouses": ProductWarehouseStockSerializer(rows, many=True).data,
            }
        )

    @extend_schema(responses={200: StockInWarehouseSerializer})
    @action(
        detail=False,
        methods=["get"],
        url_path=r"stock/(?P<product_id>\d+)/warehouse/(?P<warehouse_id>\d+)",
    )
    def stock_in_warehouse(self, request, product_id=None, warehouse_id=None):
        row = inventory_queries.stock_in_warehouse(self.get_actor(), product_id, warehouse_id)
        return Response(StockInWarehouseSerializer(row).data)

    @extend_schema(
        parameters=[LowStockQuerySerializer],
        responses={200: OpenApiTypes.OBJECT},
        description=(
            "Active products below threshold. Threshold: explicit, then minimum stock, "
            "then reorder point, then the server default."
        ),
    )
    @action(detail=False, methods=["get"], url_path="low-stock")
    def low_stock(self, request):
        query = LowStockQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        rows = inventory_queries.low_stock(
            self.get_actor(),
            threshold=query.validated_data.get("threshold"),
            warehouse_id=query.validated_data.get("warehouse_id"),
        )
        return Response(
            {
                "count": len(rows),
                "results": LowStockItemSerializer(rows, many=True).data,
            }
        )

    @extend_schema(responses={200: OpenApiTypes.OBJECT})
    @action(
        detail=False,
        methods=["get"],
        url_path=r"warehouses/(?P<warehouse_id>\d+)/summary",
    )
    def warehouse_summary(self, request, warehouse_id=None):
        actor = self.get_actor()
        if can_access_warehouse(actor, warehouse_id) and not Warehouse.objects.filter(pk=warehouse_id).exists():
            raise NotFound("Warehouse not found.")

        summary = inventory_queries.warehouse_summary(actor, warehouse_id)
        return Response(
            {
                "warehouse": WarehouseSerializer(summary["warehouse"]).data,
                "stats": WarehouseStatsSerializer(summary["stats"]).data,
                "products": WarehouseProductStockSerializer(summary["products"], many=True).data,
                "recentTransactions": [self._tx(tx) for tx in summary["recent_transactions"]],
            }
        )

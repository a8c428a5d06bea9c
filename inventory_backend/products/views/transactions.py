# products/views/transactions.py

"""
STOCK TRANSACTION VIEWSET

Routes (under /api/):
- GET  transactions/                         -> filtered ledger page
- POST transactions/                         -> inbound / outbound / adjustment
- GET  transactions/<id>/                    -> one ledger row
- GET  transactions/product/<productId>/     -> product history (newest first)
- GET  transactions/summary/                 -> counts + quantities per type

RULES:
- Ledger rows are never updated or deleted through the API.
- Warehouse scope is enforced by the query layer / engine, not here.
"""

from __future__ import annotations

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
    HasAnyCapability,
)
from products.models import StockTransaction
from products.serializers.transactions import (
    StockTransactionSerializer,
    TransactionCreateSerializer,
    TransactionFilterSerializer,
    history_page_payload,
)
from products.services import inventory_queries
from products.services.stock_transactions import create_transaction
from products.views.errors import InventoryActorMixin


class StockTransactionViewSet(InventoryActorMixin, viewsets.GenericViewSet):
    serializer_class = StockTransactionSerializer
    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"

    required_capability = None
    required_any_capabilities = None

    def get_permissions(self):
        # reset per request
        self.required_capability = None
        self.required_any_capabilities = None

        if self.action == "create":
            self.required_any_capabilities = {CAP_INVENTORY_EDIT, CAP_INVENTORY_ADJUST}
        else:
            self.required_any_capabilities = {CAP_INVENTORY_VIEW}

        return [IsAuthenticated(), HasAnyCapability()]

    def _filters(self):
        serializer = TransactionFilterSerializer(data=self.request.query_params)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data

    @extend_schema(
        parameters=[TransactionFilterSerializer],
        responses={200: OpenApiTypes.OBJECT},
        description="Ledger rows inside the caller's warehouse scope, newest first, offset paged.",
    )
    def list(self, request, *args, **kwargs):
        filters = dict(self._filters())
        offset = filters.pop("offset", 0)
        limit = filters.pop("limit", None)

        page = inventory_queries.list_transactions(
            self.get_actor(), filters, offset=offset, limit=limit
        )
        return Response(history_page_payload(page, context=self.get_serializer_context()))

    @extend_schema(responses={200: OpenApiTypes.OBJECT})
    def retrieve(self, request, pk=None, *args, **kwargs):
        try:
            tx = inventory_queries.get_transaction(self.get_actor(), pk)
        except StockTransaction.DoesNotExist:
            raise NotFound("Transaction not found.")
        return Response({"transaction": self.get_serializer(tx).data})

    @extend_schema(
        request=TransactionCreateSerializer,
        responses={201: OpenApiTypes.OBJECT},
    )
    def create(self, request, *args, **kwargs):
        """
        POST /api/transactions/

        type: inbound | outbound | adjustment
        (adjustment: quantity is the absolute target stock)
        """
        serializer = TransactionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        v = serializer.validated_data

        tx = create_transaction(
            self.get_actor(),
            type=v["type"],
            product_id=v["product_id"],
            warehouse_id=v.get("warehouse_id"),
            reason=v.get("reason"),
            quantity=v.get("quantity"),
            unit_cost=v.get("unit_cost"),
            reference=v.get("reference"),
            notes=v.get("notes"),
            idempotency_key=self.get_idempotency_key(v),
        )
        return Response(
            {"transaction": self.get_serializer(tx).data},
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(
        parameters=[TransactionFilterSerializer],
        responses={200: OpenApiTypes.OBJECT},
        description="History of one product, newest first.",
    )
    @action(detail=False, methods=["get"], url_path=r"product/(?P<product_id>\d+)")
    def product_history(self, request, product_id=None):
        filters = self._filters()
        page = inventory_queries.product_history(
            self.get_actor(),
            product_id,
            warehouse_id=filters.get("warehouse_id"),
            offset=filters.get("offset", 0),
            limit=filters.get("limit"),
        )
        return Response(history_page_payload(page, context=self.get_serializer_context()))

    @extend_schema(
        parameters=[TransactionFilterSerializer],
        responses={200: OpenApiTypes.OBJECT},
        description="Counts and signed quantities per transaction type.",
    )
    @action(detail=False, methods=["get"])
    def summary(self, request):
        filters = dict(self._filters())
        filters.pop("offset", None)
        filters.pop("limit", None)

        data = inventory_queries.transaction_summary(self.get_actor(), filters)
        return Response(
            {
                "byType": {
                    t: {"count": row["count"], "quantity": str(row["quantity"])}
                    for t, row in data["by_type"].items()
                },
                "totals": {
                    "count": data["totals"]["count"],
                    "inbound": str(data["totals"]["inbound"]),
                    "outbound": str(data["totals"]["outbound"]),
                    "net": str(data["totals"]["net"]),
                },
            }
        )

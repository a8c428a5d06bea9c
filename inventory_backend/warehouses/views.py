# warehouses/views.py

"""
WAREHOUSE VIEWSET

Routes (under /api/):
- GET    warehouses/                 -> warehouses the actor may see
- POST   warehouses/                 -> create (warehouses.manage)
- GET    warehouses/<id>/            -> one warehouse (scope-checked)
- PUT    warehouses/<id>/            -> update (warehouses.manage)
- PATCH  warehouses/<id>/            -> update (warehouses.manage)
- DELETE warehouses/<id>/            -> retire (soft delete when history exists)
- POST   warehouses/<id>/set-main/   -> promote to main warehouse

Rules:
- role=user sees only its own warehouse.
- Writes go through warehouses.services (main-warehouse uniqueness,
  soft delete).
"""

from __future__ import annotations

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from permissions.roles import (
    CAP_INVENTORY_VIEW,
    CAP_WAREHOUSES_MANAGE,
    HasCapability,
    get_accessible_warehouses,
)
from products.services.access import require_warehouse_access
from products.views.errors import InventoryActorMixin, error_response
from warehouses.models import Warehouse
from warehouses.serializers import WarehouseSerializer
from warehouses.services import (
    RETIRE_DELETED,
    create_warehouse,
    retire_warehouse,
    set_main_warehouse,
    update_warehouse,
)


def _validation_error_response(exc: DjangoValidationError):
    details = exc.message_dict if hasattr(exc, "error_dict") else {"non_field_errors": exc.messages}
    return error_response(
        code="VALIDATION_ERROR",
        message="; ".join(exc.messages),
        http_status=status.HTTP_400_BAD_REQUEST,
        details=details,
    )


class WarehouseViewSet(InventoryActorMixin, viewsets.ModelViewSet):
    serializer_class = WarehouseSerializer
    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"

    required_capability = None
    required_any_capabilities = None

    def get_permissions(self):
        # reset per request
        self.required_capability = None
        self.required_any_capabilities = None

        if self.action in {"list", "retrieve"}:
            self.required_capability = CAP_INVENTORY_VIEW
        else:
            self.required_capability = CAP_WAREHOUSES_MANAGE

        return [IsAuthenticated(), HasCapability()]

    def get_queryset(self):
        qs = Warehouse.objects.all().order_by("code")

        is_active = (self.request.query_params.get("is_active") or "").strip().lower()
        if is_active in ("1", "true", "yes"):
            qs = qs.filter(is_active=True)
        elif is_active in ("0", "false", "no"):
            qs = qs.filter(is_active=False)

        return qs

    def list(self, request, *args, **kwargs):
        visible = get_accessible_warehouses(self.get_actor(), list(self.get_queryset()))
        data = self.get_serializer(visible, many=True).data
        return Response({"count": len(data), "results": data}, status=status.HTTP_200_OK)

    def retrieve(self, request, *args, **kwargs):
        warehouse = self.get_object()
        require_warehouse_access(self.get_actor(), warehouse.pk)
        return Response(self.get_serializer(warehouse).data)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            warehouse = create_warehouse(**serializer.validated_data)
        except DjangoValidationError as exc:
            return _validation_error_response(exc)

        return Response(self.get_serializer(warehouse).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        warehouse = self.get_object()
        serializer = self.get_serializer(warehouse, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)

        try:
            warehouse = update_warehouse(warehouse=warehouse, **serializer.validated_data)
        except DjangoValidationError as exc:
            return _validation_error_response(exc)

        return Response(self.get_serializer(warehouse).data)

    def destroy(self, request, *args, **kwargs):
        """
        Untouched warehouses are deleted (204). Warehouses with ledger
        history or assigned users are deactivated instead (200).
        """
        warehouse = self.get_object()

        try:
            outcome = retire_warehouse(warehouse=warehouse)
        except DjangoValidationError as exc:
            return _validation_error_response(exc)

        if outcome == RETIRE_DELETED:
            return Response(status=status.HTTP_204_NO_CONTENT)

        warehouse.refresh_from_db()
        return Response(
            {"result": outcome, "warehouse": self.get_serializer(warehouse).data},
            status=status.HTTP_200_OK,
        )

    @action(detail=True, methods=["post"], url_path="set-main")
    def set_main(self, request, pk=None):
        warehouse = self.get_object()

        try:
            warehouse = set_main_warehouse(warehouse=warehouse)
        except DjangoValidationError as exc:
            return _validation_error_response(exc)

        return Response(self.get_serializer(warehouse).data)

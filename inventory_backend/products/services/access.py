# products/services/access.py

"""
ACCESS ENFORCEMENT FOR STOCK OPERATIONS

The predicates live in permissions.roles (pure, no DB). This module turns
them into raised domain errors and resolves the warehouse / product a
request is about.

Warehouse resolution:
1) explicit warehouse id -> must be accessible to the actor
2) no warehouse id, role user -> the actor's own warehouse
3) no warehouse id, admin/manager -> the main warehouse
The result must exist (and, for writes, be active).
"""

from __future__ import annotations

import logging

from permissions.roles import (
    can_access_warehouse,
    can_transfer_between_warehouses,
    resolve_default_warehouse,
)
from products.models import Product
from products.services.errors import (
    ProductUnavailableError,
    WarehouseAccessDenied,
    WarehouseUnavailableError,
)
from warehouses.models import Warehouse
from warehouses.services import get_main_warehouse

logger = logging.getLogger(__name__)


def parse_pk(value, *, field_name: str, error_cls):
    if value is None or value == "":
        raise error_cls(f"{field_name} is required")
    if isinstance(value, bool):
        raise error_cls(f"{field_name} must be an integer id")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise error_cls(f"{field_name} must be an integer id")


def require_actor(actor) -> None:
    if actor is None:
        raise WarehouseAccessDenied("No valid inventory role is assigned to this account.")


def require_warehouse_access(actor, warehouse_id) -> None:
    require_actor(actor)
    if not can_access_warehouse(actor, warehouse_id):
        logger.warning(
            "Warehouse access denied",
            extra={
                "user_id": str(actor.user_id),
                "role": actor.role,
                "warehouse_id": warehouse_id,
            },
        )
        raise WarehouseAccessDenied(warehouse_id=warehouse_id)


def require_transfer_permission(actor) -> None:
    require_actor(actor)
    if not can_transfer_between_warehouses(actor):
        logger.warning(
            "Transfer denied for role",
            extra={"user_id": str(actor.user_id), "role": actor.role},
        )
        raise WarehouseAccessDenied("Your role cannot transfer stock between warehouses.")


def resolve_warehouse(actor, warehouse_id=None, *, require_active: bool = True) -> Warehouse:
    require_actor(actor)

    if warehouse_id not in (None, ""):
        target = parse_pk(warehouse_id, field_name="warehouseId", error_cls=WarehouseUnavailableError)
        require_warehouse_access(actor, target)
    else:
        target = resolve_default_warehouse(actor)
        if target is None:
            main = get_main_warehouse()
            if main is None:
                raise WarehouseUnavailableError(
                    "No warehouse given and no main warehouse is configured."
                )
            target = main.pk

    warehouse = Warehouse.objects.filter(pk=target).first()
    if warehouse is None:
        raise WarehouseUnavailableError(
            f"Warehouse {target} does not exist.",
            details={"warehouseId": target},
        )

    if require_active and not warehouse.is_active:
        raise WarehouseUnavailableError(
            f"Warehouse {warehouse.code} is inactive.",
            details={"warehouseId": warehouse.pk},
        )

    return warehouse


def get_product(product_id, *, require_active: bool = True) -> Product:
    pk = parse_pk(product_id, field_name="productId", error_cls=ProductUnavailableError)

    product = Product.objects.filter(pk=pk).first()
    if product is None:
        raise ProductUnavailableError(
            f"Product {pk} does not exist.",
            details={"productId": pk},
        )

    if require_active and not product.is_active:
        raise ProductUnavailableError(
            f"Product {product.sku} is inactive.",
            details={"productId": product.pk},
        )

    return product

# products/services/inventory_queries.py

"""
INVENTORY QUERY LAYER

Read-only projections for the admin UI. Nothing here writes.

Scope rules (same as the engine):
- An explicit warehouse must be accessible to the actor, otherwise
  WarehouseAccessDenied.
- Without an explicit warehouse, results are restricted to the actor's
  accessible warehouses (a user sees only their own warehouse, including
  in totals and summaries).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.db.models import Count, Q, Sum

from permissions.roles import Actor, get_accessible_warehouses
from products.models import Product, StockLevel, StockTransaction
from products.services.access import (
    get_product,
    parse_pk,
    require_actor,
    require_warehouse_access,
    resolve_warehouse,
)
from products.services.errors import InvalidQuantityError, WarehouseUnavailableError
from products.services.ledger import ZERO, HistoryPage, get_current_stock, get_history
from warehouses.models import Warehouse


@dataclass(frozen=True)
class WarehouseStock:
    warehouse: Warehouse
    products: list = field(default_factory=list)
    stats: dict = field(default_factory=dict)


def _accessible_warehouse_ids(actor: Actor, *, active_only: bool = True) -> list[int]:
    qs = Warehouse.objects.all()
    if active_only:
        qs = qs.filter(is_active=True)
    return [w.pk for w in get_accessible_warehouses(actor, list(qs))]


def _scope_warehouse_ids(actor: Actor, warehouse_id=None) -> Optional[list[int]]:
    """
    None means "no restriction" (admin/manager without a filter).
    """
    require_actor(actor)
    if warehouse_id not in (None, ""):
        target = parse_pk(warehouse_id, field_name="warehouseId", error_cls=WarehouseUnavailableError)
        require_warehouse_access(actor, target)
        return [target]
    if actor.is_unrestricted:
        return None
    return [actor.warehouse_id]


# ============================================================
# STOCK
# ============================================================
def stock_by_product_all_warehouses(actor: Actor, product_id) -> list[dict]:
    require_actor(actor)
    product = get_product(product_id, require_active=False)

    warehouses = get_accessible_warehouses(
        actor, list(Warehouse.objects.filter(is_active=True).order_by("code"))
    )
    levels = dict(
        StockLevel.objects.filter(
            product=product,
            warehouse_id__in=[w.pk for w in warehouses],
        ).values_list("warehouse_id", "current_stock")
    )

    return [
        {
            "warehouse_id": w.pk,
            "warehouse_code": w.code,
            "warehouse_name": w.name,
            "is_main": w.is_main,
            "current_stock": Decimal(levels.get(w.pk, ZERO)),
        }
        for w in warehouses
    ]


def stock_in_warehouse(actor: Actor, product_id, warehouse_id) -> dict:
    warehouse = resolve_warehouse(actor, warehouse_id, require_active=False)
    product = get_product(product_id, require_active=False)
    return {
        "product_id": product.pk,
        "warehouse_id": warehouse.pk,
        "current_stock": get_current_stock(product.pk, warehouse.pk),
    }


def _ledger_stats(warehouse_id) -> dict:
    agg = StockTransaction.objects.filter(warehouse_id=warehouse_id).aggregate(
        current=Sum("quantity"),
        inbound=Sum("quantity", filter=Q(quantity__gt=0)),
        outbound=Sum("quantity", filter=Q(quantity__lt=0)),
    )
    return {
        "current_stock": Decimal(agg["current"] or 0),
        "total_inbound": Decimal(agg["inbound"] or 0),
        "total_outbound": abs(Decimal(agg["outbound"] or 0)),
    }


def stock_by_warehouse(actor: Actor, warehouse_id) -> WarehouseStock:
    """
    Per-product stock in one warehouse, plus ledger-derived stats.

    total_inbound / total_outbound count every positive / negative movement
    (transfers and adjustments included).
    """
    warehouse = resolve_warehouse(actor, warehouse_id, require_active=False)

    levels = (
        StockLevel.objects.filter(warehouse=warehouse)
        .select_related("product")
        .order_by("product__sku")
    )
    products = [
        {
            "product_id": level.product_id,
            "sku": level.product.sku,
            "name": level.product.name,
            "unit_of_measure": level.product.unit_of_measure,
            "current_stock": Decimal(level.current_stock),
        }
        for level in levels
    ]

    stats = _ledger_stats(warehouse.pk)
    stats["unique_products"] = sum(1 for p in products if p["current_stock"] > 0)

    return WarehouseStock(warehouse=warehouse, products=products, stats=stats)


def warehouse_summary(actor: Actor, warehouse_id, recent_limit: Optional[int] = None) -> dict:
    if recent_limit is None:
        recent_limit = int(getattr(settings, "INVENTORY_RECENT_TRANSACTIONS", 10))

    snapshot = stock_by_warehouse(actor, warehouse_id)
    recent = list(
        StockTransaction.objects.filter(warehouse=snapshot.warehouse)
        .select_related("product", "warehouse")
        .order_by("-created_at", "-id")[: max(0, int(recent_limit))]
    )

    return {
        "warehouse": snapshot.warehouse,
        "stats": snapshot.stats,
        "products": snapshot.products,
        "recent_transactions": recent,
    }


def _parse_threshold(value) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    if isinstance(value, (bool, float)):
        raise InvalidQuantityError("threshold must be an integer or decimal string")
    try:
        threshold = Decimal(str(value).strip())
    except ArithmeticError:
        raise InvalidQuantityError("threshold must be a valid decimal")
    if not threshold.is_finite() or threshold < 0:
        raise InvalidQuantityError("threshold must be zero or greater")
    return threshold


def low_stock(actor: Actor, threshold=None, warehouse_id=None) -> list[dict]:
    """
    Active products whose stock is below their threshold.

    Threshold precedence: explicit argument, product.minimum_stock,
    product.reorder_point, settings.INVENTORY_LOW_STOCK_THRESHOLD.
    Stock is summed over the accessible warehouses, or taken from
    warehouse_id alone when given.
    """
    require_actor(actor)
    explicit = _parse_threshold(threshold)
    default = Decimal(str(getattr(settings, "INVENTORY_LOW_STOCK_THRESHOLD", 10)))

    if warehouse_id not in (None, ""):
        warehouse_ids = [resolve_warehouse(actor, warehouse_id, require_active=False).pk]
    else:
        warehouse_ids = _accessible_warehouse_ids(actor)

    totals = dict(
        StockLevel.objects.filter(warehouse_id__in=warehouse_ids)
        .values("product_id")
        .annotate(total=Sum("current_stock"))
        .values_list("product_id", "total")
    )

    results = []
    for product in Product.objects.filter(is_active=True).order_by("sku"):
        limit = explicit
        if limit is None:
            limit = product.low_stock_threshold
        if limit is None:
            limit = default

        current = Decimal(totals.get(product.pk) or 0)
        if current < Decimal(limit):
            results.append(
                {
                    "product": product,
                    "current_stock": current,
                    "threshold": Decimal(limit),
                    "shortfall": Decimal(limit) - current,
                }
            )

    results.sort(key=lambda r: (r["current_stock"], r["product"].sku))
    return results


# ============================================================
# INVENTORY LIST / SUMMARY
# ============================================================
def _scoped_stock_levels(actor: Actor, filters: Optional[dict] = None):
    filters = filters or {}
    warehouse_ids = _scope_warehouse_ids(actor, filters.get("warehouse_id"))

    qs = StockLevel.objects.select_related("product", "warehouse")
    if warehouse_ids is not None:
        qs = qs.filter(warehouse_id__in=warehouse_ids)

    if filters.get("product_id") not in (None, ""):
        qs = qs.filter(product_id=filters["product_id"])
    search = (filters.get("search") or "").strip()
    if search:
        qs = qs.filter(Q(product__sku__icontains=search) | Q(product__name__icontains=search))
    if filters.get("in_stock"):
        qs = qs.filter(current_stock__gt=0)
    return qs


def list_stock_levels(actor: Actor, filters: Optional[dict] = None, *,
                      offset: int = 0, limit: Optional[int] = None) -> HistoryPage:
    """
    Projection rows (product x warehouse) inside the actor's scope,
    ordered by SKU then warehouse code.
    """
    if limit is None:
        limit = int(getattr(settings, "INVENTORY_HISTORY_PAGE_SIZE", 50))
    limit = max(1, min(int(limit), 200))
    offset = max(0, int(offset or 0))

    qs = _scoped_stock_levels(actor, filters).order_by("product__sku", "warehouse__code")
    return HistoryPage(
        results=list(qs[offset:offset + limit]),
        count=qs.count(),
        offset=offset,
        limit=limit,
    )


def inventory_summary(actor: Actor, warehouse_id=None) -> dict:
    warehouse_ids = _scope_warehouse_ids(actor, warehouse_id)
    levels = _scoped_stock_levels(actor, {"warehouse_id": warehouse_id})

    totals = levels.aggregate(
        total_units=Sum("current_stock"),
        total_products=Count("product", filter=Q(current_stock__gt=0), distinct=True),
    )
    if warehouse_ids is None:
        warehouse_count = Warehouse.objects.filter(is_active=True).count()
    else:
        warehouse_count = Warehouse.objects.filter(pk__in=warehouse_ids, is_active=True).count()

    stocked = set(levels.filter(current_stock__gt=0).values_list("product_id", flat=True))
    out_of_stock = Product.objects.filter(is_active=True).exclude(pk__in=stocked).count()

    return {
        "total_products": totals["total_products"] or 0,
        "total_units": Decimal(totals["total_units"] or 0),
        "warehouse_count": warehouse_count,
        "low_stock_count": len(low_stock(actor, warehouse_id=warehouse_id)),
        "out_of_stock_count": out_of_stock,
    }


# ============================================================
# TRANSACTIONS
# ============================================================
def _scoped_transactions(actor: Actor, filters: Optional[dict] = None):
    filters = filters or {}
    warehouse_ids = _scope_warehouse_ids(actor, filters.get("warehouse_id"))

    qs = StockTransaction.objects.select_related("product", "warehouse", "operation")
    if warehouse_ids is not None:
        qs = qs.filter(warehouse_id__in=warehouse_ids)

    if filters.get("product_id") not in (None, ""):
        qs = qs.filter(product_id=filters["product_id"])
    if filters.get("type"):
        qs = qs.filter(transaction_type=str(filters["type"]).upper())
    if filters.get("reason"):
        qs = qs.filter(reason=filters["reason"])
    if filters.get("operation_id"):
        qs = qs.filter(operation_id=filters["operation_id"])
    if filters.get("date_from"):
        qs = qs.filter(created_at__date__gte=filters["date_from"])
    if filters.get("date_to"):
        qs = qs.filter(created_at__date__lte=filters["date_to"])

    return qs


def list_transactions(actor: Actor, filters: Optional[dict] = None, *,
                      offset: int = 0, limit: Optional[int] = None) -> HistoryPage:
    if limit is None:
        limit = int(getattr(settings, "INVENTORY_HISTORY_PAGE_SIZE", 50))
    limit = max(1, min(int(limit), 200))
    offset = max(0, int(offset or 0))

    qs = _scoped_transactions(actor, filters).order_by("-created_at", "-id")
    return HistoryPage(
        results=list(qs[offset:offset + limit]),
        count=qs.count(),
        offset=offset,
        limit=limit,
    )


def get_transaction(actor: Actor, transaction_id) -> StockTransaction:
    """Raises StockTransaction.DoesNotExist for unknown ids."""
    require_actor(actor)
    tx = StockTransaction.objects.select_related("product", "warehouse", "operation").get(
        pk=transaction_id
    )
    require_warehouse_access(actor, tx.warehouse_id)
    return tx


def product_history(actor: Actor, product_id, warehouse_id=None, *,
                    offset: int = 0, limit: Optional[int] = None) -> HistoryPage:
    product = get_product(product_id, require_active=False)
    warehouse_ids = _scope_warehouse_ids(actor, warehouse_id)
    return get_history(
        product.pk,
        offset=offset,
        limit=limit,
        warehouse_ids=warehouse_ids,
    )


def transaction_summary(actor: Actor, filters: Optional[dict] = None) -> dict:
    rows = (
        _scoped_transactions(actor, filters)
        .order_by()
        .values("transaction_type")
        .annotate(count=Count("id"), quantity=Sum("quantity"))
    )

    by_type = {
        t.value: {"count": 0, "quantity": ZERO} for t in StockTransaction.TransactionType
    }
    for row in rows:
        by_type[row["transaction_type"]] = {
            "count": row["count"],
            "quantity": Decimal(row["quantity"] or 0),
        }

    signed = _scoped_transactions(actor, filters).aggregate(
        inbound=Sum("quantity", filter=Q(quantity__gt=0)),
        outbound=Sum("quantity", filter=Q(quantity__lt=0)),
    )
    inbound = Decimal(signed["inbound"] or 0)
    outbound = Decimal(signed["outbound"] or 0)

    return {
        "by_type": by_type,
        "totals": {
            "count": sum(v["count"] for v in by_type.values()),
            "inbound": inbound,
            "outbound": abs(outbound),
            "net": inbound + outbound,
        },
    }

# products/services/ledger.py

"""
LEDGER STORE

Purpose:
- Append StockTransaction rows and keep the StockLevel projection in step.
- Serialize writers per (product_id, warehouse_id).

Rules:
- The StockLevel row for a key is the lock for that key
  (SELECT ... FOR UPDATE, created at zero on first use).
- Multi-key callers lock through lock_stock_levels(), which always locks in
  ascending (product_id, warehouse_id) order. Two transfers moving stock in
  opposite directions therefore queue instead of deadlocking.
- previous_stock is read under the lock; a write that would take the key
  below zero raises InsufficientStockError and nothing is persisted.
- Missing projection rows read as zero stock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Sum

from products.models import InventoryOperation, StockLevel, StockTransaction
from products.services.errors import InsufficientStockError

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
MAX_HISTORY_LIMIT = 200


@dataclass(frozen=True)
class LedgerEntry:
    """A stock change waiting to be appended (previous/new are assigned on append)."""

    operation: InventoryOperation
    product_id: int
    warehouse_id: int
    transaction_type: str
    reason: str
    quantity: Decimal
    unit_cost: Optional[Decimal] = None
    reference: Optional[str] = None
    notes: Optional[str] = None
    performed_by_id: object = None


@dataclass(frozen=True)
class HistoryPage:
    results: list
    count: int
    offset: int
    limit: int

    @property
    def next_offset(self) -> Optional[int]:
        nxt = self.offset + len(self.results)
        return nxt if nxt < self.count else None


@dataclass(frozen=True)
class StockDrift:
    product_id: int
    warehouse_id: int
    projected: Decimal
    from_ledger: Decimal


def stock_key(product_id, warehouse_id) -> tuple[int, int]:
    return (int(product_id), int(warehouse_id))


# ============================================================
# LOCKING
# ============================================================
def lock_stock_levels(keys: Iterable[tuple]) -> dict[tuple[int, int], StockLevel]:
    """
    Lock the projection rows for every key, in a fixed order.

    Must run inside transaction.atomic(); the locks are held until the
    enclosing transaction ends.
    """
    if not transaction.get_connection().in_atomic_block:
        raise RuntimeError("lock_stock_levels() must run inside transaction.atomic()")

    locked: dict[tuple[int, int], StockLevel] = {}
    for product_id, warehouse_id in sorted({stock_key(*k) for k in keys}):
        StockLevel.objects.get_or_create(product_id=product_id, warehouse_id=warehouse_id)
        locked[(product_id, warehouse_id)] = StockLevel.objects.select_for_update().get(
            product_id=product_id,
            warehouse_id=warehouse_id,
        )
    return locked


# ============================================================
# WRITE
# ============================================================
@transaction.atomic
def append_transaction(entry: LedgerEntry) -> StockTransaction:
    """
    Append one ledger row and move the projection with it.

    Safe to call on its own (it takes its own lock) or after the caller
    has already locked the key via lock_stock_levels() in the same
    transaction.
    """
    key = stock_key(entry.product_id, entry.warehouse_id)
    level = lock_stock_levels([key])[key]

    quantity = Decimal(entry.quantity)
    previous = Decimal(level.current_stock)
    new_stock = previous + quantity

    if new_stock < ZERO:
        raise InsufficientStockError(
            available=previous,
            requested=-quantity,
            product_id=key[0],
            warehouse_id=key[1],
        )

    tx = StockTransaction(
        operation=entry.operation,
        product_id=key[0],
        warehouse_id=key[1],
        transaction_type=entry.transaction_type,
        reason=entry.reason,
        quantity=quantity,
        previous_stock=previous,
        new_stock=new_stock,
        unit_cost=entry.unit_cost,
        reference=entry.reference,
        notes=entry.notes,
        performed_by_id=entry.performed_by_id,
    )
    tx.save()

    level.current_stock = new_stock
    level.save(update_fields=["current_stock", "last_updated"])

    return tx


# ============================================================
# READ
# ============================================================
def get_current_stock(product_id, warehouse_id) -> Decimal:
    value = (
        StockLevel.objects.filter(product_id=product_id, warehouse_id=warehouse_id)
        .values_list("current_stock", flat=True)
        .first()
    )
    return Decimal(value) if value is not None else ZERO


def get_history(
    product_id,
    warehouse_id=None,
    *,
    offset: int = 0,
    limit: Optional[int] = None,
    warehouse_ids: Optional[Iterable] = None,
) -> HistoryPage:
    """
    Ledger rows for a product, newest first.

    warehouse_ids narrows the result to a set of warehouses (used to keep
    warehouse-scoped actors inside their scope).
    """
    if limit is None:
        limit = int(getattr(settings, "INVENTORY_HISTORY_PAGE_SIZE", 50))
    limit = max(1, min(int(limit), MAX_HISTORY_LIMIT))
    offset = max(0, int(offset or 0))

    qs = StockTransaction.objects.filter(product_id=product_id).select_related(
        "warehouse", "product"
    )
    if warehouse_id is not None:
        qs = qs.filter(warehouse_id=warehouse_id)
    if warehouse_ids is not None:
        qs = qs.filter(warehouse_id__in=list(warehouse_ids))

    qs = qs.order_by("-created_at", "-id")
    count = qs.count()
    results = list(qs[offset:offset + limit])

    return HistoryPage(results=results, count=count, offset=offset, limit=limit)


def compute_stock_from_ledger(product_id, warehouse_id) -> Decimal:
    total = (
        StockTransaction.objects.filter(product_id=product_id, warehouse_id=warehouse_id)
        .aggregate(total=Sum("quantity"))
        .get("total")
    )
    return Decimal(total) if total is not None else ZERO


# ============================================================
# AUDIT
# ============================================================
def find_stock_drift() -> list[StockDrift]:
    """
    Compare every projection row against the ledger sum for its key.
    """
    from_ledger = {
        stock_key(row["product_id"], row["warehouse_id"]): Decimal(row["total"] or 0)
        for row in StockTransaction.objects.values("product_id", "warehouse_id").annotate(
            total=Sum("quantity")
        )
    }
    projected = {
        stock_key(row["product_id"], row["warehouse_id"]): Decimal(row["current_stock"])
        for row in StockLevel.objects.values("product_id", "warehouse_id", "current_stock")
    }

    drift = []
    for key in sorted(set(from_ledger) | set(projected)):
        ledger_value = from_ledger.get(key, ZERO)
        projected_value = projected.get(key, ZERO)
        if ledger_value != projected_value:
            drift.append(
                StockDrift(
                    product_id=key[0],
                    warehouse_id=key[1],
                    projected=projected_value,
                    from_ledger=ledger_value,
                )
            )
    return drift


def rebuild_stock_levels(*, repair: bool = False) -> list[StockDrift]:
    """
    Report (and optionally repair) projection rows that disagree with the ledger.

    Repairs lock each drifting key and recompute under the lock, so
    concurrent appends cannot be overwritten by a stale sum.
    """
    drift = find_stock_drift()

    for d in drift:
        logger.error(
            "Stock projection drift detected",
            extra={
                "product_id": d.product_id,
                "warehouse_id": d.warehouse_id,
                "projected": str(d.projected),
                "from_ledger": str(d.from_ledger),
            },
        )

    if repair and drift:
        with transaction.atomic():
            locked = lock_stock_levels([(d.product_id, d.warehouse_id) for d in drift])
            for (product_id, warehouse_id), level in locked.items():
                level.current_stock = compute_stock_from_ledger(product_id, warehouse_id)
                level.save(update_fields=["current_stock", "last_updated"])
        logger.warning("Stock projection repaired", extra={"keys": len(drift)})

    return drift

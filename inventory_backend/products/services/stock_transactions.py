# products/services/stock_transactions.py

"""
TRANSACTION ENGINE

Purpose:
- Validate and apply inbound / outbound / adjustment / transfer / bulk
  stock operations on top of the ledger store.

Rules:
- Every operation is one DB transaction: fully applied or fully rejected.
- Access is checked before anything is locked or written.
- Shape errors (quantity, reason, product, warehouse) are raised before
  the ledger is touched; stock sufficiency is decided under the row lock.
- Quantities are Decimal. Floats and bools are rejected; discrete-unit
  products only accept whole numbers.
- Adjustments take an absolute target. The delta is computed under the
  lock, so a stale client reading cannot produce a wrong correction.
- Bulk requests are all-or-nothing: every line is validated (including
  cumulative sufficiency for repeated products) before the first write.

IDEMPOTENCY:
- A client idempotency key is stored on InventoryOperation (unique).
- Repeating a key for the same kind of operation returns what was
  recorded the first time; nothing is written again.
- Repeating a key for a different kind (or a different product /
  warehouse) raises IdempotencyConflictError.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

from django.db import IntegrityError, transaction

from permissions.roles import Actor
from products.models import InventoryOperation, StockTransaction
from products.services.access import (
    get_product,
    require_actor,
    require_transfer_permission,
    resolve_warehouse,
)
from products.services.errors import (
    BulkOperationError,
    IdempotencyConflictError,
    InsufficientStockError,
    InvalidIdempotencyKeyError,
    InvalidQuantityError,
    InvalidReasonError,
    InvalidTransactionTypeError,
    InvalidTransferError,
    InventoryError,
    NoOpError,
)
from products.services.ledger import (
    LedgerEntry,
    append_transaction,
    lock_stock_levels,
    stock_key,
)

logger = logging.getLogger(__name__)

TxType = StockTransaction.TransactionType
Reason = StockTransaction.Reason
Kind = InventoryOperation.Kind

QUANTITY_STEP = Decimal("0.001")
COST_STEP = Decimal("0.01")
MAX_QUANTITY = Decimal("99999999999.999")
MAX_UNIT_COST = Decimal("9999999999.99")
IDEMPOTENCY_KEY_MAX_LENGTH = InventoryOperation._meta.get_field("idempotency_key").max_length


@dataclass(frozen=True)
class TransferResult:
    operation: InventoryOperation
    out_transaction: StockTransaction
    in_transaction: StockTransaction


@dataclass(frozen=True)
class BulkResult:
    operation: InventoryOperation
    created: list = field(default_factory=list)
    failed: list = field(default_factory=list)


# ============================================================
# NORMALIZERS
# ============================================================
def parse_quantity(value, *, product=None, field_name: str = "quantity",
                   allow_zero: bool = False) -> Decimal:
    if value is None or value == "":
        raise InvalidQuantityError(f"{field_name} is required")

    if isinstance(value, (bool, float)):
        # bool is an int subclass; floats are never exact
        raise InvalidQuantityError(
            f"{field_name} must be an integer or decimal string, not {type(value).__name__}"
        )

    try:
        qty = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidQuantityError(f"{field_name} must be a valid decimal")

    if not qty.is_finite():
        raise InvalidQuantityError(f"{field_name} must be a finite number")

    if abs(qty) > MAX_QUANTITY:
        raise InvalidQuantityError(f"{field_name} is too large")

    if qty != qty.quantize(QUANTITY_STEP):
        raise InvalidQuantityError(f"{field_name} allows at most 3 decimal places")

    if product is not None and product.is_discrete_unit and qty != qty.to_integral_value():
        raise InvalidQuantityError(
            f"{field_name} must be a whole number for {product.sku} "
            f"(unit: {product.unit_of_measure})",
            details={"productId": product.pk},
        )

    if qty < 0 or (qty == 0 and not allow_zero):
        qualifier = "zero or greater" if allow_zero else "greater than zero"
        raise InvalidQuantityError(f"{field_name} must be {qualifier}")

    return qty.quantize(QUANTITY_STEP)


def parse_unit_cost(value) -> Optional[Decimal]:
    if value is None or value == "":
        return None

    if isinstance(value, (bool, float)):
        raise InvalidQuantityError("unitCost must be an integer or decimal string")

    try:
        cost = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidQuantityError("unitCost must be a valid decimal")

    if not cost.is_finite() or cost < 0:
        raise InvalidQuantityError("unitCost must be zero or greater")
    if cost > MAX_UNIT_COST:
        raise InvalidQuantityError("unitCost is too large")
    if cost != cost.quantize(COST_STEP):
        raise InvalidQuantityError("unitCost allows at most 2 decimal places")

    return cost.quantize(COST_STEP)


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def parse_reason(value, transaction_type) -> str:
    """Accepts "initial_stock", "InitialStock" or "initialStock"."""
    raw = (value or "").strip()
    reason = _CAMEL_BOUNDARY.sub("_", raw).lower()

    allowed = StockTransaction.TYPE_REASONS.get(transaction_type, set())
    if reason not in allowed:
        raise InvalidReasonError(
            f"'{raw}' is not a valid reason for {transaction_type}",
            details={"allowed": sorted(str(r) for r in allowed)},
        )
    return reason


def _clean_text(value) -> Optional[str]:
    s = (value or "").strip() if isinstance(value, str) else value
    return s or None


# ============================================================
# IDEMPOTENCY
# ============================================================
def _find_operation(idempotency_key, kind) -> Optional[InventoryOperation]:
    if not idempotency_key:
        return None
    if len(idempotency_key) > IDEMPOTENCY_KEY_MAX_LENGTH:
        raise InvalidIdempotencyKeyError(
            f"Idempotency key must be at most {IDEMPOTENCY_KEY_MAX_LENGTH} characters.",
            details={"maxLength": IDEMPOTENCY_KEY_MAX_LENGTH},
        )

    operation = InventoryOperation.objects.filter(idempotency_key=idempotency_key).first()
    if operation is not None and operation.kind != kind:
        raise IdempotencyConflictError(
            f"Idempotency key was already used for a {operation.kind} operation.",
            details={"operationId": str(operation.pk), "kind": operation.kind},
        )
    return operation


def _create_operation(kind, actor: Actor, idempotency_key) -> tuple[InventoryOperation, bool]:
    """
    Returns (operation, created). created is False when a concurrent request
    with the same key won the race; the caller replays it.
    """
    try:
        with transaction.atomic():
            operation = InventoryOperation.objects.create(
                kind=kind,
                idempotency_key=idempotency_key or None,
                performed_by_id=actor.user_id,
            )
        return operation, True
    except IntegrityError:
        existing = _find_operation(idempotency_key, kind)
        if existing is None:
            raise
        return existing, False


def _replayed_single(operation: InventoryOperation, key) -> StockTransaction:
    tx = operation.transactions.order_by("id").first()
    if tx is None or stock_key(tx.product_id, tx.warehouse_id) != key:
        raise IdempotencyConflictError(
            "Idempotency key was already used for a different product or warehouse.",
            details={"operationId": str(operation.pk)},
        )
    logger.info(
        "Idempotent replay",
        extra={"operation_id": str(operation.pk), "transaction_id": tx.pk},
    )
    return tx


# ============================================================
# SINGLE MOVEMENTS
# ============================================================
@transaction.atomic
def _record_movement(
    actor: Actor,
    *,
    transaction_type,
    kind,
    sign: int,
    product_id,
    warehouse_id,
    quantity,
    reason,
    unit_cost,
    reference,
    notes,
    idempotency_key,
) -> StockTransaction:
    warehouse = resolve_warehouse(actor, warehouse_id)
    product = get_product(product_id)
    qty = parse_quantity(quantity, product=product)
    reason = parse_reason(reason, transaction_type)
    cost = parse_unit_cost(unit_cost)

    key = stock_key(product.pk, warehouse.pk)
    lock_stock_levels([key])

    replay = _find_operation(idempotency_key, kind)
    if replay is not None:
        return _replayed_single(replay, key)

    operation, created = _create_operation(kind, actor, idempotency_key)
    if not created:
        return _replayed_single(operation, key)

    try:
        tx = append_transaction(
            LedgerEntry(
                operation=operation,
                product_id=product.pk,
                warehouse_id=warehouse.pk,
                transaction_type=transaction_type,
                reason=reason,
                quantity=qty * sign,
                unit_cost=cost,
                reference=_clean_text(reference),
                notes=_clean_text(notes),
                performed_by_id=actor.user_id,
            )
        )
    except InsufficientStockError as exc:
        logger.warning(
            "Outbound rejected: insufficient stock",
            extra={
                "product_id": product.pk,
                "warehouse_id": warehouse.pk,
                "available": str(exc.available),
                "requested": str(exc.requested),
            },
        )
        raise

    logger.info(
        "Stock transaction recorded",
        extra={
            "transaction_id": tx.pk,
            "operation_id": str(operation.pk),
            "type": transaction_type,
            "product_id": product.pk,
            "warehouse_id": warehouse.pk,
            "quantity": str(tx.quantity),
            "new_stock": str(tx.new_stock),
        },
    )
    return tx


def record_inbound(
    actor: Actor,
    *,
    product_id,
    warehouse_id=None,
    quantity,
    reason,
    unit_cost=None,
    reference=None,
    notes=None,
    idempotency_key=None,
) -> StockTransaction:
    """Receive stock (purchase, return, initial_stock, found)."""
    return _record_movement(
        actor,
        transaction_type=TxType.INBOUND,
        kind=Kind.INBOUND,
        sign=1,
        product_id=product_id,
        warehouse_id=warehouse_id,
        quantity=quantity,
        reason=reason,
        unit_cost=unit_cost,
        reference=reference,
        notes=notes,
        idempotency_key=idempotency_key,
    )


def record_outbound(
    actor: Actor,
    *,
    product_id,
    warehouse_id=None,
    quantity,
    reason,
    unit_cost=None,
    reference=None,
    notes=None,
    idempotency_key=None,
) -> StockTransaction:
    """
    Remove stock (sale, damaged, lost).

    Raises InsufficientStockError (nothing written) when the warehouse
    holds less than quantity.
    """
    return _record_movement(
        actor,
        transaction_type=TxType.OUTBOUND,
        kind=Kind.OUTBOUND,
        sign=-1,
        product_id=product_id,
        warehouse_id=warehouse_id,
        quantity=quantity,
        reason=reason,
        unit_cost=unit_cost,
        reference=reference,
        notes=notes,
        idempotency_key=idempotency_key,
    )


@transaction.atomic
def adjust_stock(
    actor: Actor,
    *,
    product_id,
    warehouse_id=None,
    new_stock,
    reason=Reason.CORRECTION,
    reference=None,
    notes=None,
    idempotency_key=None,
) -> StockTransaction:
    """
    Set stock to an absolute value.

    Writes one ADJUSTMENT row with quantity = new_stock - current stock.
    Raises NoOpError when the value is already current.
    """
    warehouse = resolve_warehouse(actor, warehouse_id)
    product = get_product(product_id)
    target = parse_quantity(new_stock, product=product, field_name="newStock", allow_zero=True)
    reason = parse_reason(reason or Reason.CORRECTION, TxType.ADJUSTMENT)

    key = stock_key(product.pk, warehouse.pk)
    level = lock_stock_levels([key])[key]

    replay = _find_operation(idempotency_key, Kind.ADJUSTMENT)
    if replay is not None:
        return _replayed_single(replay, key)

    current = Decimal(level.current_stock)
    delta = target - current
    if delta == 0:
        raise NoOpError(current_stock=current, product_id=product.pk, warehouse_id=warehouse.pk)

    operation, created = _create_operation(Kind.ADJUSTMENT, actor, idempotency_key)
    if not created:
        return _replayed_single(operation, key)

    tx = append_transaction(
        LedgerEntry(
            operation=operation,
            product_id=product.pk,
            warehouse_id=warehouse.pk,
            transaction_type=TxType.ADJUSTMENT,
            reason=reason,
            quantity=delta,
            reference=_clean_text(reference),
            notes=_clean_text(notes),
            performed_by_id=actor.user_id,
        )
    )

    logger.info(
        "Stock adjusted",
        extra={
            "transaction_id": tx.pk,
            "product_id": product.pk,
            "warehouse_id": warehouse.pk,
            "previous_stock": str(tx.previous_stock),
            "new_stock": str(tx.new_stock),
            "delta": str(delta),
        },
    )
    return tx


# ============================================================
# TRANSFER
# ============================================================
@transaction.atomic
def transfer_stock(
    actor: Actor,
    *,
    product_id,
    from_warehouse_id,
    to_warehouse_id,
    quantity,
    reference=None,
    notes=None,
    idempotency_key=None,
) -> TransferResult:
    """
    Move stock between two warehouses as one unit of work.

    Writes TRANSFER_OUT then TRANSFER_IN under one InventoryOperation
    (its id is the correlation id of the pair). Both legs or neither.
    """
    require_transfer_permission(actor)

    if from_warehouse_id in (None, "") or to_warehouse_id in (None, ""):
        raise InvalidTransferError("fromWarehouseId and toWarehouseId are required")

    source = resolve_warehouse(actor, from_warehouse_id)
    destination = resolve_warehouse(actor, to_warehouse_id)
    if source.pk == destination.pk:
        raise InvalidTransferError(
            "Source and destination warehouses must be different.",
            details={"warehouseId": source.pk},
        )

    product = get_product(product_id)
    qty = parse_quantity(quantity, product=product)

    out_key = stock_key(product.pk, source.pk)
    in_key = stock_key(product.pk, destination.pk)
    levels = lock_stock_levels([out_key, in_key])

    replay = _find_operation(idempotency_key, Kind.TRANSFER)
    if replay is not None:
        return _replayed_transfer(replay, out_key, in_key)

    available = Decimal(levels[out_key].current_stock)
    if available < qty:
        logger.warning(
            "Transfer rejected: insufficient stock",
            extra={
                "product_id": product.pk,
                "from_warehouse_id": source.pk,
                "to_warehouse_id": destination.pk,
                "available": str(available),
                "requested": str(qty),
            },
        )
        raise InsufficientStockError(
            available=available,
            requested=qty,
            product_id=product.pk,
            warehouse_id=source.pk,
        )

    operation, created = _create_operation(Kind.TRANSFER, actor, idempotency_key)
    if not created:
        return _replayed_transfer(operation, out_key, in_key)

    reference = _clean_text(reference)
    notes = _clean_text(notes)

    out_tx = append_transaction(
        LedgerEntry(
            operation=operation,
            product_id=product.pk,
            warehouse_id=source.pk,
            transaction_type=TxType.TRANSFER_OUT,
            reason=Reason.TRANSFER_OUT,
            quantity=-qty,
            reference=reference,
            notes=notes,
            performed_by_id=actor.user_id,
        )
    )
    in_tx = append_transaction(
        LedgerEntry(
            operation=operation,
            product_id=product.pk,
            warehouse_id=destination.pk,
            transaction_type=TxType.TRANSFER_IN,
            reason=Reason.TRANSFER_IN,
            quantity=qty,
            reference=reference,
            notes=notes,
            performed_by_id=actor.user_id,
        )
    )

    logger.info(
        "Stock transferred",
        extra={
            "operation_id": str(operation.pk),
            "product_id": product.pk,
            "from_warehouse_id": source.pk,
            "to_warehouse_id": destination.pk,
            "quantity": str(qty),
        },
    )
    return TransferResult(operation=operation, out_transaction=out_tx, in_transaction=in_tx)


def _replayed_transfer(operation: InventoryOperation, out_key, in_key) -> TransferResult:
    legs = {tx.transaction_type: tx for tx in operation.transactions.all()}
    out_tx = legs.get(TxType.TRANSFER_OUT)
    in_tx = legs.get(TxType.TRANSFER_IN)

    if (
        out_tx is None
        or in_tx is None
        or stock_key(out_tx.product_id, out_tx.warehouse_id) != out_key
        or stock_key(in_tx.product_id, in_tx.warehouse_id) != in_key
    ):
        raise IdempotencyConflictError(
            "Idempotency key was already used for a different transfer.",
            details={"operationId": str(operation.pk)},
        )
    return TransferResult(operation=operation, out_transaction=out_tx, in_transaction=in_tx)


# ============================================================
# BULK
# ============================================================
def _replayed_bulk(operation: InventoryOperation, warehouse, items) -> BulkResult:
    rows = list(operation.transactions.order_by("id"))
    requested = {str(item.get("product_id")) for item in items}

    if (
        not rows
        or any(tx.warehouse_id != warehouse.pk for tx in rows)
        or {str(tx.product_id) for tx in rows} != requested
    ):
        raise IdempotencyConflictError(
            "Idempotency key was already used for a different warehouse or set of products.",
            details={"operationId": str(operation.pk)},
        )
    logger.info(
        "Idempotent replay",
        extra={"operation_id": str(operation.pk), "lines": len(rows)},
    )
    return BulkResult(operation=operation, created=rows)


def _line_failure(index: int, product_id, exc: InventoryError) -> dict:
    return {
        "index": index,
        "productId": product_id,
        "code": exc.code,
        "message": exc.message,
        "details": exc.details,
    }


@transaction.atomic
def _bulk(
    actor: Actor,
    *,
    transaction_type,
    kind,
    sign: int,
    warehouse_id,
    items: Iterable[dict],
    reason,
    notes,
    idempotency_key,
) -> BulkResult:
    warehouse = resolve_warehouse(actor, warehouse_id)
    reason = parse_reason(reason, transaction_type)
    notes = _clean_text(notes)

    items = list(items or [])
    if not items:
        raise InvalidQuantityError("items must contain at least one line")

    failed: list[dict] = []
    lines = []
    for index, item in enumerate(items):
        product_id = item.get("product_id")
        try:
            product = get_product(product_id)
            lines.append(
                {
                    "index": index,
                    "product": product,
                    "quantity": parse_quantity(item.get("quantity"), product=product),
                    "unit_cost": parse_unit_cost(item.get("unit_cost")),
                    "reference": _clean_text(item.get("reference")),
                }
            )
        except InventoryError as exc:
            failed.append(_line_failure(index, product_id, exc))

    levels = lock_stock_levels([(line["product"].pk, warehouse.pk) for line in lines])

    replay = _find_operation(idempotency_key, kind)
    if replay is not None:
        return _replayed_bulk(replay, warehouse, items)

    if sign < 0:
        running = {key: Decimal(level.current_stock) for key, level in levels.items()}
        for line in lines:
            key = stock_key(line["product"].pk, warehouse.pk)
            if running[key] < line["quantity"]:
                exc = InsufficientStockError(
                    available=running[key],
                    requested=line["quantity"],
                    product_id=key[0],
                    warehouse_id=key[1],
                )
                failed.append(_line_failure(line["index"], key[0], exc))
                continue
            running[key] -= line["quantity"]

    if failed:
        failed.sort(key=lambda f: f["index"])
        logger.warning(
            "Bulk operation rejected",
            extra={
                "kind": kind,
                "warehouse_id": warehouse.pk,
                "lines": len(items),
                "failed": len(failed),
            },
        )
        raise BulkOperationError(failed)

    operation, created = _create_operation(kind, actor, idempotency_key)
    if not created:
        return _replayed_bulk(operation, warehouse, items)

    created_rows = [
        append_transaction(
            LedgerEntry(
                operation=operation,
                product_id=line["product"].pk,
                warehouse_id=warehouse.pk,
                transaction_type=transaction_type,
                reason=reason,
                quantity=line["quantity"] * sign,
                unit_cost=line["unit_cost"],
                reference=line["reference"],
                notes=notes,
                performed_by_id=actor.user_id,
            )
        )
        for line in lines
    ]

    logger.info(
        "Bulk operation recorded",
        extra={
            "operation_id": str(operation.pk),
            "kind": kind,
            "warehouse_id": warehouse.pk,
            "lines": len(created_rows),
        },
    )
    return BulkResult(operation=operation, created=created_rows, failed=[])


def bulk_inbound(actor: Actor, *, warehouse_id=None, items, reason, notes=None,
                 idempotency_key=None) -> BulkResult:
    """
    items: [{"product_id", "quantity", "unit_cost"?, "reference"?}, ...]
    """
    return _bulk(
        actor,
        transaction_type=TxType.INBOUND,
        kind=Kind.BULK_INBOUND,
        sign=1,
        warehouse_id=warehouse_id,
        items=items,
        reason=reason,
        notes=notes,
        idempotency_key=idempotency_key,
    )


def bulk_outbound(actor: Actor, *, warehouse_id=None, items, reason, notes=None,
                  idempotency_key=None) -> BulkResult:
    return _bulk(
        actor,
        transaction_type=TxType.OUTBOUND,
        kind=Kind.BULK_OUTBOUND,
        sign=-1,
        warehouse_id=warehouse_id,
        items=items,
        reason=reason,
        notes=notes,
        idempotency_key=idempotency_key,
    )


# ============================================================
# DISPATCH (POST /transactions/)
# ============================================================
def create_transaction(
    actor: Actor,
    *,
    type,
    product_id,
    warehouse_id=None,
    reason=None,
    quantity=None,
    unit_cost=None,
    reference=None,
    notes=None,
    idempotency_key=None,
) -> StockTransaction:
    """
    Generic entry point. For type "adjustment", quantity is the absolute
    target stock. Transfers have their own endpoint.
    """
    require_actor(actor)
    kind = (type or "").strip().lower()

    common = {
        "product_id": product_id,
        "warehouse_id": warehouse_id,
        "reference": reference,
        "notes": notes,
        "idempotency_key": idempotency_key,
    }

    if kind == "inbound":
        return record_inbound(actor, quantity=quantity, reason=reason, unit_cost=unit_cost, **common)

    if kind == "outbound":
        return record_outbound(actor, quantity=quantity, reason=reason, unit_cost=unit_cost, **common)

    if kind == "adjustment":
        return adjust_stock(actor, new_stock=quantity, reason=reason or Reason.CORRECTION, **common)

    if kind == "transfer":
        raise InvalidTransferError("Transfers must be created through the transfer endpoint.")

    raise InvalidTransactionTypeError(
        f"Unknown transaction type '{type}'.",
        details={"allowed": ["inbound", "outbound", "adjustment"]},
    )

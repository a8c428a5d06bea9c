# products/services/errors.py

"""
INVENTORY DOMAIN ERRORS

Every rejected operation carries:
- code:        stable machine code (the UI switches on it)
- message:     human readable explanation
- details:     actionable context (which warehouse, how much is available)
- http_status: what the API boundary should answer with

None of these are raised after a ledger write has started; the engine
validates first, writes second.
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import status


def plain_decimal(value) -> str:
    """Decimal as a plain string without trailing zeros (70.000 -> "70")."""
    return format(Decimal(value).normalize(), "f")


class InventoryError(Exception):
    code = "INVENTORY_ERROR"
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "", *, details: dict | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details or {}

    def as_dict(self) -> dict:
        payload = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


# ------------------------------------------------------------
# Authorization
# ------------------------------------------------------------
class WarehouseAccessDenied(InventoryError):
    code = "WAREHOUSE_ACCESS_DENIED"
    http_status = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "", *, warehouse_id=None):
        details = {"warehouseId": warehouse_id} if warehouse_id is not None else {}
        super().__init__(message or "You do not have access to this warehouse.", details=details)
        self.warehouse_id = warehouse_id


# ------------------------------------------------------------
# Conservation
# ------------------------------------------------------------
class InsufficientStockError(InventoryError):
    code = "INSUFFICIENT_STOCK"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, *, available, requested, product_id=None, warehouse_id=None):
        self.available = Decimal(available)
        self.requested = Decimal(requested)
        self.product_id = product_id
        self.warehouse_id = warehouse_id
        super().__init__(
            f"Insufficient stock. Available: {plain_decimal(self.available)}, requested: {plain_decimal(self.requested)}",
            details={
                "available": plain_decimal(self.available),
                "requested": plain_decimal(self.requested),
                "productId": product_id,
                "warehouseId": warehouse_id,
            },
        )


# ------------------------------------------------------------
# Validation
# ------------------------------------------------------------
class InvalidTransferError(InventoryError):
    code = "INVALID_TRANSFER"


class NoOpError(InventoryError):
    code = "NO_OP_ADJUSTMENT"

    def __init__(self, *, current_stock, product_id=None, warehouse_id=None):
        self.current_stock = Decimal(current_stock)
        super().__init__(
            f"Stock is already {plain_decimal(self.current_stock)}; nothing to adjust.",
            details={
                "currentStock": plain_decimal(self.current_stock),
                "productId": product_id,
                "warehouseId": warehouse_id,
            },
        )


class InvalidQuantityError(InventoryError):
    code = "INVALID_QUANTITY"


class InvalidReasonError(InventoryError):
    code = "INVALID_REASON"


class InvalidTransactionTypeError(InventoryError):
    code = "INVALID_TRANSACTION_TYPE"


class WarehouseUnavailableError(InventoryError):
    code = "WAREHOUSE_UNAVAILABLE"


class ProductUnavailableError(InventoryError):
    code = "PRODUCT_UNAVAILABLE"


# ------------------------------------------------------------
# Idempotency / bulk
# ------------------------------------------------------------
class IdempotencyConflictError(InventoryError):
    code = "IDEMPOTENCY_KEY_REUSED"
    http_status = status.HTTP_409_CONFLICT


class InvalidIdempotencyKeyError(InventoryError):
    code = "INVALID_IDEMPOTENCY_KEY"


class BulkOperationError(InventoryError):
    """
    Raised when any line of a bulk request is rejected. Nothing was written.

    failed: [{"index", "productId", "code", "message", "details"}, ...]
    """

    code = "BULK_OPERATION_FAILED"

    def __init__(self, failed: list[dict]):
        self.failed = list(failed)
        super().__init__(
            f"{len(self.failed)} line(s) rejected; no stock was changed.",
            details={"failed": self.failed},
        )
        if any(f.get("code") == InsufficientStockError.code for f in self.failed):
            self.http_status = status.HTTP_409_CONFLICT

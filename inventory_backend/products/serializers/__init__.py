# products/serializers/__init__.py

from .inventory import (
    AdjustStockSerializer,
    BulkOperationSerializer,
    LowStockQuerySerializer,
    ProductSummarySerializer,
    TransferStockSerializer,
)
from .transactions import (
    StockTransactionSerializer,
    TransactionCreateSerializer,
    TransactionFilterSerializer,
)

__all__ = [
    "AdjustStockSerializer",
    "BulkOperationSerializer",
    "LowStockQuerySerializer",
    "ProductSummarySerializer",
    "TransferStockSerializer",
    "StockTransactionSerializer",
    "TransactionCreateSerializer",
    "TransactionFilterSerializer",
]

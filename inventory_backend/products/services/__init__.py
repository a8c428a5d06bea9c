from .stock_transactions import (
    adjust_stock,
    bulk_inbound,
    bulk_outbound,
    create_transaction,
    record_inbound,
    record_outbound,
    transfer_stock,
)

__all__ = [
    "record_inbound",
    "record_outbound",
    "adjust_stock",
    "transfer_stock",
    "bulk_inbound",
    "bulk_outbound",
    "create_transaction",
]

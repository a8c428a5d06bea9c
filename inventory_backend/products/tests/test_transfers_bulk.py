# products/tests/test_transfers_bulk.py

from decimal import Decimal
from unittest import mock

from django.db import DatabaseError
from django.test import TestCase

from products.models import InventoryOperation, StockTransaction
from products.services.errors import (
    BulkOperationError,
    IdempotencyConflictError,
    InsufficientStockError,
    InvalidQuantityError,
    InvalidTransferError,
    WarehouseUnavailableError,
)
from products.services import stock_transactions
from products.services.ledger import get_current_stock
from products.services.stock_transactions import (
    adjust_stock,
    bulk_inbound,
    bulk_outbound,
    record_inbound,
    record_outbound,
    transfer_stock,
)
from products.tests.fixtures import (
    actor_for,
    make_admin,
    make_clerk,
    make_manager,
    make_product,
    make_warehouses,
)
from warehouses.services import create_warehouse

TxType = StockTransaction.TransactionType


class TransferTests(TestCase):
    """
    GUARANTEES:
    - both legs or neither
    - the legs share one correlation id
    - stock is conserved across warehouses
    """

    def setUp(self):
        self.main, self.branch = make_warehouses()
        self.manager = actor_for(make_manager())
        self.product = make_product()
        record_inbound(
            self.manager,
            product_id=self.product.pk,
            warehouse_id=self.main.pk,
            quantity=40,
            reason="purchase",
        )

    def _transfer(self, **overrides):
        kwargs = {
            "product_id": self.product.pk,
            "from_warehouse_id": self.main.pk,
            "to_warehouse_id": self.branch.pk,
            "quantity": 15,
        }
        kwargs.update(overrides)
        return transfer_stock(self.manager, **kwargs)

    def test_transfer_writes_paired_legs(self):
        result = self._transfer(reference="TR-1")

        out_tx, in_tx = result.out_transaction, result.in_transaction
        self.assertEqual(out_tx.transaction_type, TxType.TRANSFER_OUT)
        self.assertEqual(out_tx.reason, "transfer_out")
        self.assertEqual(out_tx.quantity, Decimal("-15"))
        self.assertEqual(in_tx.transaction_type, TxType.TRANSFER_IN)
        self.assertEqual(in_tx.reason, "transfer_in")
        self.assertEqual(in_tx.quantity, Decimal("15"))
        self.assertEqual(out_tx.operation_id, result.operation.pk)
        self.assertEqual(in_tx.operation_id, result.operation.pk)
        self.assertEqual(in_tx.reference, "TR-1")
        self.assertEqual(result.operation.kind, InventoryOperation.Kind.TRANSFER)

        total = get_current_stock(self.product.pk, self.main.pk) + get_current_stock(
            self.product.pk, self.branch.pk
        )
        self.assertEqual(total, Decimal("40"))

    def test_insufficient_source_writes_nothing(self):
        with self.assertRaises(InsufficientStockError) as ctx:
            self._transfer(quantity=41)

        self.assertEqual(ctx.exception.warehouse_id, self.main.pk)
        self.assertEqual(ctx.exception.available, Decimal("40"))
        self.assertEqual(StockTransaction.objects.count(), 1)
        self.assertEqual(get_current_stock(self.product.pk, self.branch.pk), Decimal("0"))

    def test_failed_second_leg_rolls_back_first_leg(self):
        real_append = stock_transactions.append_transaction
        calls = []

        def fail_on_transfer_in(entry):
            calls.append(entry.transaction_type)
            if entry.transaction_type == TxType.TRANSFER_IN:
                raise DatabaseError("write failed")
            return real_append(entry)

        with mock.patch.object(stock_transactions, "append_transaction", side_effect=fail_on_transfer_in):
            with self.assertRaises(DatabaseError):
                self._transfer(quantity=10)

        self.assertEqual(calls, [TxType.TRANSFER_OUT, TxType.TRANSFER_IN])
        self.assertEqual(get_current_stock(self.product.pk, self.main.pk), Decimal("40"))
        self.assertEqual(get_current_stock(self.product.pk, self.branch.pk), Decimal("0"))
        self.assertEqual(StockTransaction.objects.count(), 1)
        self.assertEqual(InventoryOperation.objects.count(), 1)

    def test_same_warehouse_is_rejected(self):
        with self.assertRaises(InvalidTransferError):
            self._transfer(to_warehouse_id=self.main.pk)

    def test_missing_destination_is_rejected(self):
        with self.assertRaises(InvalidTransferError):
            self._transfer(to_warehouse_id=None)

    def test_inactive_destination_is_rejected(self):
        closed = create_warehouse(code="CLOSED", name="Closed", is_active=False)
        with self.assertRaises(WarehouseUnavailableError):
            self._transfer(to_warehouse_id=closed.pk)
        self.assertEqual(get_current_stock(self.product.pk, self.main.pk), Decimal("40"))

    def test_opposite_direction_transfers(self):
        self._transfer(quantity=30)
        self._transfer(from_warehouse_id=self.branch.pk, to_warehouse_id=self.main.pk, quantity=10)

        self.assertEqual(get_current_stock(self.product.pk, self.main.pk), Decimal("20"))
        self.assertEqual(get_current_stock(self.product.pk, self.branch.pk), Decimal("20"))


class BulkTests(TestCase):
    """
    GUARANTEES:
    - all-or-nothing: one bad line rejects the whole request
    - repeated products are checked cumulatively on outbound
    """

    def setUp(self):
        self.main, self.branch = make_warehouses()
        self.clerk = actor_for(make_clerk(self.main))
        self.p1 = make_product("A-1", "Alpha")
        self.p2 = make_product("B-1", "Beta")

    def test_bulk_inbound_writes_every_line(self):
        result = bulk_inbound(
            self.clerk,
            items=[
                {"product_id": self.p1.pk, "quantity": 10, "unit_cost": "1.20"},
                {"product_id": self.p2.pk, "quantity": "4", "reference": "GRN-9"},
            ],
            reason="purchase",
            notes="weekly delivery",
        )

        self.assertEqual(len(result.created), 2)
        self.assertEqual(result.failed, [])
        self.assertEqual(result.operation.kind, InventoryOperation.Kind.BULK_INBOUND)
        self.assertTrue(all(tx.operation_id == result.operation.pk for tx in result.created))
        self.assertTrue(all(tx.warehouse_id == self.main.pk for tx in result.created))
        self.assertEqual(get_current_stock(self.p1.pk, self.main.pk), Decimal("10"))
        self.assertEqual(get_current_stock(self.p2.pk, self.main.pk), Decimal("4"))
        self.assertEqual(result.created[1].reference, "GRN-9")

    def test_bulk_outbound_checks_running_totals(self):
        record_inbound(self.clerk, product_id=self.p1.pk, quantity=10, reason="purchase")

        with self.assertRaises(BulkOperationError) as ctx:
            bulk_outbound(
                self.clerk,
                items=[
                    {"product_id": self.p1.pk, "quantity": 6},
                    {"product_id": self.p1.pk, "quantity": 6},
                ],
                reason="sale",
            )

        failed = ctx.exception.failed
        self.assertEqual(len(failed), 1)
        self.assertEqual(failed[0]["index"], 1)
        self.assertEqual(failed[0]["code"], "INSUFFICIENT_STOCK")
        self.assertEqual(failed[0]["details"]["available"], "4")
        self.assertEqual(ctx.exception.http_status, 409)
        self.assertEqual(StockTransaction.objects.count(), 1)
        self.assertEqual(get_current_stock(self.p1.pk, self.main.pk), Decimal("10"))

    def test_bulk_reports_every_bad_line_in_order(self):
        with self.assertRaises(BulkOperationError) as ctx:
            bulk_inbound(
                self.clerk,
                items=[
                    {"product_id": self.p1.pk, "quantity": 1},
                    {"product_id": 999999, "quantity": 1},
                    {"product_id": self.p2.pk, "quantity": 0},
                ],
                reason="purchase",
            )

        failed = ctx.exception.failed
        self.assertEqual([f["index"] for f in failed], [1, 2])
        self.assertEqual(failed[0]["code"], "PRODUCT_UNAVAILABLE")
        self.assertEqual(failed[1]["code"], "INVALID_QUANTITY")
        self.assertEqual(ctx.exception.http_status, 400)
        self.assertEqual(StockTransaction.objects.count(), 0)

    def test_bulk_requires_items(self):
        with self.assertRaises(InvalidQuantityError):
            bulk_inbound(self.clerk, items=[], reason="purchase")


class IdempotencyTests(TestCase):
    """
    GUARANTEES:
    - a retried request with the same key writes nothing new
    - a key cannot be reused for a different operation
    """

    def setUp(self):
        self.main, self.branch = make_warehouses()
        self.admin = actor_for(make_admin())
        self.product = make_product()
        self.other = make_product("OTH-1", "Other")

    def _inbound(self, key, product=None, quantity=5):
        return record_inbound(
            self.admin,
            product_id=(product or self.product).pk,
            warehouse_id=self.main.pk,
            quantity=quantity,
            reason="purchase",
            idempotency_key=key,
        )

    def test_retry_returns_original_transaction(self):
        first = self._inbound("req-1")
        second = self._inbound("req-1")

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(StockTransaction.objects.count(), 1)
        self.assertEqual(get_current_stock(self.product.pk, self.main.pk), Decimal("5"))

    def test_key_reused_for_other_kind(self):
        self._inbound("req-2")
        with self.assertRaises(IdempotencyConflictError):
            record_outbound(
                self.admin,
                product_id=self.product.pk,
                warehouse_id=self.main.pk,
                quantity=1,
                reason="sale",
                idempotency_key="req-2",
            )

    def test_key_reused_for_other_product(self):
        self._inbound("req-3")
        with self.assertRaises(IdempotencyConflictError):
            self._inbound("req-3", product=self.other)

    def test_adjust_retry_is_not_a_no_op(self):
        first = adjust_stock(
            self.admin,
            product_id=self.product.pk,
            warehouse_id=self.main.pk,
            new_stock=25,
            idempotency_key="adj-1",
        )
        again = adjust_stock(
            self.admin,
            product_id=self.product.pk,
            warehouse_id=self.main.pk,
            new_stock=25,
            idempotency_key="adj-1",
        )
        self.assertEqual(first.pk, again.pk)

    def test_transfer_retry_returns_same_pair(self):
        self._inbound(None, quantity=20)
        kwargs = {
            "product_id": self.product.pk,
            "from_warehouse_id": self.main.pk,
            "to_warehouse_id": self.branch.pk,
            "quantity": 8,
            "idempotency_key": "tr-1",
        }
        first = transfer_stock(self.admin, **kwargs)
        second = transfer_stock(self.admin, **kwargs)

        self.assertEqual(first.operation.pk, second.operation.pk)
        self.assertEqual(first.out_transaction.pk, second.out_transaction.pk)
        self.assertEqual(get_current_stock(self.product.pk, self.branch.pk), Decimal("8"))

        with self.assertRaises(IdempotencyConflictError):
            transfer_stock(self.admin, **{**kwargs, "to_warehouse_id": self.main.pk, "from_warehouse_id": self.branch.pk})

    def test_bulk_retry_returns_created_rows(self):
        items = [{"product_id": self.product.pk, "quantity": 2}, {"product_id": self.other.pk, "quantity": 3}]
        first = bulk_inbound(self.admin, warehouse_id=self.main.pk, items=items, reason="purchase",
                             idempotency_key="bulk-1")
        second = bulk_inbound(self.admin, warehouse_id=self.main.pk, items=items, reason="purchase",
                              idempotency_key="bulk-1")

        self.assertEqual([tx.pk for tx in first.created], [tx.pk for tx in second.created])
        self.assertEqual(StockTransaction.objects.count(), 2)

    def test_bulk_key_cannot_replay_another_warehouse(self):
        items = [{"product_id": self.product.pk, "quantity": 7}]
        bulk_inbound(self.admin, warehouse_id=self.main.pk, items=items, reason="purchase",
                     idempotency_key="bulk-2")

        branch_clerk = actor_for(make_clerk(self.branch))
        with self.assertRaises(IdempotencyConflictError):
            bulk_inbound(branch_clerk, items=items, reason="purchase", idempotency_key="bulk-2")

        self.assertEqual(StockTransaction.objects.count(), 1)
        self.assertEqual(get_current_stock(self.product.pk, self.branch.pk), Decimal("0"))

    def test_bulk_key_cannot_replay_other_products(self):
        bulk_inbound(self.admin, warehouse_id=self.main.pk, reason="purchase",
                     items=[{"product_id": self.product.pk, "quantity": 1}], idempotency_key="bulk-3")

        with self.assertRaises(IdempotencyConflictError):
            bulk_inbound(self.admin, warehouse_id=self.main.pk, reason="purchase",
                         items=[{"product_id": self.other.pk, "quantity": 1}], idempotency_key="bulk-3")

# products/tests/test_ledger.py

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction
from django.test import TestCase, TransactionTestCase

from products.models import InventoryOperation, StockLevel, StockTransaction
from products.services.errors import InsufficientStockError
from products.services.ledger import (
    LedgerEntry,
    append_transaction,
    compute_stock_from_ledger,
    find_stock_drift,
    get_current_stock,
    get_history,
    lock_stock_levels,
    rebuild_stock_levels,
)
from products.tests.fixtures import make_product, make_warehouses

TxType = StockTransaction.TransactionType
Reason = StockTransaction.Reason


def _inbound(product, warehouse, quantity):
    operation = InventoryOperation.objects.create(kind=InventoryOperation.Kind.INBOUND)
    return append_transaction(
        LedgerEntry(
            operation=operation,
            product_id=product.pk,
            warehouse_id=warehouse.pk,
            transaction_type=TxType.INBOUND,
            reason=Reason.PURCHASE,
            quantity=Decimal(quantity),
        )
    )


class LedgerAppendTests(TestCase):
    """
    GUARANTEES:
    - new_stock = previous_stock + quantity on every row
    - the StockLevel projection moves with the ledger
    - a write that would go negative persists nothing
    - ledger rows are immutable
    """

    def setUp(self):
        self.main, self.branch = make_warehouses()
        self.product = make_product()

    def test_append_updates_projection(self):
        first = _inbound(self.product, self.main, "10")
        second = _inbound(self.product, self.main, "5")

        self.assertEqual(first.previous_stock, Decimal("0"))
        self.assertEqual(first.new_stock, Decimal("10"))
        self.assertEqual(second.previous_stock, Decimal("10"))
        self.assertEqual(second.new_stock, Decimal("15"))
        self.assertEqual(get_current_stock(self.product.pk, self.main.pk), Decimal("15"))
        self.assertEqual(compute_stock_from_ledger(self.product.pk, self.main.pk), Decimal("15"))

    def test_missing_projection_reads_as_zero(self):
        self.assertEqual(get_current_stock(self.product.pk, self.branch.pk), Decimal("0"))

    def test_negative_result_is_rejected_without_writes(self):
        _inbound(self.product, self.main, "3")
        operation = InventoryOperation.objects.create(kind=InventoryOperation.Kind.OUTBOUND)

        with self.assertRaises(InsufficientStockError) as ctx:
            append_transaction(
                LedgerEntry(
                    operation=operation,
                    product_id=self.product.pk,
                    warehouse_id=self.main.pk,
                    transaction_type=TxType.OUTBOUND,
                    reason=Reason.SALE,
                    quantity=Decimal("-5"),
                )
            )

        self.assertEqual(ctx.exception.available, Decimal("3"))
        self.assertEqual(ctx.exception.requested, Decimal("5"))
        self.assertEqual(StockTransaction.objects.count(), 1)
        self.assertEqual(get_current_stock(self.product.pk, self.main.pk), Decimal("3"))

    def test_transactions_are_immutable(self):
        tx = _inbound(self.product, self.main, "2")

        tx.notes = "edited"
        with self.assertRaises(ValidationError):
            tx.save()

        with self.assertRaises(ValidationError):
            tx.delete()

        self.assertEqual(StockTransaction.objects.count(), 1)

    def test_sign_must_match_type(self):
        operation = InventoryOperation.objects.create(kind=InventoryOperation.Kind.INBOUND)
        tx = StockTransaction(
            operation=operation,
            product=self.product,
            warehouse=self.main,
            transaction_type=TxType.INBOUND,
            reason=Reason.PURCHASE,
            quantity=Decimal("-1"),
            previous_stock=Decimal("1"),
            new_stock=Decimal("0"),
        )
        with self.assertRaises(ValidationError):
            tx.save()

    def test_reason_must_match_type(self):
        operation = InventoryOperation.objects.create(kind=InventoryOperation.Kind.INBOUND)
        tx = StockTransaction(
            operation=operation,
            product=self.product,
            warehouse=self.main,
            transaction_type=TxType.INBOUND,
            reason=Reason.SALE,
            quantity=Decimal("1"),
            previous_stock=Decimal("0"),
            new_stock=Decimal("1"),
        )
        with self.assertRaises(ValidationError):
            tx.save()

    def test_balance_must_hold(self):
        operation = InventoryOperation.objects.create(kind=InventoryOperation.Kind.INBOUND)
        tx = StockTransaction(
            operation=operation,
            product=self.product,
            warehouse=self.main,
            transaction_type=TxType.INBOUND,
            reason=Reason.PURCHASE,
            quantity=Decimal("1"),
            previous_stock=Decimal("0"),
            new_stock=Decimal("2"),
        )
        with self.assertRaises(ValidationError):
            tx.save()


class LockOrderingTests(TestCase):
    def setUp(self):
        self.main, self.branch = make_warehouses()
        self.p1 = make_product("A-1", "Alpha")
        self.p2 = make_product("B-1", "Beta")

    def test_locks_are_taken_in_key_order_and_created_at_zero(self):
        keys = [
            (self.p2.pk, self.main.pk),
            (self.p1.pk, self.branch.pk),
            (self.p1.pk, self.main.pk),
            (self.p1.pk, self.main.pk),
        ]
        with transaction.atomic():
            locked = lock_stock_levels(keys)

        self.assertEqual(list(locked), sorted(set(keys)))
        self.assertEqual(StockLevel.objects.count(), 3)
        self.assertTrue(all(level.current_stock == 0 for level in locked.values()))


class LockOutsideTransactionTests(TransactionTestCase):
    def test_lock_requires_atomic_block(self):
        with self.assertRaises(RuntimeError):
            lock_stock_levels([(1, 1)])


class HistoryTests(TestCase):
    def setUp(self):
        self.main, self.branch = make_warehouses()
        self.product = make_product()
        for _ in range(5):
            _inbound(self.product, self.main, "1")
        _inbound(self.product, self.branch, "7")

    def test_history_is_newest_first_and_paged(self):
        page = get_history(self.product.pk, self.main.pk, offset=0, limit=2)

        self.assertEqual(page.count, 5)
        self.assertEqual(len(page.results), 2)
        self.assertEqual(page.next_offset, 2)
        self.assertEqual(page.results[0].new_stock, Decimal("5"))
        self.assertEqual(page.results[1].new_stock, Decimal("4"))

    def test_last_page_has_no_next_offset(self):
        page = get_history(self.product.pk, self.main.pk, offset=4, limit=2)
        self.assertEqual(len(page.results), 1)
        self.assertIsNone(page.next_offset)

    def test_history_across_warehouses_can_be_scoped(self):
        self.assertEqual(get_history(self.product.pk).count, 6)
        scoped = get_history(self.product.pk, warehouse_ids=[self.branch.pk])
        self.assertEqual(scoped.count, 1)
        self.assertEqual(scoped.results[0].warehouse_id, self.branch.pk)

    def test_limit_is_clamped(self):
        page = get_history(self.product.pk, limit=10_000)
        self.assertEqual(page.limit, 200)
        page = get_history(self.product.pk, limit=0)
        self.assertEqual(page.limit, 1)


class DriftTests(TestCase):
    def setUp(self):
        self.main, _ = make_warehouses()
        self.product = make_product()
        _inbound(self.product, self.main, "10")

    def test_consistent_ledger_has_no_drift(self):
        self.assertEqual(find_stock_drift(), [])

    def test_drift_is_reported_and_repaired(self):
        StockLevel.objects.filter(product=self.product, warehouse=self.main).update(
            current_stock=Decimal("4")
        )

        drift = rebuild_stock_levels(repair=False)
        self.assertEqual(len(drift), 1)
        self.assertEqual(drift[0].projected, Decimal("4"))
        self.assertEqual(drift[0].from_ledger, Decimal("10"))
        self.assertEqual(get_current_stock(self.product.pk, self.main.pk), Decimal("4"))

        rebuild_stock_levels(repair=True)
        self.assertEqual(get_current_stock(self.product.pk, self.main.pk), Decimal("10"))
        self.assertEqual(find_stock_drift(), [])

"""
======================================================
PATH: products/migrations/0001_initial.py
======================================================
MIGRATION: CREATE Product + inventory ledger

Purpose:
- Product catalogue referenced by the ledger.
- InventoryOperation: one row per engine operation (correlation id +
  idempotency key).
- StockTransaction: append-only ledger.
- StockLevel: per (product, warehouse) projection, also the row lock.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("warehouses", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("sku", models.CharField(db_index=True, max_length=128, unique=True)),
                ("name", models.CharField(db_index=True, max_length=255)),
                ("unit_of_measure", models.CharField(default="unit", max_length=32)),
                ("is_discrete_unit", models.BooleanField(default=True)),
                (
                    "minimum_stock",
                    models.DecimalField(
                        blank=True, decimal_places=3, default=None, max_digits=14, null=True
                    ),
                ),
                (
                    "reorder_point",
                    models.DecimalField(
                        blank=True, decimal_places=3, default=None, max_digits=14, null=True
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["sku"],
                "indexes": [models.Index(fields=["name"], name="product_name_idx")],
            },
        ),
        migrations.CreateModel(
            name="InventoryOperation",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("INBOUND", "Inbound"),
                            ("OUTBOUND", "Outbound"),
                            ("ADJUSTMENT", "Adjustment"),
                            ("TRANSFER", "Transfer"),
                            ("BULK_INBOUND", "Bulk Inbound"),
                            ("BULK_OUTBOUND", "Bulk Outbound"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "idempotency_key",
                    models.CharField(
                        blank=True, default=None, max_length=100, null=True, unique=True
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "performed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="inventory_operations",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="StockTransaction",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "transaction_type",
                    models.CharField(
                        choices=[
                            ("INBOUND", "Inbound"),
                            ("OUTBOUND", "Outbound"),
                            ("ADJUSTMENT", "Adjustment"),
                            ("TRANSFER_OUT", "Transfer Out"),
                            ("TRANSFER_IN", "Transfer In"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "reason",
                    models.CharField(
                        choices=[
                            ("purchase", "Purchase"),
                            ("return", "Return"),
                            ("initial_stock", "Initial Stock"),
                            ("found", "Found"),
                            ("sale", "Sale"),
                            ("damaged", "Damaged"),
                            ("lost", "Lost"),
                            ("correction", "Correction"),
                            ("transfer_out", "Transfer Out"),
                            ("transfer_in", "Transfer In"),
                        ],
                        max_length=20,
                    ),
                ),
                ("quantity", models.DecimalField(decimal_places=3, max_digits=14)),
                ("previous_stock", models.DecimalField(decimal_places=3, max_digits=14)),
                ("new_stock", models.DecimalField(decimal_places=3, max_digits=14)),
                (
                    "unit_cost",
                    models.DecimalField(
                        blank=True, decimal_places=2, default=None, max_digits=12, null=True
                    ),
                ),
                (
                    "reference",
                    models.CharField(blank=True, default=None, max_length=100, null=True),
                ),
                ("notes", models.TextField(blank=True, default=None, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "operation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="products.inventoryoperation",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stock_transactions",
                        to="products.product",
                    ),
                ),
                (
                    "warehouse",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stock_transactions",
                        to="warehouses.warehouse",
                    ),
                ),
                (
                    "performed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="stock_transactions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["created_at"], name="stocktx_created_idx"),
                    models.Index(fields=["transaction_type"], name="stocktx_type_idx"),
                    models.Index(fields=["reason"], name="stocktx_reason_idx"),
                    models.Index(
                        fields=["product", "warehouse", "created_at"],
                        name="stocktx_prod_wh_created_idx",
                    ),
                    models.Index(
                        fields=["warehouse", "created_at"],
                        name="stocktx_wh_created_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity", 0), _negated=True),
                        name="chk_stocktx_quantity_non_zero",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("new_stock__gte", 0)),
                        name="chk_stocktx_new_stock_gte_zero",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="StockLevel",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "current_stock",
                    models.DecimalField(decimal_places=3, default=Decimal("0"), max_digits=14),
                ),
                ("last_updated", models.DateTimeField(auto_now=True)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stock_levels",
                        to="products.product",
                    ),
                ),
                (
                    "warehouse",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stock_levels",
                        to="warehouses.warehouse",
                    ),
                ),
            ],
            options={
                "ordering": ["product_id", "warehouse_id"],
                "indexes": [
                    models.Index(
                        fields=["warehouse", "product"],
                        name="stocklevel_wh_product_idx",
                    )
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("product", "warehouse"),
                        name="unique_stock_level_per_product_warehouse",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("current_stock__gte", 0)),
                        name="chk_stocklevel_current_stock_gte_zero",
                    ),
                ],
            },
        ),
    ]

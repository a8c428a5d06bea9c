# products/management/commands/verify_stock_levels.py

from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from products.models import StockLevel, StockTransaction
from products.services.ledger import rebuild_stock_levels


class Command(BaseCommand):
    help = "Verify StockLevel projections against the StockTransaction ledger (optionally repair drift)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--repair",
            action="store_true",
            help="Rewrite drifting StockLevel rows from the ledger sum.",
        )
        parser.add_argument(
            "--strict",
            action="store_true",
            help="Fail (non-zero exit) if any drift is found.",
        )

    def handle(self, *args, **options):
        repair = bool(options.get("repair"))
        strict = bool(options.get("strict"))

        self.stdout.write(self.style.MIGRATE_HEADING("Stock ledger → projection verification"))
        self.stdout.write(f"Ledger rows:     {StockTransaction.objects.count()}")
        self.stdout.write(f"Projection rows: {StockLevel.objects.count()}")
        self.stdout.write("")

        drift = rebuild_stock_levels(repair=repair)

        if not drift:
            self.stdout.write(self.style.SUCCESS("[OK] Every stock level matches its ledger sum"))
            return

        self.stderr.write(self.style.ERROR(f"[FAIL] Drifting stock levels: {len(drift)}"))
        for d in drift[:20]:
            self.stderr.write(
                f"  product_id={d.product_id} warehouse_id={d.warehouse_id} "
                f"projected={d.projected} ledger={d.from_ledger}"
            )

        if repair:
            self.stdout.write(self.style.WARNING(f"[FIXED] Rewrote {len(drift)} stock level(s) from the ledger"))
            return

        if strict:
            raise CommandError("Stock projection drift detected. Re-run with --repair to fix.")

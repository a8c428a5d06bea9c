# users/management/commands/seed_inventory_users.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from permissions.roles import ROLE_ADMIN, ROLE_MANAGER, ROLE_USER
from warehouses.models import Warehouse
from warehouses.services import create_warehouse


@dataclass(frozen=True)
class SeedWarehouseSpec:
    code: str
    name: str
    is_main: bool = False


@dataclass(frozen=True)
class SeedUserSpec:
    label: str
    role: str
    email: str
    first_name: str = ""
    last_name: str = ""
    warehouse_code: Optional[str] = None


WAREHOUSES = [
    SeedWarehouseSpec("MAIN", "Main Warehouse", is_main=True),
    SeedWarehouseSpec("BRANCH", "Branch Warehouse"),
]

USERS = [
    SeedUserSpec("Admin", ROLE_ADMIN, "admin@example.com", "System", "Admin"),
    SeedUserSpec("Manager", ROLE_MANAGER, "manager@example.com", "Stock", "Manager"),
    SeedUserSpec("Main clerk", ROLE_USER, "main.clerk@example.com", "Main", "Clerk", "MAIN"),
    SeedUserSpec("Branch clerk", ROLE_USER, "branch.clerk@example.com", "Branch", "Clerk", "BRANCH"),
]


class Command(BaseCommand):
    help = "Seed demo warehouses and inventory users (admin, manager, warehouse-scoped users)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--password",
            type=str,
            default="Pass1234!",
            help="Password for seeded users (default: Pass1234!)",
        )
        parser.add_argument(
            "--force-password",
            action="store_true",
            help="Reset password for existing seeded users too.",
        )

    def _ensure_warehouses(self) -> dict[str, Warehouse]:
        by_code = {}
        for entry in WAREHOUSES:
            warehouse = Warehouse.objects.filter(code=entry.code).first()
            if warehouse is None:
                has_main = Warehouse.objects.filter(is_main=True).exists()
                warehouse = create_warehouse(
                    code=entry.code,
                    name=entry.name,
                    is_main=entry.is_main and not has_main,
                )
                self.stdout.write(f"created warehouse: {warehouse.code}")
            else:
                self.stdout.write(f"exists:  warehouse {warehouse.code}")
            by_code[entry.code] = warehouse
        return by_code

    @transaction.atomic
    def handle(self, *args, **options):
        password = options.get("password") or ""
        force_password = bool(options.get("force_password"))

        if len(password) < 6:
            raise CommandError("--password must be at least 6 characters.")

        User = get_user_model()
        warehouses = self._ensure_warehouses()

        created_count = 0
        updated_count = 0

        for entry in USERS:
            warehouse = warehouses[entry.warehouse_code] if entry.warehouse_code else None
            is_admin = entry.role == ROLE_ADMIN

            user = User.objects.filter(email=entry.email).first()
            if user is None:
                User.objects.create_user(
                    email=entry.email,
                    password=password,
                    role=entry.role,
                    warehouse=warehouse,
                    first_name=entry.first_name,
                    last_name=entry.last_name,
                    is_staff=is_admin,
                    is_superuser=is_admin,
                )
                created_count += 1
                self.stdout.write(f"created: {entry.label} ({entry.role}) -> {entry.email}")
                continue

            user.role = entry.role
            user.warehouse = warehouse
            user.is_active = True
            if force_password:
                user.set_password(password)
            user.full_clean(exclude=["password"])
            user.save()
            updated_count += 1
            self.stdout.write(f"exists:  {entry.label} ({entry.role}) -> {entry.email}")

        self.stdout.write("\n--- Summary ---")
        self.stdout.write(f"Created: {created_count}")
        self.stdout.write(f"Updated: {updated_count}")
